"""
Services built on top of the platform adapters and the metadata endpoints.
"""

from .loaders import FabricMetaClient
from .ranking import levenshtein_distance, sort_by_name_similarity
from .search import PlatformAggregator, default_aggregator
from .vanilla import get_jre_binaries, get_minecraft_versions, get_supported_platforms

__all__ = [
    "FabricMetaClient",
    "PlatformAggregator",
    "default_aggregator",
    "get_jre_binaries",
    "get_minecraft_versions",
    "get_supported_platforms",
    "levenshtein_distance",
    "sort_by_name_similarity",
]
