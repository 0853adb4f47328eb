from .base import PlatformProvider, filter_versions, paginate
from .curseforge import CurseForgeProvider
from .factory import PROVIDER_ORDER, default_providers, get_provider
from .modrinth import ModrinthProvider, build_facets
from .utils import SUPPORTED_LOADERS, split_loaders

__all__ = [
    "CurseForgeProvider",
    "ModrinthProvider",
    "PROVIDER_ORDER",
    "PlatformProvider",
    "SUPPORTED_LOADERS",
    "build_facets",
    "default_providers",
    "filter_versions",
    "get_provider",
    "paginate",
    "split_loaders",
]
