from typing import List, Optional

from ..config import curseforge_settings, modrinth_settings
from .base import PlatformProvider
from .curseforge import CurseForgeProvider
from .modrinth import ModrinthProvider

# Lookup order for single-project queries; first non-empty answer wins.
PROVIDER_ORDER = ("modrinth", "curseforge")


def get_provider(source: Optional[str]) -> PlatformProvider:
    """
    Factory function to return the correct provider.
    """
    source_key = (source or "").strip().lower()

    if source_key == "curseforge":
        return CurseForgeProvider(curseforge_settings())

    # Default to Modrinth provider which also handles generic cases
    return ModrinthProvider(modrinth_settings())


def default_providers() -> List[PlatformProvider]:
    return [get_provider(source) for source in PROVIDER_ORDER]
