"""
Multi-platform project search and lookup.
Fans queries out to every platform provider, merges and ranks the results.
Keeps HTTP and routing concerns out of this layer.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, List, Optional, Sequence, Tuple, TypeVar

from ..errors import UpstreamUnavailableError
from ..providers.base import PlatformProvider
from ..providers.factory import default_providers
from ..schemas import (
    AdvancedSearchOptions,
    PlatformProject,
    PlatformVersion,
    ReleaseType,
    SearchResult,
    SourceError,
)
from .ranking import sort_by_name_similarity

log = logging.getLogger(__name__)

T = TypeVar("T")


def _sort_hits(query: str, hits: List[PlatformProject]) -> List[PlatformProject]:
    # Downloads first, then a stable re-sort by name distance: download count
    # only orders projects that are equally close to the query.
    by_downloads = sorted(hits, key=lambda hit: hit.downloads, reverse=True)
    return sort_by_name_similarity(query, by_downloads)


class PlatformAggregator:
    def __init__(self, providers: Sequence[PlatformProvider]):
        self.providers = list(providers)

    async def _safe_search(
        self, provider: PlatformProvider, call: Awaitable[SearchResult]
    ) -> Tuple[SearchResult, Optional[SourceError]]:
        try:
            return await call, None
        except UpstreamUnavailableError as exc:
            log.warning("Search unavailable on %s: %s", provider.name, exc)
            return SearchResult.empty(), SourceError(source=provider.name, detail=str(exc))
        except Exception as exc:
            log.exception("Search failed on %s", provider.name)
            return SearchResult.empty(), SourceError(source=provider.name, detail=str(exc))

    async def _merge(
        self,
        query: str,
        limit: int,
        offset: int,
        calls: List[Tuple[PlatformProvider, Awaitable[SearchResult]]],
    ) -> SearchResult:
        pages = await asyncio.gather(*(self._safe_search(provider, call) for provider, call in calls))

        hits: List[PlatformProject] = []
        total_hits = 0
        errors: List[SourceError] = []
        for page, error in pages:
            if error is not None:
                errors.append(error)
            if page.is_empty:
                continue
            hits.extend(page.results)
            total_hits += page.total_results

        ranked = _sort_hits(query, hits)
        if limit > 0:
            ranked = ranked[:limit]
        return SearchResult(
            results=ranked,
            limit=limit,
            offset=offset,
            total_results=total_hits,
            query=query,
            errors=errors,
        )

    async def search_projects(
        self,
        query: str,
        project_type: str = "mod",
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult:
        """
        Search every provider concurrently with the same filters.
        A failing provider contributes nothing; the call itself never fails
        because of one platform.
        """
        calls = [
            (provider, provider.search_projects(query, project_type, loader, game_version, limit, offset))
            for provider in self.providers
        ]
        return await self._merge(query, limit, offset, calls)

    async def advanced_search_projects(
        self, query: str, limit: int, offset: int, options: AdvancedSearchOptions
    ) -> SearchResult:
        wanted = {platform.strip().lower() for platform in options.platforms if platform.strip()}
        calls = [
            (provider, provider.advanced_search_projects(query, limit, offset, options))
            for provider in self.providers
            if not wanted or provider.name in wanted
        ]
        return await self._merge(query, limit, offset, calls)

    async def _safe_lookup(self, provider: PlatformProvider, call: Awaitable[T], what: str) -> Optional[T]:
        try:
            return await call
        except UpstreamUnavailableError as exc:
            log.warning("%s unavailable on %s: %s", what, provider.name, exc)
        except Exception:
            log.exception("%s failed on %s", what, provider.name)
        return None

    async def get_project(self, project_id: str, project_type: str = "") -> PlatformProject:
        for provider in self.providers:
            project = await self._safe_lookup(
                provider, provider.get_project(project_id, project_type), f"Project lookup for {project_id}"
            )
            if project is not None and not project.is_empty:
                return project
        return PlatformProject.empty()

    async def get_project_versions(
        self,
        project_id: str,
        game_versions: Sequence[str] = (),
        loaders: Sequence[str] = (),
        release_types: Sequence[ReleaseType] = (),
        limit: int = 0,
        offset: int = 0,
    ) -> List[PlatformVersion]:
        for provider in self.providers:
            versions = await self._safe_lookup(
                provider,
                provider.get_project_versions(project_id, game_versions, loaders, release_types, limit, offset),
                f"Version listing for {project_id}",
            )
            if versions:
                return versions
        return []

    async def get_project_version(self, project_id: str, version_id: str) -> PlatformVersion:
        for provider in self.providers:
            version = await self._safe_lookup(
                provider, provider.get_project_version(project_id, version_id), f"Version {version_id} lookup"
            )
            if version is not None and not version.is_empty:
                return version
        return PlatformVersion.empty()

    async def get_project_icon(self, project_id: str) -> str:
        for provider in self.providers:
            icon = await self._safe_lookup(provider, provider.get_project_icon(project_id), f"Icon lookup for {project_id}")
            if icon and icon.strip():
                return icon
        return ""

    async def get_author_avatar(self, username: str) -> str:
        for provider in self.providers:
            image = await self._safe_lookup(
                provider, provider.get_author_avatar(username), f"Avatar lookup for {username}"
            )
            if image and image.strip():
                return image
        return ""


def default_aggregator() -> PlatformAggregator:
    return PlatformAggregator(default_providers())
