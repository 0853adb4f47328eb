from __future__ import annotations

import abc
import asyncio
import base64
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiohttp

from ..config import ProviderSettings
from ..errors import UpstreamUnavailableError
from ..schemas import (
    AdvancedSearchOptions,
    PlatformProject,
    PlatformVersion,
    ReleaseType,
    SearchResult,
)

log = logging.getLogger(__name__)


def _lowered(values: Iterable[Any]) -> set:
    return {str(v).strip().lower() for v in values or [] if str(v).strip()}


def filter_versions(
    versions: Iterable[PlatformVersion],
    game_versions: Sequence[str] = (),
    loaders: Sequence[str] = (),
    release_types: Sequence[ReleaseType] = (),
) -> List[PlatformVersion]:
    """
    Keep versions matching ANY requested game version AND ANY requested loader
    AND ANY requested release type. An empty request for a field matches all.
    """
    wanted_versions = _lowered(game_versions)
    wanted_loaders = _lowered(loaders)
    wanted_types = {ReleaseType.parse(getattr(t, "value", t)) for t in release_types or []}

    matched: List[PlatformVersion] = []
    for version in versions:
        if wanted_versions and not wanted_versions & _lowered(version.game_versions):
            continue
        if wanted_loaders and not wanted_loaders & _lowered(version.loaders):
            continue
        if wanted_types and version.release_type not in wanted_types:
            continue
        matched.append(version)
    return matched


def paginate(items: List[Any], limit: int, offset: int) -> List[Any]:
    start = max(0, offset)
    if limit > 0:
        return items[start:start + limit]
    return items[start:]


class PlatformProvider(abc.ABC):
    """
    Abstract base class for platform adapters (Modrinth, CurseForge, ...).

    Every public operation opens its own HTTP session and closes it before
    returning; adapters hold nothing but read-only settings.
    """

    name: str = ""

    def __init__(self, settings: ProviderSettings):
        self.settings = settings

    # --- HTTP plumbing ---

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": self.settings.user_agent}

    def _session(self) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            headers=self._headers(),
            timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
        )

    async def _get_json(
        self,
        session: aiohttp.ClientSession,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        method: str = "GET",
        json_body: Any = None,
    ) -> Any:
        """
        Fetch JSON from the platform. Returns None on 404.
        Raises UpstreamUnavailableError for any other failure.
        """
        url = path if path.startswith("http") else f"{self.settings.base_url}{path}"
        try:
            async with session.request(method, url, params=params, json=json_body) as resp:
                if resp.status == 404:
                    return None
                if resp.status >= 400:
                    detail = await resp.text()
                    raise UpstreamUnavailableError(
                        f"{self.name} returned {resp.status} for {url}: {detail[:200]}",
                        status=resp.status,
                    )
                return await resp.json(content_type=None)
        except aiohttp.ClientError as exc:
            raise UpstreamUnavailableError(f"{self.name} request failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise UpstreamUnavailableError(f"{self.name} request timed out: {url}") from exc
        except ValueError as exc:
            raise UpstreamUnavailableError(f"{self.name} returned invalid JSON: {exc}") from exc

    async def _fetch_data_uri(self, session: aiohttp.ClientSession, url: str) -> str:
        """Download an image and return it as a base64 data URI, or ""."""
        if not url:
            return ""
        try:
            async with session.get(url) as resp:
                resp.raise_for_status()
                payload = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            log.warning("Failed to download image %s: %s", url, exc)
            return ""
        return "data:image/png;base64," + base64.b64encode(payload).decode("ascii")

    # --- Operations ---

    @abc.abstractmethod
    async def search_projects(
        self,
        query: str,
        project_type: str,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult:
        """Search the platform and return one normalized page."""

    @abc.abstractmethod
    async def advanced_search_projects(
        self, query: str, limit: int, offset: int, options: AdvancedSearchOptions
    ) -> SearchResult:
        """Search with the full set of filters in AdvancedSearchOptions."""

    @abc.abstractmethod
    async def get_project(self, project_id: str, project_type: str = "") -> PlatformProject:
        """Return the project, or PlatformProject.empty() when it does not exist."""

    @abc.abstractmethod
    async def list_versions(
        self,
        project_id: str,
        game_versions: Sequence[str] = (),
        loaders: Sequence[str] = (),
    ) -> List[PlatformVersion]:
        """
        Return the project's versions. Filters are forwarded upstream as a
        hint only; get_project_versions applies them authoritatively.
        """

    @abc.abstractmethod
    async def get_project_version(self, project_id: str, version_id: str) -> PlatformVersion:
        """Return one version, or PlatformVersion.empty()."""

    @abc.abstractmethod
    async def get_project_icon(self, project_id: str) -> str:
        """Return the project icon as a data URI, or ""."""

    @abc.abstractmethod
    async def get_author_avatar(self, username: str) -> str:
        """Return the author's profile image as a data URI, or ""."""

    async def get_project_versions(
        self,
        project_id: str,
        game_versions: Sequence[str] = (),
        loaders: Sequence[str] = (),
        release_types: Sequence[ReleaseType] = (),
        limit: int = 0,
        offset: int = 0,
    ) -> List[PlatformVersion]:
        versions = await self.list_versions(project_id, game_versions, loaders)
        filtered = filter_versions(versions, game_versions, loaders, release_types)
        return paginate(filtered, limit, offset)
