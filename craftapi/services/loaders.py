"""
Fabric installer and loader metadata from meta.fabricmc.net.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from ..config import DEFAULT_USER_AGENT, FABRIC_META_URL, HTTP_TIMEOUT_SECONDS
from ..http import fetch_json, open_session
from ..providers.utils import as_dict, as_list, as_str
from ..schemas import LoaderFile, LoaderVersion

log = logging.getLogger(__name__)


def _is_absolute_url(url: str) -> bool:
    parsed = urlparse(url)
    return bool(parsed.scheme and parsed.netloc)


def parse_installers(payload: Any) -> List[LoaderVersion]:
    """Installer entries with a usable download URL; the rest are skipped."""
    installers: List[LoaderVersion] = []
    for entry in as_list(as_dict(payload).get("installer")):
        entry = as_dict(entry)
        url = as_str(entry.get("url"))
        if not _is_absolute_url(url):
            log.debug("Skipping Fabric installer with invalid url %r", url)
            continue
        installers.append(
            LoaderVersion(
                version=as_str(entry.get("version")),
                minecraft_version=entry.get("gameVersion") or None,
                stable=bool(entry.get("stable", False)),
                files=[LoaderFile(filename=url.rstrip("/").split("/")[-1], url=url)],
            )
        )
    return installers


def parse_loader_versions(payload: Any) -> List[str]:
    return [as_str(as_dict(entry).get("version")) for entry in as_list(as_dict(payload).get("loader"))]


class FabricMetaClient:
    def __init__(
        self,
        base_url: str = FABRIC_META_URL,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout

    async def _versions(self) -> Dict[str, Any]:
        async with open_session(self.user_agent, self.timeout) as session:
            payload = await fetch_json(session, f"{self.base_url}/versions", "fabric")
        return as_dict(payload)

    async def get_installers(self) -> List[LoaderVersion]:
        return parse_installers(await self._versions())

    async def get_installer(self, version: str) -> Optional[LoaderVersion]:
        for installer in await self.get_installers():
            if installer.version == version:
                return installer
        return None

    async def get_loader_versions(self) -> List[str]:
        return parse_loader_versions(await self._versions())
