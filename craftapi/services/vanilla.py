"""
Vanilla Minecraft metadata from Mojang: the launcher version manifest and
the Java runtime index.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config import (
    DEFAULT_USER_AGENT,
    HTTP_TIMEOUT_SECONDS,
    MOJANG_JAVA_RUNTIME_URL,
    MOJANG_VERSION_MANIFEST_URL,
)
from ..errors import InvalidArgumentError, UpstreamUnavailableError
from ..http import fetch_json, open_session
from ..providers.utils import as_dict, as_list, as_str, coerce_int, parse_datetime
from ..schemas import (
    JreDownload,
    JreFile,
    JreRuntime,
    MinecraftVersion,
    MinecraftVersionHistory,
)

log = logging.getLogger(__name__)

SNAPSHOT = "snapshot"
# Console runtimes, not usable by the launcher
GAMECORE = "gamecore"


def parse_version_number(text: str) -> Optional[Tuple[int, ...]]:
    """
    "1.20.4" -> (1, 20, 4). Needs two to four numeric parts; anything else
    (snapshots like "23w13a", "1.20-pre1") is not a version number.
    """
    parts = text.strip().split(".")
    if not 2 <= len(parts) <= 4 or not all(part.isdigit() for part in parts):
        return None
    return tuple(int(part) for part in parts)


def _malformed(detail: str) -> UpstreamUnavailableError:
    return UpstreamUnavailableError(f"Failed to get Minecraft versions: {detail}")


def _required(entry: Dict[str, Any], key: str) -> str:
    value = entry.get(key)
    if value is None:
        raise _malformed(f"missing {key!r}")
    return str(value)


def _timestamp(entry: Dict[str, Any], key: str) -> datetime:
    text = _required(entry, key)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise _malformed(f"bad {key!r} timestamp {text!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_manifest(
    manifest: Any, version_filter: Optional[str] = None, snapshots: bool = False
) -> MinecraftVersionHistory:
    """
    Split the manifest into releases and snapshots.

    A filter such as "1.20" keeps releases >= 1.20 and < 1.21. Snapshots are
    listed only when requested and no filter is given. Old alpha and beta
    builds count as releases.
    """
    lower: Optional[Tuple[int, ...]] = None
    upper: Optional[Tuple[int, ...]] = None
    if version_filter:
        lower = parse_version_number(version_filter)
        if lower is None:
            raise InvalidArgumentError(f"Invalid version filter: {version_filter!r}")
        upper = (lower[0], lower[1] + 1)

    if not isinstance(manifest, dict):
        raise _malformed("manifest is not an object")
    latest = manifest.get("latest")
    versions = manifest.get("versions")
    if not isinstance(latest, dict) or not isinstance(versions, list):
        raise _malformed("missing 'latest' or 'versions'")
    latest_release = _required(latest, "release")
    latest_snapshot = _required(latest, "snapshot")

    releases: List[MinecraftVersion] = []
    snapshot_list: List[MinecraftVersion] = []
    for entry in versions:
        if not isinstance(entry, dict):
            raise _malformed("version entry is not an object")
        version_id = _required(entry, "id")
        version_type = _required(entry, "type")
        _required(entry, "url")
        time = _timestamp(entry, "time")
        release_time = _timestamp(entry, "releaseTime")

        if version_type == SNAPSHOT:
            if snapshots and lower is None:
                snapshot_list.append(
                    MinecraftVersion(
                        id=version_id,
                        type=version_type,
                        time=time,
                        release_time=release_time,
                        latest=version_id == latest_snapshot,
                    )
                )
            continue

        if lower is not None:
            number = parse_version_number(version_id)
            if number is None or not lower <= number < upper:
                continue
        releases.append(
            MinecraftVersion(
                id=version_id,
                type=version_type,
                time=time,
                release_time=release_time,
                latest=version_id == latest_release,
            )
        )

    return MinecraftVersionHistory(releases=releases, snapshots=snapshot_list)


async def get_minecraft_versions(
    version_filter: Optional[str] = None,
    snapshots: bool = False,
    manifest_url: str = MOJANG_VERSION_MANIFEST_URL,
) -> MinecraftVersionHistory:
    if version_filter and parse_version_number(version_filter) is None:
        raise InvalidArgumentError(f"Invalid version filter: {version_filter!r}")
    async with open_session(DEFAULT_USER_AGENT, HTTP_TIMEOUT_SECONDS) as session:
        manifest = await fetch_json(session, manifest_url, "mojang")
    if manifest is None:
        raise _malformed("empty response")
    history = parse_manifest(manifest, version_filter, snapshots)
    log.debug(
        "Loaded %d releases and %d snapshots from the Mojang manifest",
        len(history.releases),
        len(history.snapshots),
    )
    return history


# --- Java runtimes ---

def _runtime_index(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise UpstreamUnavailableError("Failed to get JRE binaries: index is not an object")
    return {platform: value for platform, value in payload.items() if platform != GAMECORE}


def _download(value: Any) -> JreDownload:
    entry = as_dict(value)
    return JreDownload(
        url=as_str(entry.get("url")),
        sha1=as_str(entry.get("sha1")),
        size=coerce_int(entry.get("size")) or 0,
    )


def parse_runtime_files(manifest: Any) -> List[JreFile]:
    """Plain files of a runtime manifest; directories and links are skipped."""
    files: List[JreFile] = []
    for filename, value in as_dict(as_dict(manifest).get("files")).items():
        entry = as_dict(value)
        if entry.get("type") != "file":
            continue
        downloads = as_dict(entry.get("downloads"))
        lzma = downloads.get("lzma")
        files.append(
            JreFile(
                filename=filename,
                raw=_download(downloads.get("raw")),
                lzma=_download(lzma) if isinstance(lzma, dict) else None,
            )
        )
    return files


async def _fetch_runtime(
    session: aiohttp.ClientSession, platform: str, channel: str, builds: Any
) -> Optional[JreRuntime]:
    build = as_dict(next(iter(as_list(builds)), None))
    manifest_url = as_str(as_dict(build.get("manifest")).get("url"))
    if not manifest_url:
        return None
    try:
        manifest = await fetch_json(session, manifest_url, "mojang")
    except UpstreamUnavailableError as exc:
        log.warning("Skipping %s runtime %s: %s", platform, channel, exc)
        return None
    if not isinstance(manifest, dict):
        log.warning("Skipping %s runtime %s: manifest is not an object", platform, channel)
        return None

    version = as_dict(build.get("version"))
    return JreRuntime(
        platform=platform,
        channel=channel,
        version=as_str(version.get("name")),
        released=parse_datetime(version.get("released")),
        files=parse_runtime_files(manifest),
    )


async def get_jre_binaries(
    operating_system: Optional[str] = None,
    runtime_url: str = MOJANG_JAVA_RUNTIME_URL,
) -> List[JreRuntime]:
    """
    Java runtimes Mojang ships per platform and channel, with their files.

    operating_system is a platform key such as "linux" or "windows-x64";
    None or blank lists every platform. A channel whose manifest cannot be
    loaded is left out; the others are still returned.
    """
    wanted = (operating_system or "").strip()
    async with open_session(DEFAULT_USER_AGENT, HTTP_TIMEOUT_SECONDS) as session:
        index = _runtime_index(await fetch_json(session, runtime_url, "mojang"))
        calls = [
            _fetch_runtime(session, platform, channel, builds)
            for platform, channels in index.items()
            if not wanted or platform == wanted
            for channel, builds in as_dict(channels).items()
        ]
        runtimes = await asyncio.gather(*calls)
    return [runtime for runtime in runtimes if runtime is not None]


async def get_supported_platforms(runtime_url: str = MOJANG_JAVA_RUNTIME_URL) -> List[str]:
    async with open_session(DEFAULT_USER_AGENT, HTTP_TIMEOUT_SECONDS) as session:
        index = _runtime_index(await fetch_json(session, runtime_url, "mojang"))
    return list(index)
