"""
Shared aiohttp helpers for the metadata services that sit outside the
platform adapters (Fabric meta, Mojang launcher manifest).
"""
from __future__ import annotations

import asyncio
from typing import Any, Dict, Optional

import aiohttp

from .config import DEFAULT_USER_AGENT, HTTP_TIMEOUT_SECONDS
from .errors import UpstreamUnavailableError


def open_session(
    user_agent: str = DEFAULT_USER_AGENT, timeout: float = HTTP_TIMEOUT_SECONDS
) -> aiohttp.ClientSession:
    return aiohttp.ClientSession(
        headers={"User-Agent": user_agent},
        timeout=aiohttp.ClientTimeout(total=timeout),
    )


async def fetch_json(
    session: aiohttp.ClientSession,
    url: str,
    source: str,
    params: Optional[Dict[str, Any]] = None,
) -> Any:
    """GET url and decode JSON; every failure becomes UpstreamUnavailableError."""
    try:
        async with session.get(url, params=params) as resp:
            if resp.status >= 400:
                raise UpstreamUnavailableError(
                    f"{source} returned {resp.status} for {url}", status=resp.status
                )
            return await resp.json(content_type=None)
    except aiohttp.ClientError as exc:
        raise UpstreamUnavailableError(f"{source} request failed: {exc}") from exc
    except asyncio.TimeoutError as exc:
        raise UpstreamUnavailableError(f"{source} request timed out: {url}") from exc
    except ValueError as exc:
        raise UpstreamUnavailableError(f"{source} returned invalid JSON: {exc}") from exc
