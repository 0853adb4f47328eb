"""
Helpers for turning loosely shaped upstream JSON into the common schema.
Nothing here raises on bad input; values degrade to type-appropriate defaults.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..schemas import EPOCH, DependencyType, ReleaseType

SUPPORTED_LOADERS = frozenset({
    "bukkit",
    "bungeecord",
    "canvas",
    "datapack",
    "fabric",
    "folia",
    "forge",
    "iris",
    "liteloader",
    "minecraft",
    "modloader",
    "neoforge",
    "optifine",
    "paper",
    "purpur",
    "quilt",
    "rift",
    "spigot",
    "sponge",
    "vanilla",
    "velocity",
    "waterfall",
})

UNKNOWN = "unknown"

CURSEFORGE_LOADERS = {
    1: "forge",
    4: "fabric",
    5: "quilt",
    6: "neoforge",
}
CURSEFORGE_LOADER_IDS = {name: code for code, name in CURSEFORGE_LOADERS.items()}

CURSEFORGE_RELEASE_TYPES = {
    1: ReleaseType.RELEASE,
    2: ReleaseType.BETA,
    3: ReleaseType.ALPHA,
}

CURSEFORGE_RELATION_TYPES = {
    1: DependencyType.EMBEDDED,
    2: DependencyType.OPTIONAL,
    3: DependencyType.REQUIRED,
}


def coerce_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


def as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def str_list(value: Any) -> List[str]:
    return [str(item) for item in as_list(value) if item not in (None, "")]


def parse_datetime(value: Any) -> datetime:
    if not value or not isinstance(value, str):
        return EPOCH
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_curseforge_loader(value: Any) -> str:
    code = coerce_int(value)
    if code is not None:
        return CURSEFORGE_LOADERS.get(code, UNKNOWN)
    text = as_str(value).strip().lower()
    if text in CURSEFORGE_LOADER_IDS:
        return text
    return UNKNOWN


def curseforge_release_type(value: Any) -> ReleaseType:
    code = coerce_int(value)
    if code is None:
        return ReleaseType.parse(value)
    return CURSEFORGE_RELEASE_TYPES.get(code, ReleaseType.UNKNOWN)


def curseforge_relation_type(value: Any) -> DependencyType:
    code = coerce_int(value)
    if code is None:
        return DependencyType.parse(value)
    return CURSEFORGE_RELATION_TYPES.get(code, DependencyType.UNKNOWN)


def split_loaders(tags: Iterable[Any]) -> Tuple[List[str], List[str]]:
    """
    Separate loader tags from category tags for payloads that mix them.
    Returns (loaders, categories), each de-duplicated in first-seen order.
    """
    loaders: List[str] = []
    categories: List[str] = []
    for tag in tags or []:
        if not tag:
            continue
        text = str(tag)
        bucket = loaders if text.strip().lower() in SUPPORTED_LOADERS else categories
        value = text.strip().lower() if bucket is loaders else text
        if value not in bucket:
            bucket.append(value)
    return loaders, categories


def unique(values: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return seen
