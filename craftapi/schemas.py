"""
Common schema that Modrinth and CurseForge payloads are normalized into.
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class ReleaseType(str, Enum):
    RELEASE = "release"
    BETA = "beta"
    ALPHA = "alpha"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "ReleaseType":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class DependencyType(str, Enum):
    REQUIRED = "required"
    OPTIONAL = "optional"
    EMBEDDED = "embedded"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "DependencyType":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


class Author(_Frozen):
    id: str = ""
    name: str = ""
    url: str = ""


class GalleryImage(_Frozen):
    url: str = ""
    name: str = ""
    description: str = ""
    created: datetime = EPOCH


class PlatformLink(_Frozen):
    name: str
    url: str = ""


class PlatformSource(_Frozen):
    id: str
    name: str


class SupportedSides(_Frozen):
    client: str = "unknown"
    server: str = "unknown"


class PlatformProject(_Frozen):
    id: str = ""
    slug: str = ""
    name: str = ""
    description: str = ""
    body: str = ""
    downloads: int = 0
    project_type: str = ""
    icon_url: str = ""
    authors: List[Author] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    loaders: List[str] = Field(default_factory=list)
    game_versions: List[str] = Field(default_factory=list)
    gallery: List[GalleryImage] = Field(default_factory=list)
    links: List[PlatformLink] = Field(default_factory=list)
    platforms: List[PlatformSource] = Field(default_factory=list)
    sides: SupportedSides = Field(default_factory=SupportedSides)
    created: datetime = EPOCH
    updated: datetime = EPOCH

    @classmethod
    def empty(cls) -> "PlatformProject":
        """The "not found" sentinel."""
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.id == ""


class PlatformVersionFile(_Frozen):
    url: str = ""
    filename: str = ""
    size: int = 0
    hash: Optional[str] = None
    primary: bool = False


class PlatformVersionDependency(_Frozen):
    project_id: str
    version_id: Optional[str] = None
    dependency_type: DependencyType = DependencyType.UNKNOWN


class PlatformVersion(_Frozen):
    id: str = ""
    project_id: str = ""
    name: str = ""
    version_number: str = ""
    release_type: ReleaseType = ReleaseType.UNKNOWN
    published: datetime = EPOCH
    downloads: int = 0
    changelog: str = ""
    platform: str = ""
    files: List[PlatformVersionFile] = Field(default_factory=list)
    game_versions: List[str] = Field(default_factory=list)
    loaders: List[str] = Field(default_factory=list)
    dependencies: List[PlatformVersionDependency] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "PlatformVersion":
        return cls()

    @property
    def is_empty(self) -> bool:
        return self.id == ""


class SourceError(_Frozen):
    source: str
    detail: str


class SearchResult(_Frozen):
    """
    One page of projects. total_results is what upstream reported and can
    exceed len(results).
    """

    results: List[PlatformProject] = Field(default_factory=list)
    limit: int = 0
    offset: int = 0
    total_results: int = 0
    query: str = ""
    errors: List[SourceError] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> "SearchResult":
        return cls()

    @property
    def is_empty(self) -> bool:
        return len(self.results) == 0


class AdvancedSearchOptions(_Frozen):
    project_types: List[str] = Field(default_factory=list)
    platforms: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    minecraft_versions: List[str] = Field(default_factory=list)
    loaders: List[str] = Field(default_factory=list)
    created_after: Optional[datetime] = None
    created_before: Optional[datetime] = None
    updated_after: Optional[datetime] = None
    updated_before: Optional[datetime] = None
    client_side: bool = False
    server_side: bool = False


class ServerStatusResult(_Frozen):
    """Parsed status response of a Minecraft server."""

    host: str
    port: int
    raw: Dict[str, Any] = Field(default_factory=dict)
    known: bool = True

    @classmethod
    def unknown(cls, host: str, port: int) -> "ServerStatusResult":
        return cls(
            host=host,
            port=port,
            raw={"status": "Unknown", "ip": host, "name": "Unknown response"},
            known=False,
        )

    @property
    def version(self) -> Dict[str, Any]:
        value = self.raw.get("version")
        return value if isinstance(value, dict) else {}

    @property
    def players(self) -> Dict[str, Any]:
        value = self.raw.get("players")
        return value if isinstance(value, dict) else {}

    @property
    def description(self) -> Any:
        return self.raw.get("description", "")

    @property
    def favicon(self) -> str:
        value = self.raw.get("favicon")
        return value if isinstance(value, str) else ""


class LoaderFile(_Frozen):
    filename: str
    url: str
    type: str = "installer"


class LoaderVersion(_Frozen):
    version: str
    minecraft_version: Optional[str] = None
    stable: bool = False
    files: List[LoaderFile] = Field(default_factory=list)


class MinecraftVersion(_Frozen):
    id: str
    type: str
    time: datetime
    release_time: datetime
    latest: bool = False


class MinecraftVersionHistory(_Frozen):
    releases: List[MinecraftVersion] = Field(default_factory=list)
    snapshots: List[MinecraftVersion] = Field(default_factory=list)


class JreDownload(_Frozen):
    url: str = ""
    sha1: str = ""
    size: int = 0


class JreFile(_Frozen):
    filename: str
    raw: JreDownload = Field(default_factory=JreDownload)
    lzma: Optional[JreDownload] = None


class JreRuntime(_Frozen):
    """One Java runtime channel build for one platform (e.g. linux / java-runtime-gamma)."""

    platform: str
    channel: str
    version: str = ""
    released: datetime = EPOCH
    files: List[JreFile] = Field(default_factory=list)
