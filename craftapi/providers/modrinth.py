import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from ..errors import UpstreamUnavailableError
from ..schemas import (
    AdvancedSearchOptions,
    Author,
    DependencyType,
    GalleryImage,
    PlatformLink,
    PlatformProject,
    PlatformSource,
    PlatformVersion,
    PlatformVersionDependency,
    PlatformVersionFile,
    ReleaseType,
    SearchResult,
    SupportedSides,
)
from .base import PlatformProvider
from .utils import (
    as_dict,
    as_list,
    as_str,
    coerce_int,
    parse_datetime,
    split_loaders,
    str_list,
    unique,
)

log = logging.getLogger(__name__)

MODRINTH_SITE_URL = "https://modrinth.com"
SIDE_VALUES = ("required", "optional")


def build_facets(groups: Sequence[Sequence[str]]) -> str:
    """
    Encode facet groups for the search endpoint. Entries inside a group are
    OR-ed, groups are AND-ed. Empty groups are dropped.
    """
    return json.dumps([list(group) for group in groups if group])


def _timestamp_facet(field: str, op: str, value: Optional[datetime]) -> List[str]:
    if value is None:
        return []
    return [f"{field}{op}{int(value.timestamp())}"]


def _facet_group(prefix: str, values: Sequence[str]) -> List[str]:
    return [f"{prefix}:{value}" for value in values if value]


class ModrinthProvider(PlatformProvider):
    name = "modrinth"

    # --- Search ---

    async def search_projects(
        self,
        query: str,
        project_type: str,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult:
        facets = [
            _facet_group("project_type", [project_type]),
            _facet_group("categories", [loader.lower()] if loader else []),
            _facet_group("versions", [game_version] if game_version else []),
        ]
        return await self._search(query, limit, offset, facets, project_type)

    async def advanced_search_projects(
        self, query: str, limit: int, offset: int, options: AdvancedSearchOptions
    ) -> SearchResult:
        facets = [
            _facet_group("project_type", options.project_types),
            _facet_group("categories", options.categories),
            _facet_group("categories", [loader.lower() for loader in options.loaders]),
            _facet_group("versions", options.minecraft_versions),
            _facet_group("client_side", SIDE_VALUES) if options.client_side else [],
            _facet_group("server_side", SIDE_VALUES) if options.server_side else [],
            _timestamp_facet("created_timestamp", ">=", options.created_after),
            _timestamp_facet("created_timestamp", "<=", options.created_before),
            _timestamp_facet("modified_timestamp", ">=", options.updated_after),
            _timestamp_facet("modified_timestamp", "<=", options.updated_before),
        ]
        project_type = options.project_types[0] if len(options.project_types) == 1 else ""
        return await self._search(query, limit, offset, facets, project_type)

    async def _search(
        self,
        query: str,
        limit: int,
        offset: int,
        facets: Sequence[Sequence[str]],
        project_type: str,
    ) -> SearchResult:
        params: Dict[str, Any] = {
            "query": query,
            "limit": limit,
            "offset": offset,
            "index": "relevance",
        }
        encoded = build_facets(facets)
        if encoded != "[]":
            params["facets"] = encoded

        async with self._session() as session:
            data = as_dict(await self._get_json(session, "/search", params=params))
            hits = [hit for hit in as_list(data.get("hits")) if isinstance(hit, dict)]
            projects = await asyncio.gather(
                *(self._enrich_hit(session, hit, project_type) for hit in hits)
            )

        results = [project for project in projects if not project.is_empty]
        return SearchResult(
            results=results,
            limit=coerce_int(data.get("limit")) or limit,
            offset=coerce_int(data.get("offset")) or offset,
            total_results=coerce_int(data.get("total_hits")) or len(results),
            query=query,
        )

    async def _enrich_hit(
        self, session: aiohttp.ClientSession, hit: Dict[str, Any], project_type: str
    ) -> PlatformProject:
        """Fetch the full project for a hit, falling back to the hit itself."""
        project_id = as_str(hit.get("project_id"))
        if not project_id:
            return PlatformProject.empty()
        try:
            project = await self._fetch_project(session, project_id, project_type)
        except UpstreamUnavailableError as exc:
            log.warning("Modrinth project %s unavailable, using search hit: %s", project_id, exc)
            project = PlatformProject.empty()
        if project.is_empty:
            return self._project_from_hit(hit, project_type)
        return project

    def _project_from_hit(self, hit: Dict[str, Any], project_type: str) -> PlatformProject:
        project_id = as_str(hit.get("project_id"))
        loaders, categories = split_loaders(
            str_list(hit.get("categories")) + str_list(hit.get("display_categories"))
        )
        author = as_str(hit.get("author"))
        authors = [Author(name=author, url=f"{MODRINTH_SITE_URL}/user/{author}")] if author else []
        gallery = [GalleryImage(url=url) for url in str_list(hit.get("gallery"))]
        return PlatformProject(
            id=project_id,
            slug=as_str(hit.get("slug")),
            name=as_str(hit.get("title")),
            description=as_str(hit.get("description")),
            downloads=coerce_int(hit.get("downloads")) or 0,
            project_type=as_str(hit.get("project_type")) or project_type,
            icon_url=as_str(hit.get("icon_url")),
            authors=authors,
            categories=categories,
            loaders=loaders,
            game_versions=str_list(hit.get("versions")),
            gallery=gallery,
            platforms=[PlatformSource(id=project_id, name="Modrinth")],
            sides=SupportedSides(
                client=as_str(hit.get("client_side")) or "unknown",
                server=as_str(hit.get("server_side")) or "unknown",
            ),
            created=parse_datetime(hit.get("date_created")),
            updated=parse_datetime(hit.get("date_modified")),
        )

    # --- Projects ---

    async def get_project(self, project_id: str, project_type: str = "") -> PlatformProject:
        if not project_id or not project_id.strip():
            return PlatformProject.empty()
        async with self._session() as session:
            return await self._fetch_project(session, project_id, project_type)

    async def _fetch_project(
        self, session: aiohttp.ClientSession, project_id: str, project_type: str
    ) -> PlatformProject:
        data = await self._get_json(session, f"/project/{project_id}")
        if not isinstance(data, dict):
            return PlatformProject.empty()
        authors = await self._fetch_members(session, project_id)
        return self._project_from_json(data, project_id, project_type, authors)

    async def _fetch_members(self, session: aiohttp.ClientSession, project_id: str) -> List[Author]:
        try:
            members = await self._get_json(session, f"/project/{project_id}/members")
        except UpstreamUnavailableError as exc:
            log.warning("Failed to load Modrinth members for %s: %s", project_id, exc)
            return []

        authors: List[Author] = []
        for member in as_list(members):
            user = as_dict(as_dict(member).get("user"))
            if not user:
                continue
            username = as_str(user.get("username"))
            authors.append(Author(
                id=as_str(user.get("id")),
                name=as_str(user.get("name")) or username,
                url=f"{MODRINTH_SITE_URL}/user/{username}",
            ))
        return authors

    def _project_from_json(
        self,
        data: Dict[str, Any],
        project_id: str,
        project_type: str,
        authors: List[Author],
    ) -> PlatformProject:
        tagged_loaders, categories = split_loaders(
            str_list(data.get("categories")) + str_list(data.get("additional_categories"))
        )
        loaders = unique([loader.lower() for loader in str_list(data.get("loaders"))] + tagged_loaders)

        gallery = []
        for item in as_list(data.get("gallery")):
            image = as_dict(item)
            if not image:
                continue
            gallery.append(GalleryImage(
                url=as_str(image.get("url")),
                name=as_str(image.get("title")),
                description=as_str(image.get("description")),
                created=parse_datetime(image.get("created")),
            ))

        links = []
        for item in as_list(data.get("donation_urls")):
            donation = as_dict(item)
            if donation.get("url"):
                links.append(PlatformLink(
                    name=as_str(donation.get("platform")) or "Donation",
                    url=as_str(donation.get("url")),
                ))
        for name, key in (
            ("Issues", "issues_url"),
            ("Source", "source_url"),
            ("Wiki", "wiki_url"),
            ("Discord", "discord_url"),
        ):
            if data.get(key):
                links.append(PlatformLink(name=name, url=as_str(data.get(key))))

        resolved_id = as_str(data.get("id")) or project_id
        return PlatformProject(
            id=resolved_id,
            slug=as_str(data.get("slug")),
            name=as_str(data.get("title")),
            description=as_str(data.get("description")),
            body=as_str(data.get("body")),
            downloads=coerce_int(data.get("downloads")) or 0,
            project_type=as_str(data.get("project_type")) or project_type,
            icon_url=as_str(data.get("icon_url")),
            authors=authors,
            categories=categories,
            loaders=loaders,
            game_versions=str_list(data.get("game_versions")),
            gallery=gallery,
            links=links,
            platforms=[PlatformSource(id=resolved_id, name="Modrinth")],
            sides=SupportedSides(
                client=as_str(data.get("client_side")) or "unknown",
                server=as_str(data.get("server_side")) or "unknown",
            ),
            created=parse_datetime(data.get("published")),
            updated=parse_datetime(data.get("updated")),
        )

    # --- Versions ---

    async def list_versions(
        self,
        project_id: str,
        game_versions: Sequence[str] = (),
        loaders: Sequence[str] = (),
    ) -> List[PlatformVersion]:
        params: Dict[str, Any] = {}
        if game_versions:
            params["game_versions"] = json.dumps(list(game_versions))
        if loaders:
            params["loaders"] = json.dumps([loader.lower() for loader in loaders])
        async with self._session() as session:
            data = await self._get_json(session, f"/project/{project_id}/version", params=params)
        return [
            self._version_from_json(item)
            for item in as_list(data)
            if isinstance(item, dict)
        ]

    async def get_project_version(self, project_id: str, version_id: str) -> PlatformVersion:
        if not project_id or not version_id:
            return PlatformVersion.empty()
        async with self._session() as session:
            data = await self._get_json(session, f"/project/{project_id}/version/{version_id}")
        if not isinstance(data, dict):
            return PlatformVersion.empty()
        return self._version_from_json(data)

    def _version_from_json(self, data: Dict[str, Any]) -> PlatformVersion:
        files = []
        for item in as_list(data.get("files")):
            entry = as_dict(item)
            if not entry:
                continue
            hashes = as_dict(entry.get("hashes"))
            files.append(PlatformVersionFile(
                url=as_str(entry.get("url")),
                filename=as_str(entry.get("filename")),
                size=coerce_int(entry.get("size")) or 0,
                hash=hashes.get("sha1") or hashes.get("sha512"),
                primary=bool(entry.get("primary")),
            ))

        dependencies = []
        for item in as_list(data.get("dependencies")):
            entry = as_dict(item)
            dep_project = as_str(entry.get("project_id"))
            dep_version = entry.get("version_id")
            if not dep_project and not dep_version:
                continue
            dependencies.append(PlatformVersionDependency(
                project_id=dep_project,
                version_id=as_str(dep_version) or None,
                dependency_type=DependencyType.parse(entry.get("dependency_type")),
            ))

        return PlatformVersion(
            id=as_str(data.get("id")),
            project_id=as_str(data.get("project_id")),
            name=as_str(data.get("name")),
            version_number=as_str(data.get("version_number")),
            release_type=ReleaseType.parse(data.get("version_type")),
            published=parse_datetime(data.get("date_published")),
            downloads=coerce_int(data.get("downloads")) or 0,
            changelog=as_str(data.get("changelog")),
            platform="Modrinth",
            files=files,
            game_versions=str_list(data.get("game_versions")),
            loaders=[loader.lower() for loader in str_list(data.get("loaders"))],
            dependencies=dependencies,
        )

    # --- Images ---

    async def get_project_icon(self, project_id: str) -> str:
        if not project_id or not project_id.strip():
            return ""
        async with self._session() as session:
            try:
                data = as_dict(await self._get_json(session, f"/project/{project_id}"))
            except UpstreamUnavailableError as exc:
                log.warning("Failed to load Modrinth icon for %s: %s", project_id, exc)
                return ""
            return await self._fetch_data_uri(session, as_str(data.get("icon_url")))

    async def get_author_avatar(self, username: str) -> str:
        if not username:
            return ""
        async with self._session() as session:
            try:
                data = as_dict(await self._get_json(session, f"/user/{username}"))
            except UpstreamUnavailableError as exc:
                log.warning("Failed to load Modrinth user %s: %s", username, exc)
                return ""
            return await self._fetch_data_uri(session, as_str(data.get("avatar_url")))
