import asyncio
import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

import aiohttp

from ..errors import UpstreamUnavailableError
from ..schemas import (
    AdvancedSearchOptions,
    Author,
    GalleryImage,
    PlatformLink,
    PlatformProject,
    PlatformSource,
    PlatformVersion,
    PlatformVersionDependency,
    PlatformVersionFile,
    SearchResult,
)
from .base import PlatformProvider
from .utils import (
    CURSEFORGE_LOADER_IDS,
    SUPPORTED_LOADERS,
    as_dict,
    as_list,
    as_str,
    coerce_int,
    curseforge_relation_type,
    curseforge_release_type,
    normalize_curseforge_loader,
    parse_datetime,
    unique,
)

log = logging.getLogger(__name__)

CURSEFORGE_GAME_ID = 432
CURSEFORGE_CLASS_IDS = {
    "mod": 6,
    "modpack": 4471,
    "resourcepack": 4472,
}
CURSEFORGE_PROJECT_TYPES = {class_id: name for name, class_id in CURSEFORGE_CLASS_IDS.items()}
CURSEFORGE_SORT_RELEVANCE = 2
CURSEFORGE_HASH_SHA1 = 1
CURSEFORGE_SITE_URL = "https://www.curseforge.com"

FILES_PAGE_SIZE = 50
FILES_MAX_PAGES = 10

_AVATAR_RE = re.compile(r'(?<="avatarUrl":")https://static-cdn\.jtvnw\.net/jtv_user_pictures/[^"]*')


def _split_game_versions(values: Sequence[Any]) -> Tuple[List[str], List[str]]:
    """
    CurseForge mixes game versions, loaders and environment tags in one list.
    Returns (game_versions, loaders).
    """
    versions: List[str] = []
    loaders: List[str] = []
    for value in values or []:
        text = as_str(value).strip()
        if not text:
            continue
        if text.lower() in SUPPORTED_LOADERS:
            loaders.append(text.lower())
        elif text[0].isdigit():
            versions.append(text)
    return unique(versions), unique(loaders)


class CurseForgeProvider(PlatformProvider):
    name = "curseforge"

    def _headers(self) -> Dict[str, str]:
        if not self.settings.api_key:
            raise UpstreamUnavailableError(
                "CurseForge API is not configured. Set CURSEFORGE_API_KEY."
            )
        return {"User-Agent": self.settings.user_agent, "x-api-key": self.settings.api_key}

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
        class_id = CURSEFORGE_CLASS_IDS.get((project_type or "").lower())
        if class_id is None:
            return SearchResult.empty()
        params = self._search_params(query, limit, offset, class_id, [loader] if loader else [], game_version)
        return await self._search(query, limit, offset, params, project_type)

    async def advanced_search_projects(
        self, query: str, limit: int, offset: int, options: AdvancedSearchOptions
    ) -> SearchResult:
        class_id = None
        if options.project_types:
            class_id = CURSEFORGE_CLASS_IDS.get(options.project_types[0].lower())
            if class_id is None:
                return SearchResult.empty()
        game_version = options.minecraft_versions[0] if options.minecraft_versions else None
        params = self._search_params(query, limit, offset, class_id, options.loaders, game_version)
        page = await self._search(query, limit, offset, params, "")

        results = [
            project
            for project in page.results
            if (options.created_after is None or project.created >= options.created_after)
            and (options.created_before is None or project.created <= options.created_before)
            and (options.updated_after is None or project.updated >= options.updated_after)
            and (options.updated_before is None or project.updated <= options.updated_before)
        ]
        return page.model_copy(update={"results": results})

    def _search_params(
        self,
        query: str,
        limit: int,
        offset: int,
        class_id: Optional[int],
        loaders: Sequence[str],
        game_version: Optional[str],
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "gameId": CURSEFORGE_GAME_ID,
            "index": offset,
            "pageSize": limit,
            "sortField": CURSEFORGE_SORT_RELEVANCE,
            "sortOrder": "desc",
        }
        if class_id is not None:
            params["classId"] = class_id
        if query:
            params["searchFilter"] = query
        for loader in loaders:
            loader_id = CURSEFORGE_LOADER_IDS.get(loader.lower())
            if loader_id is not None:
                params["modLoaderType"] = loader_id
                break
        if game_version:
            params["gameVersion"] = game_version
        return params

    async def _search(
        self,
        query: str,
        limit: int,
        offset: int,
        params: Dict[str, Any],
        project_type: str,
    ) -> SearchResult:
        async with self._session() as session:
            data = as_dict(await self._get_json(session, "/mods/search", params=params))
            items = [item for item in as_list(data.get("data")) if isinstance(item, dict)]
            projects = await asyncio.gather(
                *(self._project_from_json(session, item, project_type) for item in items)
            )

        pagination = as_dict(data.get("pagination"))
        results = [project for project in projects if not project.is_empty]
        return SearchResult(
            results=results,
            limit=coerce_int(pagination.get("pageSize")) or limit,
            offset=coerce_int(pagination.get("index")) or offset,
            total_results=coerce_int(pagination.get("totalCount")) or len(results),
            query=query,
        )

    # --- Projects ---

    async def get_project(self, project_id: str, project_type: str = "") -> PlatformProject:
        mod_id = coerce_int(project_id)
        if mod_id is None:
            return PlatformProject.empty()
        async with self._session() as session:
            data = as_dict(await self._get_json(session, f"/mods/{mod_id}"))
            item = as_dict(data.get("data"))
            if not item:
                return PlatformProject.empty()
            return await self._project_from_json(session, item, project_type)

    async def _fetch_description(self, session: aiohttp.ClientSession, mod_id: str) -> str:
        try:
            data = as_dict(await self._get_json(session, f"/mods/{mod_id}/description"))
        except UpstreamUnavailableError as exc:
            log.warning("Failed to load CurseForge description for %s: %s", mod_id, exc)
            return ""
        return as_str(data.get("data"))

    async def _project_from_json(
        self, session: aiohttp.ClientSession, item: Dict[str, Any], project_type: str
    ) -> PlatformProject:
        mod_id = as_str(item.get("id"))
        if not mod_id:
            return PlatformProject.empty()

        game_versions: List[str] = []
        loaders: List[str] = []
        for entry in as_list(item.get("latestFilesIndexes")):
            index = as_dict(entry)
            if index.get("gameVersion"):
                game_versions.append(as_str(index.get("gameVersion")))
            loader_value = index.get("modLoader", index.get("loaderType"))
            if loader_value is not None:
                loaders.append(normalize_curseforge_loader(loader_value))
        for entry in as_list(item.get("latestFiles")):
            versions, tagged = _split_game_versions(as_list(as_dict(entry).get("gameVersions")))
            game_versions.extend(versions)
            loaders.extend(tagged)

        authors = []
        for entry in as_list(item.get("authors")):
            author = as_dict(entry)
            if not author:
                continue
            name = as_str(author.get("name"))
            authors.append(Author(
                id=as_str(author.get("id")),
                name=name,
                url=as_str(author.get("url")) or f"{CURSEFORGE_SITE_URL}/members/{name}/projects",
            ))

        gallery = []
        for entry in as_list(item.get("screenshots")):
            image = as_dict(entry)
            if not image:
                continue
            gallery.append(GalleryImage(
                url=as_str(image.get("url")),
                name=as_str(image.get("title")),
                description=as_str(image.get("description")),
            ))

        link_source = as_dict(item.get("links")) or item
        links = [
            PlatformLink(name=name, url=as_str(link_source.get(key)))
            for name, key in (
                ("Website", "websiteUrl"),
                ("Wiki", "wikiUrl"),
                ("Issues", "issuesUrl"),
                ("Source", "sourceUrl"),
            )
            if link_source.get(key)
        ]

        categories = unique(
            as_str(as_dict(entry).get("name")) for entry in as_list(item.get("categories"))
        )
        class_id = coerce_int(item.get("classId"))
        body = await self._fetch_description(session, mod_id)

        return PlatformProject(
            id=mod_id,
            slug=as_str(item.get("slug")),
            name=as_str(item.get("name")),
            description=as_str(item.get("summary")),
            body=body,
            downloads=coerce_int(item.get("downloadCount")) or 0,
            project_type=CURSEFORGE_PROJECT_TYPES.get(class_id, project_type),
            icon_url=as_str(as_dict(item.get("logo")).get("url")),
            authors=authors,
            categories=categories,
            loaders=unique(loaders),
            game_versions=unique(game_versions),
            gallery=gallery,
            links=links,
            platforms=[PlatformSource(id=mod_id, name="CurseForge")],
            created=parse_datetime(item.get("dateCreated")),
            updated=parse_datetime(item.get("dateModified")),
        )

    # --- Versions ---

    async def list_versions(
        self,
        project_id: str,
        game_versions: Sequence[str] = (),
        loaders: Sequence[str] = (),
    ) -> List[PlatformVersion]:
        mod_id = coerce_int(project_id)
        if mod_id is None:
            return []
        params: Dict[str, Any] = {"pageSize": FILES_PAGE_SIZE}
        if len(game_versions) == 1:
            params["gameVersion"] = game_versions[0]
        if len(loaders) == 1 and loaders[0].lower() in CURSEFORGE_LOADER_IDS:
            params["modLoaderType"] = CURSEFORGE_LOADER_IDS[loaders[0].lower()]

        versions: List[PlatformVersion] = []
        async with self._session() as session:
            for page in range(FILES_MAX_PAGES):
                params["index"] = page * FILES_PAGE_SIZE
                data = as_dict(await self._get_json(session, f"/mods/{mod_id}/files", params=params))
                batch = [entry for entry in as_list(data.get("data")) if isinstance(entry, dict)]
                versions.extend(self._version_from_json(entry) for entry in batch)
                if len(batch) < FILES_PAGE_SIZE:
                    break
        return versions

    async def get_project_version(self, project_id: str, version_id: str) -> PlatformVersion:
        mod_id = coerce_int(project_id)
        file_id = coerce_int(version_id)
        if mod_id is None or file_id is None:
            return PlatformVersion.empty()
        async with self._session() as session:
            data = as_dict(await self._get_json(session, f"/mods/{mod_id}/files/{file_id}"))
            entry = as_dict(data.get("data"))
            if not entry:
                return PlatformVersion.empty()
            changelog = await self._fetch_changelog(session, mod_id, file_id)
        return self._version_from_json(entry, changelog)

    async def _fetch_changelog(self, session: aiohttp.ClientSession, mod_id: int, file_id: int) -> str:
        try:
            data = as_dict(await self._get_json(session, f"/mods/{mod_id}/files/{file_id}/changelog"))
        except UpstreamUnavailableError as exc:
            log.warning("Failed to load CurseForge changelog for %s/%s: %s", mod_id, file_id, exc)
            return ""
        return as_str(data.get("data"))

    def _version_from_json(self, entry: Dict[str, Any], changelog: str = "") -> PlatformVersion:
        game_versions, loaders = _split_game_versions(as_list(entry.get("gameVersions")))

        file_hash = None
        for item in as_list(entry.get("hashes")):
            digest = as_dict(item)
            if coerce_int(digest.get("algo")) == CURSEFORGE_HASH_SHA1:
                file_hash = as_str(digest.get("value")) or None
                break

        dependencies = []
        for item in as_list(entry.get("dependencies")):
            dependency = as_dict(item)
            dep_id = as_str(dependency.get("modId"))
            if not dep_id:
                continue
            dependencies.append(PlatformVersionDependency(
                project_id=dep_id,
                dependency_type=curseforge_relation_type(dependency.get("relationType")),
            ))

        filename = as_str(entry.get("fileName"))
        return PlatformVersion(
            id=as_str(entry.get("id")),
            project_id=as_str(entry.get("modId")),
            name=as_str(entry.get("displayName")) or filename,
            version_number=as_str(entry.get("displayName")) or filename,
            release_type=curseforge_release_type(entry.get("releaseType")),
            published=parse_datetime(entry.get("fileDate")),
            downloads=coerce_int(entry.get("downloadCount")) or 0,
            changelog=changelog,
            platform="CurseForge",
            files=[PlatformVersionFile(
                url=as_str(entry.get("downloadUrl")),
                filename=filename,
                size=coerce_int(entry.get("fileLength")) or 0,
                hash=file_hash,
                primary=True,
            )],
            game_versions=game_versions,
            loaders=loaders,
            dependencies=dependencies,
        )

    # --- Images ---

    async def get_project_icon(self, project_id: str) -> str:
        mod_id = coerce_int(project_id)
        if mod_id is None:
            return ""
        async with self._session() as session:
            try:
                data = as_dict(await self._get_json(session, f"/mods/{mod_id}"))
            except UpstreamUnavailableError as exc:
                log.warning("Failed to load CurseForge icon for %s: %s", project_id, exc)
                return ""
            logo = as_dict(as_dict(data.get("data")).get("logo"))
            return await self._fetch_data_uri(session, as_str(logo.get("url")))

    async def get_author_avatar(self, username: str) -> str:
        if not username:
            return ""
        profile_url = f"{CURSEFORGE_SITE_URL}/members/{username}/projects"
        async with self._session() as session:
            try:
                async with session.get(profile_url) as resp:
                    resp.raise_for_status()
                    html = await resp.text()
            except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
                log.warning("Failed to retrieve profile image for %s: %s", username, exc)
                return ""
            match = _AVATAR_RE.search(html)
            if not match:
                return ""
            return await self._fetch_data_uri(session, match.group(0))
