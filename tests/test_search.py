import logging
from typing import List

import pytest

from craftapi.config import ProviderSettings
from craftapi.errors import UpstreamUnavailableError
from craftapi.providers.base import PlatformProvider, filter_versions, paginate
from craftapi.schemas import (
    AdvancedSearchOptions,
    PlatformProject,
    PlatformVersion,
    ReleaseType,
    SearchResult,
)
from craftapi.services.search import PlatformAggregator


class FakeProvider(PlatformProvider):
    """In-memory adapter; `fail` makes every call raise."""

    def __init__(self, name, projects=(), total=None, versions=(), fail=None):
        super().__init__(ProviderSettings(base_url="http://fake.invalid"))
        self.name = name
        self.projects = list(projects)
        self.total = len(self.projects) if total is None else total
        self.versions = list(versions)
        self.fail = fail
        self.calls: List[str] = []

    def _check(self, call):
        self.calls.append(call)
        if self.fail is not None:
            raise self.fail

    async def search_projects(self, query, project_type, loader=None, game_version=None, limit=20, offset=0):
        self._check("search")
        return SearchResult(
            results=self.projects[:limit], limit=limit, offset=offset, total_results=self.total, query=query
        )

    async def advanced_search_projects(self, query, limit, offset, options):
        return await self.search_projects(query, "", limit=limit, offset=offset)

    async def get_project(self, project_id, project_type=""):
        self._check("project")
        for project in self.projects:
            if project.id == project_id:
                return project
        return PlatformProject.empty()

    async def list_versions(self, project_id, game_versions=(), loaders=()):
        self._check("versions")
        return list(self.versions)

    async def get_project_version(self, project_id, version_id):
        self._check("version")
        for version in self.versions:
            if version.id == version_id:
                return version
        return PlatformVersion.empty()

    async def get_project_icon(self, project_id):
        self._check("icon")
        return f"data:image/png;base64,{self.name}" if self.projects else ""

    async def get_author_avatar(self, username):
        self._check("avatar")
        return ""


def _project(project_id, name, downloads=0):
    return PlatformProject(id=project_id, name=name, downloads=downloads)


def _version(version_id, game_versions=(), loaders=(), release_type=ReleaseType.RELEASE):
    return PlatformVersion(
        id=version_id,
        project_id="p",
        game_versions=list(game_versions),
        loaders=list(loaders),
        release_type=release_type,
    )


@pytest.mark.asyncio
async def test_merges_and_ranks_by_name_then_downloads():
    modrinth = FakeProvider("modrinth", [_project("q", "Quilt", downloads=900), _project("f1", "Forge", downloads=10)])
    curseforge = FakeProvider("curseforge", [_project("f2", "Forge", downloads=50)], total=40)
    aggregator = PlatformAggregator([modrinth, curseforge])

    result = await aggregator.search_projects("Forge", limit=10)

    assert [p.id for p in result.results] == ["f2", "f1", "q"]
    assert result.total_results == 42
    assert result.query == "Forge"
    assert result.errors == []


@pytest.mark.asyncio
async def test_forge_ranks_before_quilt():
    provider = FakeProvider("modrinth", [_project("q", "Quilt", 10_000), _project("f", "Forge", 1)])
    result = await PlatformAggregator([provider]).search_projects("forge")
    assert [p.name for p in result.results] == ["Forge", "Quilt"]


@pytest.mark.asyncio
async def test_one_failing_adapter_is_isolated():
    good = FakeProvider("modrinth", [_project("a", "Sodium", 5)], total=7)
    bad = FakeProvider("curseforge", fail=UpstreamUnavailableError("boom", status=503))
    result = await PlatformAggregator([good, bad]).search_projects("sodium")

    assert [p.id for p in result.results] == ["a"]
    assert result.total_results == 7
    assert len(result.errors) == 1
    assert result.errors[0].source == "curseforge"
    assert "boom" in result.errors[0].detail


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated_too():
    good = FakeProvider("modrinth", [_project("a", "Lithium")])
    bad = FakeProvider("curseforge", fail=RuntimeError("bug"))
    result = await PlatformAggregator([good, bad]).search_projects("lithium")
    assert [p.id for p in result.results] == ["a"]
    assert result.errors[0].source == "curseforge"


@pytest.mark.asyncio
async def test_all_failing_gives_empty_page():
    bad = FakeProvider("modrinth", fail=UpstreamUnavailableError("down"))
    result = await PlatformAggregator([bad]).search_projects("x")
    assert result.is_empty
    assert result.total_results == 0


@pytest.mark.asyncio
async def test_limit_truncates_merged_results():
    a = FakeProvider("modrinth", [_project(f"m{i}", f"Mod {i}") for i in range(3)], total=30)
    b = FakeProvider("curseforge", [_project(f"c{i}", f"Mod {i}") for i in range(3)], total=25)
    result = await PlatformAggregator([a, b]).search_projects("mod", limit=3, offset=6)
    assert len(result.results) == 3
    assert result.limit == 3
    assert result.offset == 6
    assert result.total_results == 55


@pytest.mark.asyncio
async def test_advanced_search_restricts_platforms():
    a = FakeProvider("modrinth", [_project("m", "Mod")])
    b = FakeProvider("curseforge", [_project("c", "Mod")])
    options = AdvancedSearchOptions(platforms=["CurseForge"])
    result = await PlatformAggregator([a, b]).advanced_search_projects("mod", 10, 0, options)
    assert [p.id for p in result.results] == ["c"]
    assert a.calls == []


@pytest.mark.asyncio
async def test_get_project_first_non_empty_wins():
    a = FakeProvider("modrinth", [])
    b = FakeProvider("curseforge", [_project("238222", "JEI")])
    project = await PlatformAggregator([a, b]).get_project("238222")
    assert project.name == "JEI"


@pytest.mark.asyncio
async def test_get_project_skips_failures():
    a = FakeProvider("modrinth", fail=UpstreamUnavailableError("down"))
    b = FakeProvider("curseforge", [_project("1", "JEI")])
    project = await PlatformAggregator([a, b]).get_project("1")
    assert project.id == "1"


@pytest.mark.asyncio
async def test_get_project_not_found_is_empty_sentinel():
    a = FakeProvider("modrinth")
    project = await PlatformAggregator([a]).get_project("nope")
    assert project.is_empty


@pytest.mark.asyncio
async def test_get_project_versions_filters_and_paginates():
    versions = [
        _version("v1", ["1.20.1"], ["fabric"]),
        _version("v2", ["1.20.1"], ["forge"]),
        _version("v3", ["1.19.2"], ["fabric"]),
        _version("v4", ["1.20.1", "1.20.2"], ["Fabric", "Quilt"], ReleaseType.BETA),
    ]
    provider = FakeProvider("modrinth", versions=versions)
    aggregator = PlatformAggregator([provider])

    matched = await aggregator.get_project_versions("p", ["1.20.1"], ["fabric"])
    assert [v.id for v in matched] == ["v1", "v4"]

    releases = await aggregator.get_project_versions("p", ["1.20.1"], ["fabric"], [ReleaseType.RELEASE])
    assert [v.id for v in releases] == ["v1"]

    page = await aggregator.get_project_versions("p", limit=2, offset=1)
    assert [v.id for v in page] == ["v2", "v3"]


@pytest.mark.asyncio
async def test_get_project_version_falls_through():
    a = FakeProvider("modrinth", versions=[])
    b = FakeProvider("curseforge", versions=[_version("4711")])
    version = await PlatformAggregator([a, b]).get_project_version("p", "4711")
    assert version.id == "4711"

    missing = await PlatformAggregator([a]).get_project_version("p", "4711")
    assert missing.is_empty


@pytest.mark.asyncio
async def test_icon_and_avatar_first_non_blank():
    a = FakeProvider("modrinth")
    b = FakeProvider("curseforge", [_project("1", "JEI")])
    aggregator = PlatformAggregator([a, b])
    assert await aggregator.get_project_icon("1") == "data:image/png;base64,curseforge"
    assert await aggregator.get_author_avatar("someone") == ""


def test_filter_versions_empty_request_matches_all():
    versions = [_version("a", ["1.20"], ["forge"]), _version("b")]
    assert filter_versions(versions) == versions


def test_filter_versions_is_case_insensitive():
    versions = [_version("a", ["1.20.1"], ["NeoForge"])]
    assert filter_versions(versions, loaders=["neoforge"]) == versions
    assert filter_versions(versions, loaders=["forge"]) == []


def test_paginate():
    items = list(range(10))
    assert paginate(items, 3, 0) == [0, 1, 2]
    assert paginate(items, 3, 8) == [8, 9]
    assert paginate(items, 0, 7) == [7, 8, 9]
    assert paginate(items, 5, 20) == []


def test_default_aggregator_order():
    from craftapi.services.search import default_aggregator

    assert [p.name for p in default_aggregator().providers] == ["modrinth", "curseforge"]


@pytest.mark.asyncio
async def test_lookup_logs_upstream_failures_without_traceback(caplog):
    down = FakeProvider("curseforge", fail=UpstreamUnavailableError("CurseForge API is not configured"))
    aggregator = PlatformAggregator([down])

    with caplog.at_level(logging.WARNING, logger="craftapi.services.search"):
        assert (await aggregator.get_project("1")).is_empty
        assert await aggregator.get_project_versions("1") == []
        assert (await aggregator.get_project_version("1", "2")).is_empty
        assert await aggregator.get_project_icon("1") == ""
        assert await aggregator.get_author_avatar("mezz") == ""

    assert len(caplog.records) == 5
    assert all(record.levelno == logging.WARNING for record in caplog.records)
    assert all(record.exc_info is None for record in caplog.records)


@pytest.mark.asyncio
async def test_lookup_logs_unexpected_errors_with_traceback(caplog):
    broken = FakeProvider("modrinth", fail=RuntimeError("bug"))
    fallback = FakeProvider("curseforge", [_project("1", "JEI")])

    with caplog.at_level(logging.WARNING, logger="craftapi.services.search"):
        project = await PlatformAggregator([broken, fallback]).get_project("1")

    assert project.name == "JEI"
    (record,) = caplog.records
    assert record.levelno == logging.ERROR
    assert record.exc_info is not None
