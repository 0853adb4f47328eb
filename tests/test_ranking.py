from craftapi.schemas import PlatformProject
from craftapi.services.ranking import levenshtein_distance, sort_by_name_similarity


def _project(name: str, downloads: int = 0) -> PlatformProject:
    return PlatformProject(id=name.lower(), name=name, downloads=downloads)


def test_distance_basics():
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("abc", "") == 3
    assert levenshtein_distance("abc", "abc") == 0
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("flaw", "lawn") == 2


def test_distance_is_symmetric():
    assert levenshtein_distance("sodium", "lithium") == levenshtein_distance("lithium", "sodium")


def test_distance_is_case_sensitive():
    assert levenshtein_distance("Forge", "forge") == 1


def test_sort_by_name_similarity_closest_first():
    projects = [_project("Quilt"), _project("forge"), _project("Forgery")]
    ranked = sort_by_name_similarity("forge", projects)
    assert [p.name for p in ranked] == ["forge", "Forgery", "Quilt"]


def test_sort_is_stable_for_equal_distance():
    first = _project("abcd")
    second = _project("abce")
    ranked = sort_by_name_similarity("abcx", [first, second])
    assert ranked == [first, second]
