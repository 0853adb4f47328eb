from typing import Iterable, List

from ..schemas import PlatformProject


def levenshtein_distance(a: str, b: str) -> int:
    """
    Edit distance between a and b (insert, delete, substitute all cost 1).
    Case-sensitive. Uses a single rolling row, O(len(a) * len(b)) time.
    """
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            if char_a == char_b:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j], current[j - 1], previous[j - 1]))
        previous = current
    return previous[-1]


def sort_by_name_similarity(query: str, projects: Iterable[PlatformProject]) -> List[PlatformProject]:
    """Stable sort by distance between query and project name; closest first."""
    return sorted(projects, key=lambda project: levenshtein_distance(query, project.name))
