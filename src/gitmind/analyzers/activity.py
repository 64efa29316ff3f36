"""Ownership and change heatmaps from recent commits.

An "area" is the leading directory of a changed file (depth configurable);
files at the repository root fall into ROOT_AREA.
"""

from collections import Counter, defaultdict

from gitmind.models.report import AreaOwner, HeatmapCell
from gitmind.models.repository import CommitRecord

ROOT_AREA = "(root)"


def area_of(path: str, depth: int = 1) -> str:
    parts = path.strip("/").split("/")
    if len(parts) <= 1:
        return ROOT_AREA
    return "/".join(parts[: min(depth, len(parts) - 1)])


def area_owners(commits: list[CommitRecord], depth: int = 1, limit: int = 10) -> list[AreaOwner]:
    """Top author per area by number of commits touching it.

    Ties go to the author seen first (most recent commit first).
    Areas are ordered by the owner's commit count, then name.
    """
    per_area: dict[str, Counter[str]] = defaultdict(Counter)
    for commit in commits:
        for area in {area_of(f.path, depth) for f in commit.files}:
            per_area[area][commit.author] += 1

    owners = []
    for area, counts in per_area.items():
        author, count = counts.most_common(1)[0]
        owners.append(AreaOwner(area=area, author=author, commits=count))

    owners.sort(key=lambda o: (-o.commits, o.area))
    return owners[:limit]


def change_heatmap(commits: list[CommitRecord], depth: int = 1, limit: int = 10) -> list[HeatmapCell]:
    """Count file changes per area, busiest first."""
    counts: Counter[str] = Counter()
    for commit in commits:
        for changed in commit.files:
            counts[area_of(changed.path, depth)] += 1

    cells = [HeatmapCell(area=area, changes=n) for area, n in counts.items()]
    cells.sort(key=lambda c: (-c.changes, c.area))
    return cells[:limit]
