"""Spatial clustering of stars into constellations."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from constellate.models import Star
from constellate.visibility import DatePredicate

DEFAULT_THRESHOLD = 28.0


class UnionFind:
    def __init__(self, size: int) -> None:
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, a: int, b: int) -> None:
        ra = self.find(a)
        rb = self.find(b)
        if ra == rb:
            return

        if self.rank[ra] < self.rank[rb]:
            self.parent[ra] = rb
        elif self.rank[ra] > self.rank[rb]:
            self.parent[rb] = ra
        else:
            self.parent[rb] = ra
            self.rank[ra] += 1


def visible_stars(stars: Sequence[Star], visible: DatePredicate | None) -> list[Star]:
    if visible is None:
        return list(stars)
    return [star for star in stars if visible(star.date)]


def cluster_points(
    stars: Sequence[Star],
    threshold: float = DEFAULT_THRESHOLD,
    visible: DatePredicate | None = None,
) -> list[list[Star]]:
    """Group stars whose pairwise distance is below ``threshold`` (transitively).

    Groups come back with members sorted by id and ordered largest first, so
    the same point set yields the same grouping whatever the input order.
    """
    points = sorted(visible_stars(stars, visible), key=lambda star: star.id)
    if not points:
        return []

    uf = UnionFind(len(points))
    for i in range(len(points)):
        for j in range(i + 1, len(points)):
            if points[i].distance_to(points[j]) < threshold:
                uf.union(i, j)

    grouped: dict[int, list[Star]] = defaultdict(list)
    for idx, star in enumerate(points):
        grouped[uf.find(idx)].append(star)

    return sorted(grouped.values(), key=lambda group: (-len(group), [star.id for star in group]))


def split_groups(groups: list[list[Star]]) -> tuple[list[list[Star]], list[Star]]:
    """Separate constellation-sized groups from floating singletons."""
    clusters = [group for group in groups if len(group) >= 2]
    floating = [group[0] for group in groups if len(group) == 1]
    return clusters, floating
