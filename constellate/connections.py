"""Intra-constellation edge synthesis.

Each star links to its ``fan_out`` nearest neighbours inside its own group.
This is neither a spanning tree nor a complete graph: it keeps the drawing
local and sparse (at most ``fan_out * n`` edges per group).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from constellate.clustering import visible_stars
from constellate.models import Connection, Star, canonical_pair
from constellate.visibility import DatePredicate

DEFAULT_FAN_OUT = 2


class EdgeSet:
    """Ordered, undirected edge accumulator keyed by the sorted id pair."""

    def __init__(self, existing: Iterable[Connection] = ()) -> None:
        self._by_key: dict[tuple[str, str], Connection] = {}
        for edge in existing:
            self.add(edge)

    def __contains__(self, pair: tuple[str, str]) -> bool:
        return canonical_pair(*pair) in self._by_key

    def __len__(self) -> int:
        return len(self._by_key)

    @property
    def edges(self) -> list[Connection]:
        return list(self._by_key.values())

    def get(self, pair: tuple[str, str]) -> Connection | None:
        return self._by_key.get(canonical_pair(*pair))

    def add(self, edge: Connection) -> bool:
        if edge.is_self_loop or edge.key in self._by_key:
            return False
        self._by_key[edge.key] = edge
        return True

    def replace(self, edge: Connection) -> None:
        """Swap the stored edge for the same pair, keeping its position."""
        if edge.key in self._by_key:
            self._by_key[edge.key] = edge

    def discard(self, pair: tuple[str, str]) -> None:
        self._by_key.pop(canonical_pair(*pair), None)


def build_connections(
    groups: Sequence[Sequence[Star]],
    fan_out: int = DEFAULT_FAN_OUT,
    visible: DatePredicate | None = None,
) -> list[Connection]:
    edges = EdgeSet()
    for group in groups:
        members = sorted(visible_stars(group, visible), key=lambda star: star.id)
        if len(members) < 2:
            continue

        for star in members:
            candidates = sorted((star.distance_to(other), other.id) for other in members if other.id != star.id)
            for _, other_id in candidates[:fan_out]:
                edges.add(Connection(source=star.id, target=other_id, derived=True))

    return edges.edges


def _normalized_keywords(star: Star) -> set[str]:
    return {keyword.strip().lower() for keyword in star.keywords if keyword.strip()}


def keyword_connections(
    stars: Sequence[Star],
    visible: DatePredicate | None = None,
    existing: Iterable[Connection] = (),
) -> list[Connection]:
    """Link stars that share at least one keyword, skipping pairs already in ``existing``."""
    known = EdgeSet(existing)
    added: list[Connection] = []
    members = sorted(visible_stars(stars, visible), key=lambda star: star.date)
    tagged = [(star, _normalized_keywords(star)) for star in members]

    for i, (left, left_keywords) in enumerate(tagged):
        if not left_keywords:
            continue
        for right, right_keywords in tagged[i + 1 :]:
            if left_keywords.isdisjoint(right_keywords):
                continue
            edge = Connection(source=left.id, target=right.id)
            if known.add(edge):
                added.append(edge)

    return added
