"""Persisted atlas graph: stars, connections and constellations."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

from constellate.config import ProjectionConfig
from constellate.connections import EdgeSet
from constellate.models import (
    Cluster,
    Connection,
    MoodScores,
    Point,
    Star,
    is_valid_date,
    star_id_for_date,
)
from constellate.projection import size_for_content_length

logger = logging.getLogger(__name__)

MIN_CLUSTER_MEMBERS = 2


def _parse_items(raw: Any, model: type[BaseModel], label: str) -> list[Any]:
    if not isinstance(raw, list):
        if raw is not None:
            logger.warning("Atlas %s is %s, not a list; treating as empty", label, type(raw).__name__)
        return []
    parsed = []
    dropped = 0
    for item in raw:
        try:
            parsed.append(model.model_validate(item))
        except ValidationError:
            dropped += 1
    if dropped:
        logger.warning("Dropped %s malformed atlas %s", dropped, label)
    return parsed


class AtlasStore:
    """Explicit per-user atlas handle.

    Not thread-safe; the host serializes access to one store (one lock per
    user). Merge and delete mark the store dirty; clustering happens only
    when the engine runs a recluster pass.
    """

    def __init__(
        self,
        stars: Iterable[Star] = (),
        connections: Iterable[Connection] = (),
        clusters: Iterable[Cluster] = (),
    ) -> None:
        self._stars: dict[str, Star] = {}
        for star in stars:
            self._stars[star.id] = star
        self._edges = EdgeSet()
        for edge in connections:
            if edge.source in self._stars and edge.target in self._stars:
                self._edges.add(edge)
        self._clusters: list[Cluster] = []
        self._install_clusters(clusters)
        self.dirty = False

    @property
    def stars(self) -> list[Star]:
        return list(self._stars.values())

    @property
    def connections(self) -> list[Connection]:
        return list(self._edges.edges)

    @property
    def clusters(self) -> list[Cluster]:
        return list(self._clusters)

    def get_star(self, star_id: str) -> Star | None:
        return self._stars.get(star_id)

    def has_connection(self, a: str, b: str) -> bool:
        return (a, b) in self._edges

    def stars_by_id(self) -> dict[str, Star]:
        return dict(self._stars)

    def clustered_star_ids(self) -> set[str]:
        return {member for cluster in self._clusters for member in cluster.member_ids}

    def floating_star_ids(self) -> list[str]:
        clustered = self.clustered_star_ids()
        return sorted(star_id for star_id in self._stars if star_id not in clustered)

    def merge_star(
        self,
        date: str,
        position: Point | Mapping[str, float],
        keywords: Sequence[str] = (),
        connections: Iterable[Connection | Mapping[str, str]] = (),
        content_length: float | int | None = None,
        *,
        size: float | None = None,
        scores: MoodScores | None = None,
        projection: ProjectionConfig | None = None,
    ) -> Star:
        """Upsert the star for ``date`` and append any new supplied connections."""
        if not is_valid_date(date):
            raise ValueError(f"Star date must be YYYY-MM-DD, got {date!r}")

        star_id = star_id_for_date(date)
        star = Star(
            id=star_id,
            date=date,
            position=position if isinstance(position, Point) else Point.model_validate(position),
            size=size if size is not None else size_for_content_length(content_length, projection),
            keywords=list(keywords),
            scores=scores,
        )
        updated = star_id in self._stars
        self._stars[star_id] = star

        added = self.add_connections(connections)
        self.dirty = True
        logger.debug("Merged %s (%s) connections_added=%s", star_id, "update" if updated else "insert", added)
        return star

    def add_connections(self, connections: Iterable[Connection | Mapping[str, str]]) -> int:
        """Add caller-supplied edges; they are kept across recluster passes."""
        added = 0
        promoted = 0
        for raw in connections:
            edge = raw if isinstance(raw, Connection) else Connection.model_validate(raw)
            if edge.derived:
                edge = edge.model_copy(update={"derived": False})
            if edge.source not in self._stars or edge.target not in self._stars:
                continue
            current = self._edges.get(edge.key)
            if current is not None and current.derived:
                self._edges.replace(edge)
                promoted += 1
            elif self._edges.add(edge):
                added += 1
        if added or promoted:
            self.dirty = True
        return added

    def refresh_derived_connections(self, edges: Iterable[Connection], scope: Iterable[str]) -> tuple[int, int]:
        """Replace pass-derived edges touching ``scope`` with ``edges``.

        Supplied edges are never removed here, and derived edges whose
        endpoints both lie outside ``scope`` are left alone. Returns the
        number of edges added and removed.
        """
        scope = set(scope)
        fresh: dict[tuple[str, str], Connection] = {}
        for edge in edges:
            if edge.is_self_loop or edge.source not in self._stars or edge.target not in self._stars:
                continue
            fresh.setdefault(edge.key, edge if edge.derived else edge.model_copy(update={"derived": True}))

        removed = 0
        for edge in self._edges.edges:
            if edge.derived and edge.key not in fresh and (edge.source in scope or edge.target in scope):
                self._edges.discard(edge.key)
                removed += 1
        added = sum(1 for edge in fresh.values() if self._edges.add(edge))

        if added or removed:
            self.dirty = True
        return added, removed

    def delete_star(self, star_id: str) -> bool:
        """Remove a star with its edges; dissolve constellations left with fewer than two members."""
        if star_id not in self._stars:
            return False

        del self._stars[star_id]
        self._edges = EdgeSet(edge for edge in self._edges.edges if not edge.touches(star_id))

        before = len(self._clusters)
        self._install_clusters(
            cluster.model_copy(update={"member_ids": [m for m in cluster.member_ids if m != star_id]})
            for cluster in self._clusters
        )
        dissolved = before - len(self._clusters)
        self.dirty = True
        logger.debug("Deleted %s; dissolved_clusters=%s", star_id, dissolved)
        return True

    def replace_clusters(self, clusters: Iterable[Cluster]) -> None:
        self._install_clusters(clusters)
        self.dirty = False

    def _install_clusters(self, clusters: Iterable[Cluster]) -> None:
        kept: list[Cluster] = []
        for cluster in clusters:
            members = [member for member in dict.fromkeys(cluster.member_ids) if member in self._stars]
            if len(members) < MIN_CLUSTER_MEMBERS:
                continue
            if members != cluster.member_ids:
                cluster = cluster.model_copy(update={"member_ids": members})
            kept.append(cluster)
        self._clusters = kept

    def to_payload(self) -> dict[str, Any]:
        return {
            "stars": [star.model_dump(by_alias=True, exclude_none=True) for star in self._stars.values()],
            "connections": [edge.model_dump(by_alias=True, exclude_defaults=True) for edge in self._edges.edges],
            "clusters": [cluster.model_dump(by_alias=True) for cluster in self._clusters],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)

    @classmethod
    def from_payload(cls, raw: Any) -> AtlasStore:
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning("Atlas payload is %s, not a mapping; starting empty", type(raw).__name__)
            return cls()
        # Older payloads call the cluster list "constellations".
        clusters_raw = raw.get("clusters", raw.get("constellations"))
        return cls(
            stars=_parse_items(raw.get("stars"), Star, "stars"),
            connections=_parse_items(raw.get("connections"), Connection, "connections"),
            clusters=_parse_items(clusters_raw, Cluster, "clusters"),
        )

    @classmethod
    def from_json(cls, text: str | None) -> AtlasStore:
        if not text:
            return cls()
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Atlas document is not valid JSON; starting empty")
            return cls()
        return cls.from_payload(raw)
