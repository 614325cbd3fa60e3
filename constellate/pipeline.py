"""Main orchestration pipeline for Constellate."""

from __future__ import annotations

import hashlib
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from constellate.atlas import AtlasStore
from constellate.clustering import cluster_points, split_groups, visible_stars
from constellate.config import ConstellateConfig, load_effective_config
from constellate.connections import build_connections, keyword_connections
from constellate.identity import ClusterIdentityCache, cluster_signature
from constellate.layout import normalize_for_display
from constellate.models import (
    AtlasView,
    Cluster,
    ClusterIdentity,
    Connection,
    DisplayStar,
    NamingRequest,
    ReclusterReport,
    Star,
    is_valid_date,
)
from constellate.naming import ClusterNamer, namer_from_config
from constellate.projection import ScoreInput, parse_scores, project_day
from constellate.visibility import DatePredicate, window_from_config

logger = logging.getLogger(__name__)

PLACEHOLDER_SUMMARY = "These days trace a single pattern of the heart."


def placeholder_identity(index: int) -> tuple[str, str]:
    return f"Constellation {index}", PLACEHOLDER_SUMMARY


def _new_cluster_id(signature: str) -> str:
    digest = hashlib.blake2b(signature.encode("utf-8"), digest_size=6).hexdigest()
    return f"const-{digest}"


def assign_cluster_ids(
    existing: Sequence[Cluster],
    groups: Sequence[Sequence[str]],
    reserved: Iterable[str] = (),
) -> list[str]:
    """Carry cluster ids across recluster passes.

    Exact member-set matches keep their id first; remaining groups inherit the
    id of the unclaimed prior cluster they overlap most; the rest get a fresh
    id derived from their signature.
    """
    ids: list[str | None] = [None] * len(groups)
    claimed: set[str] = set()
    by_signature = {cluster_signature(cluster.member_ids): cluster.id for cluster in existing}

    for idx, members in enumerate(groups):
        prior = by_signature.get(cluster_signature(members))
        if prior is not None and prior not in claimed:
            ids[idx] = prior
            claimed.add(prior)

    for idx, members in enumerate(groups):
        if ids[idx] is not None:
            continue
        member_set = set(members)
        ranked = sorted(
            ((len(member_set & set(cluster.member_ids)), cluster.id) for cluster in existing if cluster.id not in claimed),
            key=lambda item: (-item[0], item[1]),
        )
        if ranked and ranked[0][0] > 0:
            ids[idx] = ranked[0][1]
            claimed.add(ranked[0][1])

    taken = claimed | {cluster.id for cluster in existing} | set(reserved)
    for idx, members in enumerate(groups):
        if ids[idx] is not None:
            continue
        candidate = _new_cluster_id(cluster_signature(members))
        suffix = 1
        while candidate in taken:
            suffix += 1
            candidate = f"{_new_cluster_id(cluster_signature(members))}-{suffix}"
        ids[idx] = candidate
        taken.add(candidate)

    return [cluster_id for cluster_id in ids if cluster_id is not None]


class ConstellationEngine:
    def __init__(self, config: ConstellateConfig, namer: ClusterNamer | None = None) -> None:
        self.config = config
        self.namer = namer or namer_from_config(config.naming)

    @classmethod
    def from_project(
        cls,
        project_path: str | Path,
        user_defaults: dict | None = None,
        system_defaults: dict | None = None,
        runtime_override: dict | None = None,
        namer: ClusterNamer | None = None,
    ) -> ConstellationEngine:
        config = load_effective_config(
            project_path=project_path,
            user_defaults=user_defaults,
            system_defaults=system_defaults,
            runtime_override=runtime_override,
        )
        return cls(config=config, namer=namer)

    def default_visibility(self) -> DatePredicate | None:
        return window_from_config(self.config.visibility.window_days)

    def ingest_day(
        self,
        store: AtlasStore,
        date: str,
        scores: ScoreInput | None = None,
        *,
        content_length: int | None = None,
        keywords: Sequence[str] = (),
        connections: Iterable[Connection | Mapping[str, str]] = (),
    ) -> Star:
        mood = parse_scores(scores)
        projection = project_day(date, mood, content_length, self.config.projection)
        return store.merge_star(
            date,
            projection.position,
            keywords,
            connections,
            content_length,
            size=projection.size,
            scores=mood,
            projection=self.config.projection,
        )

    def build_from_history(
        self,
        store: AtlasStore,
        scores_history: Mapping[str, Any],
        journal_contents: Mapping[str, str] | None = None,
        keywords_by_date: Mapping[str, Sequence[str]] | None = None,
    ) -> int:
        """Project and merge every day that has scores or a journal entry."""
        journal_contents = journal_contents or {}
        keywords_by_date = keywords_by_date or {}
        dates = sorted(set(scores_history) | set(journal_contents))

        ingested = 0
        for date in dates:
            if not is_valid_date(date):
                logger.warning("Skipping history entry with malformed date %r", date)
                continue
            content = journal_contents.get(date) or ""
            self.ingest_day(
                store,
                date,
                scores_history.get(date),
                content_length=len(content.strip()),
                keywords=list(keywords_by_date.get(date) or []),
            )
            ingested += 1

        if self.config.connections.keyword_links:
            links = keyword_connections(store.stars, existing=store.connections)
            added = store.add_connections(links)
            logger.debug("Keyword links added: %s", added)

        logger.info("History merged: days=%s stars=%s connections=%s", ingested, len(store.stars), len(store.connections))
        return ingested

    def _naming_request(
        self,
        group: Sequence[Star],
        journal_contents: Mapping[str, str],
        identity_hint: str | None,
    ) -> NamingRequest:
        limit = self.config.naming.max_snippet_chars
        dates = sorted(star.date for star in group)
        return NamingRequest(
            member_ids=[star.id for star in group],
            dates=dates,
            snippets={date: journal_contents[date][:limit] for date in dates if journal_contents.get(date)},
            keywords={star.date: list(star.keywords) for star in group if star.keywords},
            identity_hint=identity_hint,
        )

    def _resolve_identity(
        self,
        group: Sequence[Star],
        cache: ClusterIdentityCache,
        journal_contents: Mapping[str, str],
        identity_hint: str | None,
        counters: dict[str, int],
    ) -> ClusterIdentity | None:
        member_ids = [star.id for star in group]
        cached = cache.lookup(member_ids)
        if cached is not None:
            counters["cache_hits"] += 1
            return cached

        counters["naming_calls"] += 1
        try:
            identity = self.namer.name_cluster(self._naming_request(group, journal_contents, identity_hint))
        except Exception as exc:  # noqa: BLE001 - any namer failure degrades to a placeholder
            counters["naming_failures"] += 1
            logger.warning("Naming failed for %s (%s): %s", cluster_signature(member_ids), self.namer.model_id(), exc)
            return None

        cache.set(cluster_signature(member_ids), identity)
        return identity

    def recluster(
        self,
        store: AtlasStore,
        cache: ClusterIdentityCache,
        *,
        visible: DatePredicate | None = None,
        journal_contents: Mapping[str, str] | None = None,
        identity_hint: str | None = None,
    ) -> ReclusterReport:
        start = time.perf_counter()
        visible = visible if visible is not None else self.default_visibility()
        journal_contents = journal_contents or {}
        stars = store.stars
        logger.info("Starting recluster for %s stars", len(stars))

        groups = cluster_points(stars, self.config.clustering.threshold, visible)
        constellations, floating = split_groups(groups)
        visible_count = sum(len(group) for group in groups)
        visible_ids = {star.id for group in groups for star in group}
        added, removed = store.refresh_derived_connections(
            build_connections(constellations, self.config.connections.fan_out),
            visible_ids,
        )
        cluster_elapsed = time.perf_counter() - start
        logger.debug(
            "Clustering complete: visible=%s constellations=%s floating=%s connections_added=%s removed=%s",
            visible_count,
            len(constellations),
            len(floating),
            added,
            removed,
        )

        # Constellations made only of stars hidden from this pass are left alone.
        untouched = [cluster for cluster in store.clusters if visible_ids.isdisjoint(cluster.member_ids)]
        revisited = [cluster for cluster in store.clusters if not visible_ids.isdisjoint(cluster.member_ids)]
        member_lists = [[star.id for star in group] for group in constellations]
        cluster_ids = assign_cluster_ids(revisited, member_lists, reserved=(cluster.id for cluster in untouched))

        counters = {"cache_hits": 0, "naming_calls": 0, "naming_failures": 0}
        naming_start = time.perf_counter()
        clusters: list[Cluster] = []
        for index, (group, cluster_id) in enumerate(zip(constellations, cluster_ids), start=1):
            identity = self._resolve_identity(group, cache, journal_contents, identity_hint, counters)
            name, summary = (identity.name, identity.summary) if identity else placeholder_identity(index)
            clusters.append(Cluster(id=cluster_id, member_ids=[star.id for star in group], name=name, summary=summary))
        naming_elapsed = time.perf_counter() - naming_start

        store.replace_clusters(untouched + clusters)
        total_elapsed = time.perf_counter() - start
        report = ReclusterReport(
            star_count=len(stars),
            visible_star_count=visible_count,
            clusters=store.clusters,
            floating_star_ids=store.floating_star_ids(),
            connections_added=added,
            connections_removed=removed,
            profile={
                "cluster_seconds": round(cluster_elapsed, 6),
                "naming_seconds": round(naming_elapsed, 6),
                "total_seconds": round(total_elapsed, 6),
                "namer": self.namer.model_id(),
            },
            **counters,
        )
        logger.info(
            "Recluster complete: clusters=%s floating=%s cache_hits=%s naming_calls=%s naming_failures=%s",
            len(report.clusters),
            len(report.floating_star_ids),
            report.cache_hits,
            report.naming_calls,
            report.naming_failures,
        )
        return report

    def render_view(self, store: AtlasStore, *, visible: DatePredicate | None = None) -> AtlasView:
        """Build display coordinates for the visible part of the atlas without touching the store."""
        visible = visible if visible is not None else self.default_visibility()
        stars = visible_stars(sorted(store.stars, key=lambda star: star.id), visible)
        shown = {star.id for star in stars}
        coords = {point.id: point for point in normalize_for_display(stars, self.config.layout)}

        display = [
            DisplayStar(
                id=star.id,
                date=star.date,
                x=coords[star.id].x,
                y=coords[star.id].y,
                size=star.size,
                keywords=list(star.keywords),
            )
            for star in stars
        ]
        connections = [edge for edge in store.connections if edge.source in shown and edge.target in shown]
        clusters: list[Cluster] = []
        for cluster in store.clusters:
            members = [member for member in cluster.member_ids if member in shown]
            if len(members) >= 2:
                clusters.append(cluster.model_copy(update={"member_ids": members}))

        clustered = {member for cluster in clusters for member in cluster.member_ids}
        return AtlasView(
            stars=display,
            connections=connections,
            clusters=clusters,
            floating_star_ids=sorted(shown - clustered),
        )
