"""Report generation utilities for offline workflows."""

from __future__ import annotations

import json
from pathlib import Path

from constellate.atlas import AtlasStore
from constellate.insights import assign_category, order_by_similarity, top_constellations
from constellate.models import AtlasView, ReclusterReport


def _keyword_line(store: AtlasStore, member_ids: list[str]) -> str:
    keywords: list[str] = []
    for member in member_ids:
        star = store.get_star(member)
        if star is None:
            continue
        for keyword in star.keywords:
            if keyword not in keywords:
                keywords.append(keyword)
    return ", ".join(keywords[:6]) if keywords else "none"


def render_markdown_report(store: AtlasStore, report: ReclusterReport | None = None) -> str:
    stars_by_id = store.stars_by_id()
    lines: list[str] = []
    lines.append("# Constellation Report")
    lines.append("")
    lines.append(f"- Stars: {len(store.stars)}")
    lines.append(f"- Connections: {len(store.connections)}")
    lines.append(f"- Constellations: {len(store.clusters)}")
    lines.append(f"- Floating stars: {len(store.floating_star_ids())}")
    if report is not None:
        lines.append(f"- Visible stars in last pass: {report.visible_star_count}")
        lines.append(
            f"- Naming: cache_hits={report.cache_hits} calls={report.naming_calls} failures={report.naming_failures}"
        )
    lines.append("")

    ranked = top_constellations(store, limit=len(store.clusters))
    if not ranked:
        lines.append("No constellations yet.")
        lines.append("")
        return "\n".join(lines)

    lines.append("## Constellations")
    lines.append("")
    for cluster, score in ranked:
        category, _ = assign_category(cluster, stars_by_id)
        lines.append(f"### {cluster.name or cluster.id}")
        lines.append("")
        lines.append(f"- ID: `{cluster.id}`")
        if cluster.summary:
            lines.append(f"- Summary: {cluster.summary}")
        lines.append(f"- Category: {category.label} ({category.id})")
        lines.append(f"- Score: {score:.1f}")
        lines.append(f"- Keywords: {_keyword_line(store, cluster.member_ids)}")
        lines.append("- Members:")
        for member in order_by_similarity(cluster.member_ids, stars_by_id):
            star = stars_by_id.get(member)
            date = star.date if star else member
            lines.append(f"  - {date}")
        lines.append("")

    floating = store.floating_star_ids()
    if floating:
        lines.append("## Floating stars")
        lines.append("")
        for star_id in floating:
            lines.append(f"- {star_id}")
        lines.append("")

    return "\n".join(lines)


def write_report_bundle(
    store: AtlasStore,
    view: AtlasView,
    output_dir: str | Path,
    report: ReclusterReport | None = None,
) -> None:
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    (out / "atlas.json").write_text(json.dumps(store.to_payload(), indent=2, ensure_ascii=False))
    (out / "atlas_view.json").write_text(view.model_dump_json(indent=2, by_alias=True))
    if report is not None:
        (out / "recluster_report.json").write_text(report.model_dump_json(indent=2, by_alias=True))
    (out / "constellation_report.md").write_text(render_markdown_report(store, report))
