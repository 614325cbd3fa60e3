import json
from pathlib import Path

from constellate.atlas import AtlasStore
from constellate.config import ConstellateConfig
from constellate.identity import ClusterIdentityCache
from constellate.models import MoodScores
from constellate.pipeline import ConstellationEngine
from constellate.reporting import render_markdown_report, write_report_bundle


def _clustered_store() -> tuple[ConstellationEngine, AtlasStore]:
    engine = ConstellationEngine(ConstellateConfig())
    store = AtlasStore()
    engine.ingest_day(store, "2024-01-01", MoodScores(empathy=90), keywords=["Friends"])
    engine.ingest_day(store, "2024-01-02", MoodScores(empathy=80), keywords=["friends", "dinner"])
    engine.ingest_day(store, "2024-03-01", [5, 5, 5, 5, 5, 5, 5])
    return engine, store


def test_markdown_report_for_empty_atlas() -> None:
    text = render_markdown_report(AtlasStore())
    assert text.startswith("# Constellation Report")
    assert "No constellations yet." in text


def test_markdown_report_lists_constellations_and_floating_stars() -> None:
    engine, store = _clustered_store()
    report = engine.recluster(store, ClusterIdentityCache())

    text = render_markdown_report(store, report)

    assert "## Constellations" in text
    assert "Constellation of friends" in text
    assert "- Category: Relationships (galaxy)" in text
    assert "- Keywords: Friends, friends, dinner" in text
    assert "## Floating stars" in text
    assert "- star-2024-03-01" in text
    assert "calls=1" in text


def test_report_bundle_writes_expected_files(tmp_path: Path) -> None:
    engine, store = _clustered_store()
    report = engine.recluster(store, ClusterIdentityCache())
    view = engine.render_view(store)

    write_report_bundle(store, view, tmp_path / "out", report)

    out = tmp_path / "out"
    assert json.loads((out / "atlas.json").read_text())["clusters"][0]["memberIds"] == [
        "star-2024-01-01",
        "star-2024-01-02",
    ]
    view_payload = json.loads((out / "atlas_view.json").read_text())
    assert [star["id"] for star in view_payload["stars"]] == ["star-2024-01-01", "star-2024-01-02", "star-2024-03-01"]
    assert json.loads((out / "recluster_report.json").read_text())["naming_calls"] == 1
    assert (out / "constellation_report.md").exists()
