from datetime import date

from constellate.atlas import AtlasStore
from constellate.insights import (
    CATEGORIES,
    assign_category,
    constellation_score,
    graduation_candidates,
    order_by_similarity,
    top_constellations,
)
from constellate.models import Cluster, MoodScores


def _store(scores_by_date: dict[str, MoodScores | None]) -> AtlasStore:
    store = AtlasStore()
    for day, scores in scores_by_date.items():
        store.merge_star(day, {"x": 50, "y": 50}, scores=scores)
    return store


def test_category_follows_strongest_dimension() -> None:
    store = _store(
        {
            "2024-01-01": MoodScores(empathy=95, resilience=40),
            "2024-01-02": MoodScores(empathy=85, resilience=40),
        }
    )
    cluster = Cluster(id="const-a", member_ids=["star-2024-01-01", "star-2024-01-02"])
    category, score = assign_category(cluster, store.stars_by_id())
    assert category.id == "galaxy"
    assert score == 90


def test_category_defaults_when_no_member_has_scores() -> None:
    store = _store({"2024-01-01": None, "2024-01-02": None})
    cluster = Cluster(id="const-a", member_ids=["star-2024-01-01", "star-2024-01-02"])
    assert assign_category(cluster, store.stars_by_id()) == (CATEGORIES[0], 0.0)


def test_score_and_ranking() -> None:
    store = _store(
        {
            "2024-01-01": MoodScores(),
            "2024-01-02": MoodScores(),
            "2024-01-03": None,
            "2024-01-04": None,
            "2024-01-05": None,
        }
    )
    store.replace_clusters(
        [
            Cluster(id="const-small", member_ids=["star-2024-01-01", "star-2024-01-02"]),
            Cluster(id="const-wide", member_ids=["star-2024-01-03", "star-2024-01-04", "star-2024-01-05"]),
        ]
    )
    stars_by_id = store.stars_by_id()
    assert constellation_score(store.clusters[0], stars_by_id) == 110
    assert constellation_score(store.clusters[1], stars_by_id) == 15
    assert [cluster.id for cluster, _ in top_constellations(store, limit=1)] == ["const-small"]


def test_similarity_order_puts_unscored_last() -> None:
    store = _store(
        {
            "2024-01-01": MoodScores(empathy=0),
            "2024-01-02": MoodScores(empathy=50),
            "2024-01-03": MoodScores(empathy=60),
            "2024-01-04": None,
        }
    )
    ordered = order_by_similarity(
        ["star-2024-01-04", "star-2024-01-01", "star-2024-01-02", "star-2024-01-03"], store.stars_by_id()
    )
    assert ordered[-1] == "star-2024-01-04"
    assert ordered[-2] == "star-2024-01-01"


def test_graduation_needs_recent_members_and_skips_shown() -> None:
    store = _store({f"2024-01-{day:02d}": None for day in (1, 2, 8, 9, 10)})
    store.replace_clusters(
        [
            Cluster(id="const-old", member_ids=["star-2024-01-01", "star-2024-01-02"]),
            Cluster(id="const-new", member_ids=["star-2024-01-08", "star-2024-01-09", "star-2024-01-10"]),
        ]
    )
    today = date(2024, 1, 10)
    assert [cluster.id for cluster in graduation_candidates(store, today)] == ["const-new"]
    assert graduation_candidates(store, today, shown=["const-new"]) == []
