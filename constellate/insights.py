"""Score-derived views over constellations: category, ranking, ordering, graduation."""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, timedelta

from constellate.atlas import AtlasStore
from constellate.models import MOOD_SCORE_KEYS, Cluster, MoodScores, Star, date_from_star_id

MEMBER_BONUS = 5.0
UNSCORED_DISTANCE = 999.0


@dataclass(frozen=True)
class Category:
    id: str
    label: str
    keys: tuple[str, ...]
    color: str


CATEGORIES: tuple[Category, ...] = (
    Category("echo", "Thinking", ("selfAwareness", "openness"), "#CCFBF1"),
    Category("flame", "Emotion", ("resilience",), "#FBCFE8"),
    Category("galaxy", "Relationships", ("empathy",), "#BAE6FD"),
    Category("voyage", "Work", ("selfDirection",), "#E2E8F0"),
    Category("value", "Values", ("meaningOrientation",), "#DDD6FE"),
    Category("reconcile", "Self", ("selfAcceptance",), "#FDE68A"),
)


def _member_scores(member_ids: Iterable[str], stars_by_id: Mapping[str, Star]) -> list[MoodScores]:
    scores = []
    for member in member_ids:
        star = stars_by_id.get(member)
        if star is not None and star.scores is not None:
            scores.append(star.scores)
    return scores


def average_scores(scores: Sequence[MoodScores]) -> MoodScores | None:
    if not scores:
        return None
    sums = [0.0] * len(MOOD_SCORE_KEYS)
    for item in scores:
        for idx, value in enumerate(item.as_vector()):
            sums[idx] += value
    return MoodScores.model_validate([value / len(scores) for value in sums])


def assign_category(cluster: Cluster, stars_by_id: Mapping[str, Star]) -> tuple[Category, float]:
    """Pick the category whose dimensions average highest across the cluster's scored members."""
    avg = average_scores(_member_scores(cluster.member_ids, stars_by_id))
    best, best_score = CATEGORIES[0], 0.0
    if avg is None:
        return best, best_score
    for category in CATEGORIES:
        score = sum(avg.value(key) for key in category.keys) / len(category.keys)
        if score > best_score:
            best, best_score = category, score
    return best, best_score


def constellation_score(cluster: Cluster, stars_by_id: Mapping[str, Star]) -> float:
    scored = sum(scores.mean() for scores in _member_scores(cluster.member_ids, stars_by_id))
    return scored + len(cluster.member_ids) * MEMBER_BONUS


def top_constellations(store: AtlasStore, limit: int = 7) -> list[tuple[Cluster, float]]:
    stars_by_id = store.stars_by_id()
    ranked = [(cluster, constellation_score(cluster, stars_by_id)) for cluster in store.clusters]
    ranked.sort(key=lambda item: (-item[1], item[0].id))
    return ranked[:limit]


def _distance(a: MoodScores, b: MoodScores) -> float:
    return math.sqrt(sum((x - y) ** 2 for x, y in zip(a.as_vector(), b.as_vector())))


def order_by_similarity(member_ids: Sequence[str], stars_by_id: Mapping[str, Star]) -> list[str]:
    """Order members by closeness to the cluster's score centroid; unscored members go last."""
    if len(member_ids) <= 1:
        return list(member_ids)
    centroid = average_scores(_member_scores(member_ids, stars_by_id))
    if centroid is None:
        return list(member_ids)

    def _key(member: str) -> tuple[float, str]:
        star = stars_by_id.get(member)
        if star is None or star.scores is None:
            return UNSCORED_DISTANCE, member
        return _distance(star.scores, centroid), member

    return sorted(member_ids, key=_key)


def graduation_candidates(
    store: AtlasStore,
    today: date,
    *,
    window_days: int = 7,
    min_recent: int = 3,
    shown: Iterable[str] = (),
) -> list[Cluster]:
    """Constellations with at least ``min_recent`` members dated inside the window, not yet celebrated."""
    earliest = (today - timedelta(days=window_days)).isoformat()
    already = set(shown)
    candidates = []
    for cluster in store.clusters:
        if cluster.id in already:
            continue
        recent = [member for member in cluster.member_ids if (date_from_star_id(member) or "") >= earliest]
        if len(recent) >= min_recent:
            candidates.append(cluster)
    return candidates
