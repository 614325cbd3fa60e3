import math

import pytest

from constellate.config import ProjectionConfig
from constellate.models import MoodScores
from constellate.projection import (
    coerce_scores,
    content_scale,
    fallback_projection,
    fallback_scores,
    parse_scores,
    project,
    project_day,
    size_for_content_length,
)

SCORES_LOW = dict.fromkeys(
    ["selfAwareness", "resilience", "empathy", "selfDirection", "meaningOrientation", "openness", "selfAcceptance"],
    0,
)


def test_neutral_scores_land_in_the_middle() -> None:
    projection = project({})
    assert projection.x == pytest.approx(50.0)
    assert projection.y == pytest.approx(50.0)


def test_extreme_scores_map_to_the_padded_range() -> None:
    low = project(SCORES_LOW)
    high = project({key: 100 for key in SCORES_LOW})
    assert (low.x, low.y) == (pytest.approx(10.0), pytest.approx(10.0))
    assert (high.x, high.y) == (pytest.approx(90.0), pytest.approx(90.0))


@pytest.mark.parametrize(
    "scores",
    [
        None,
        {},
        {"selfAwareness": float("nan"), "openness": float("inf"), "empathy": -float("inf")},
        {"selfAwareness": -500, "resilience": 1e9, "empathy": "abc", "openness": None},
        [200, -3, "x", None, True, 42, 17, 99, 1000],
        {"unknownKey": 7},
    ],
)
def test_projection_always_stays_in_range(scores) -> None:  # noqa: ANN001
    projection = project(scores, content_length=float("nan"))
    for value in (projection.x, projection.y):
        assert math.isfinite(value)
        assert 10.0 <= value <= 90.0
    assert 4.0 <= projection.size <= 6.0


def test_projection_uses_fixed_axis_triples() -> None:
    scores = dict(SCORES_LOW, selfAwareness=90, openness=60, meaningOrientation=30, selfAcceptance=100)
    projection = project(scores)
    assert projection.x == pytest.approx(10 + 0.6 * 80)
    assert projection.y == pytest.approx(10 + (100 / 3) / 100 * 80)


def test_positional_scores_follow_canonical_dimension_order() -> None:
    mood = MoodScores.model_validate([10, 20, 30, 40, 50, 60, 70])
    assert mood.value("selfAwareness") == 10
    assert mood.value("selfAcceptance") == 70
    assert mood.self_direction == 40
    with pytest.raises(ValueError, match="Unknown mood dimension"):
        mood.value("courage")


def test_size_grows_with_content_length_and_saturates() -> None:
    sizes = [project(SCORES_LOW, content_length=length).size for length in (0, 200, 400, 10_000)]
    assert sizes == [pytest.approx(4.0), pytest.approx(4.5), pytest.approx(6.0), pytest.approx(6.0)]
    assert project(SCORES_LOW, content_length=-20).size == pytest.approx(4.0)


def test_content_scale_is_capped() -> None:
    cfg = ProjectionConfig()
    assert content_scale(None, cfg) == 1.0
    assert content_scale(200, cfg) == pytest.approx(1.5)
    assert content_scale(5_000, cfg) == pytest.approx(2.0)


def test_merge_size_from_content_length() -> None:
    assert size_for_content_length(None) == pytest.approx(4.0)
    assert size_for_content_length(200) == pytest.approx(4.5)
    assert size_for_content_length(400) == pytest.approx(6.0)


def test_fallback_is_deterministic_per_date() -> None:
    first = fallback_projection("2024-01-01", content_length=120)
    again = fallback_projection("2024-01-01", content_length=120)
    other = fallback_projection("2024-01-02", content_length=120)
    assert first == again
    assert (first.x, first.y) != (other.x, other.y)
    assert 10.0 <= first.x <= 90.0 and 10.0 <= first.y <= 90.0


def test_fallback_scores_stay_inside_documented_bands() -> None:
    scores = fallback_scores("2024-01-01")
    assert scores.self_awareness == 69
    assert scores.openness == 53
    assert scores.meaning_orientation == 67


def test_project_day_falls_back_only_without_scores() -> None:
    assert project_day("2024-01-01", None) == fallback_projection("2024-01-01")
    assert project_day("2024-01-01", {}) == project({})


def test_custom_view_range() -> None:
    cfg = ProjectionConfig(view_min=0, view_max=100)
    projection = project({key: 100 for key in SCORES_LOW}, cfg=cfg)
    assert projection.x == pytest.approx(100.0)


@pytest.mark.parametrize("scores", [42, "garbage", 3.5, b"raw", object()])
def test_unusable_score_payloads_project_to_neutral(scores) -> None:  # noqa: ANN001
    projection = project(scores, content_length=100)
    assert projection == project({}, content_length=100)
    assert 10.0 <= projection.x <= 90.0 and 10.0 <= projection.y <= 90.0
    assert coerce_scores(scores) == MoodScores()


@pytest.mark.parametrize("scores", [42, "garbage"])
def test_project_day_falls_back_for_unusable_scores(scores) -> None:  # noqa: ANN001
    assert parse_scores(scores) is None
    assert project_day("2024-01-01", scores) == fallback_projection("2024-01-01")
