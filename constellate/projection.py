"""Mood vector -> 2D star coordinates.

Scores are expected on a 0-100 scale; each axis averages a fixed triple of
dimensions and is remapped into the padded display range so stars never
touch the canvas edge. Nothing here raises on bad input: unusable values are
clamped or replaced by the neutral midpoint.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from constellate.config import ProjectionConfig
from constellate.models import SCORE_MAX, MoodScores, Projection

logger = logging.getLogger(__name__)

_BASE_SIZE_FLOOR = 2.0
_BASE_SIZE_CEILING = 4.0
_DISPLAY_SIZE_BOOST = 1.5

ScoreInput = MoodScores | Mapping[str, Any] | Sequence[Any]


def parse_scores(scores: Any) -> MoodScores | None:
    """Parse a score payload; ``None`` when absent or not a mapping/sequence at all."""
    if scores is None or isinstance(scores, MoodScores):
        return scores
    try:
        return MoodScores.model_validate(scores)
    except ValidationError:
        logger.warning("Ignoring unusable mood scores of type %s", type(scores).__name__)
        return None


def coerce_scores(scores: Any) -> MoodScores:
    parsed = parse_scores(scores)
    return parsed if parsed is not None else MoodScores()


def _content_length(value: float | int | None) -> float:
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def content_scale(content_length: float | int | None, cfg: ProjectionConfig) -> float:
    """Saturating size multiplier: 1.0 for empty entries, capped at ``content_scale_cap``."""
    length = _content_length(content_length)
    return min(cfg.content_scale_cap, 1.0 + length / cfg.content_length_divisor)


def to_view(raw: float, cfg: ProjectionConfig) -> float:
    if not math.isfinite(raw):
        raw = SCORE_MAX / 2
    pct = max(0.0, min(SCORE_MAX, raw))
    return cfg.view_min + (pct / SCORE_MAX) * (cfg.view_max - cfg.view_min)


def _axis_mean(scores: MoodScores, keys: list[str]) -> float:
    return sum(scores.value(key) for key in keys) / len(keys)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def project(
    scores: ScoreInput | None,
    content_length: float | int | None = None,
    cfg: ProjectionConfig | None = None,
) -> Projection:
    cfg = cfg or ProjectionConfig()
    mood = coerce_scores(scores)

    x = to_view(_axis_mean(mood, cfg.x_axis), cfg)
    y = to_view(_axis_mean(mood, cfg.y_axis), cfg)

    size_signal = sum(mood.value(key) for key in cfg.size_axis) * (2 / len(cfg.size_axis))
    base = _BASE_SIZE_FLOOR + size_signal / 25
    raw_size = _clamp(base * content_scale(content_length, cfg), _BASE_SIZE_FLOOR, _BASE_SIZE_CEILING)
    size = _clamp(raw_size * _DISPLAY_SIZE_BOOST, cfg.size_min, cfg.size_max)
    return Projection(x=x, y=y, size=size)


def fallback_scores(date: str) -> MoodScores:
    """Deterministic pseudo-scores for a day that has a journal but no analysis."""
    n = sum(ord(ch) for ch in date)
    return MoodScores(
        self_awareness=40 + (n % 35),
        resilience=45 + ((n * 7) % 30),
        empathy=50 + ((n * 13) % 25),
        self_direction=40 + ((n * 11) % 35),
        meaning_orientation=55 + ((n * 3) % 30),
        openness=50 + ((n * 17) % 25),
        self_acceptance=45 + ((n * 19) % 30),
    )


def fallback_projection(
    date: str,
    content_length: float | int | None = None,
    cfg: ProjectionConfig | None = None,
) -> Projection:
    return project(fallback_scores(date), content_length, cfg)


def project_day(
    date: str,
    scores: ScoreInput | None,
    content_length: float | int | None = None,
    cfg: ProjectionConfig | None = None,
) -> Projection:
    mood = parse_scores(scores)
    if mood is None:
        return fallback_projection(date, content_length, cfg)
    return project(mood, content_length, cfg)


def size_for_content_length(content_length: float | int | None, cfg: ProjectionConfig | None = None) -> float:
    """Star size used by merges that do not carry a projected size."""
    cfg = cfg or ProjectionConfig()
    return _clamp(cfg.merge_base_size * content_scale(content_length, cfg), cfg.size_min, cfg.size_max)
