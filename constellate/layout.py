"""Display-only layout: viewport fit plus deterministic anti-overlap.

Output coordinates are for drawing. They must never be written back into
stored star positions or repeated renders would drift the atlas.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from typing import Any

from constellate.config import LayoutConfig
from constellate.models import DisplayPoint, Star

logger = logging.getLogger(__name__)

_GOLDEN_ANGLE = math.pi * (3 - math.sqrt(5))
_EPSILON = 1e-9


def _as_display_point(item: DisplayPoint | Star | Mapping[str, Any]) -> DisplayPoint:
    if isinstance(item, DisplayPoint):
        return DisplayPoint(id=item.id, x=item.x, y=item.y)
    if isinstance(item, Star):
        return DisplayPoint(id=item.id, x=item.x, y=item.y)
    return DisplayPoint.model_validate(item)


def _fit_to_viewport(xs: list[float], ys: list[float], cfg: LayoutConfig) -> None:
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)
    span = max(max_x - min_x, max_y - min_y)
    available = cfg.viewport - 2 * cfg.padding
    scale = cfg.max_zoom if span <= _EPSILON else min(available / span, cfg.max_zoom)

    center_x = (min_x + max_x) / 2
    center_y = (min_y + max_y) / 2
    mid = cfg.viewport / 2
    for idx in range(len(xs)):
        xs[idx] = mid + (xs[idx] - center_x) * scale
        ys[idx] = mid + (ys[idx] - center_y) * scale


def _repel_pass(xs: list[float], ys: list[float], min_separation: float) -> bool:
    moved = False
    count = len(xs)
    for i in range(count):
        for j in range(i + 1, count):
            dx = xs[j] - xs[i]
            dy = ys[j] - ys[i]
            dist = math.hypot(dx, dy)
            if dist >= min_separation - _EPSILON:
                continue
            if dist <= _EPSILON:
                angle = _GOLDEN_ANGLE * (i + j + 1)
                ux, uy = math.cos(angle), math.sin(angle)
            else:
                ux, uy = dx / dist, dy / dist
            push = (min_separation - dist) / 2
            xs[i] -= ux * push
            ys[i] -= uy * push
            xs[j] += ux * push
            ys[j] += uy * push
            moved = True
    return moved


def _clamp_all(values: list[float], low: float, high: float) -> None:
    for idx, value in enumerate(values):
        values[idx] = max(low, min(high, value))


def normalize_for_display(
    points: Sequence[DisplayPoint | Star | Mapping[str, Any]],
    cfg: LayoutConfig | None = None,
) -> list[DisplayPoint]:
    """Fit ``points`` into the padded viewport and push apart pairs closer than ``min_separation``.

    Points are processed in id order and pairs visited in that order on every
    pass, so the same point set yields the same coordinates per id however the
    caller ordered it. Passes repeat until nothing moves, up to
    ``cfg.iterations``. Results come back in input order.
    """
    cfg = cfg or LayoutConfig()
    copies = [_as_display_point(item) for item in points]
    if not copies:
        return []

    order = sorted(range(len(copies)), key=lambda idx: (copies[idx].id, copies[idx].x, copies[idx].y))
    xs = [copies[idx].x for idx in order]
    ys = [copies[idx].y for idx in order]
    _fit_to_viewport(xs, ys, cfg)

    low = cfg.padding
    high = cfg.viewport - cfg.padding
    passes = 0
    for _ in range(cfg.iterations):
        moved = _repel_pass(xs, ys, cfg.min_separation)
        _clamp_all(xs, low, high)
        _clamp_all(ys, low, high)
        passes += 1
        if not moved:
            break

    logger.debug("Layout normalized: points=%s passes=%s", len(copies), passes)
    placed: list[DisplayPoint] = list(copies)
    for pos, idx in enumerate(order):
        placed[idx] = DisplayPoint(id=copies[idx].id, x=xs[pos], y=ys[pos])
    return placed
