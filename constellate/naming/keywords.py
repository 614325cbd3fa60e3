"""Offline deterministic namer built from member keywords."""

from __future__ import annotations

from collections import Counter

from constellate.models import ClusterIdentity, NamingRequest
from constellate.naming.base import bounded_identity


class KeywordNamer:
    def __init__(self, top_keywords: int = 2, model: str = "keywords-v1") -> None:
        if top_keywords <= 0:
            raise ValueError("top_keywords must be positive")
        self._top = top_keywords
        self._model = model

    def model_id(self) -> str:
        return self._model

    def name_cluster(self, request: NamingRequest) -> ClusterIdentity:
        counts: Counter[str] = Counter()
        for date in request.dates:
            counts.update({keyword.strip().lower() for keyword in request.keywords.get(date, []) if keyword.strip()})

        dates = sorted(request.dates)
        span = f"{dates[0]} to {dates[-1]}" if dates else "these days"
        if not counts:
            return bounded_identity(
                f"Constellation of {len(request.member_ids)} days",
                f"Entries from {span} share a similar mood.",
                request.member_ids,
            )

        top = [keyword for keyword, _ in sorted(counts.items(), key=lambda item: (-item[1], item[0]))[: self._top]]
        return bounded_identity(
            f"Constellation of {' & '.join(top)}",
            f"Entries from {span} keep returning to {', '.join(top)}.",
            request.member_ids,
        )
