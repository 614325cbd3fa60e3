"""Constellation naming provider abstractions."""

from __future__ import annotations

from typing import Protocol

from constellate.models import ClusterIdentity, NamingRequest

NAME_MAX_CHARS = 40
SUMMARY_MAX_CHARS = 120


class ClusterNamer(Protocol):
    def model_id(self) -> str:
        ...

    def name_cluster(self, request: NamingRequest) -> ClusterIdentity:
        ...


def bounded_identity(name: str, summary: str, member_ids: list[str]) -> ClusterIdentity:
    return ClusterIdentity(
        name=name.strip()[:NAME_MAX_CHARS],
        summary=summary.strip()[:SUMMARY_MAX_CHARS],
        member_ids=sorted(member_ids),
    )
