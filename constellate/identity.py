"""Signature-keyed cache of constellation names and summaries."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from constellate.models import ClusterIdentity

logger = logging.getLogger(__name__)

SIGNATURE_SEPARATOR = "|"


def cluster_signature(member_ids: Iterable[str]) -> str:
    return SIGNATURE_SEPARATOR.join(sorted(set(member_ids)))


class ClusterIdentityCache:
    """Side table from member-set signature to a previously assigned identity.

    Entries never expire; when a constellation gains or loses a star its
    signature changes and the old entry is simply never looked up again.
    """

    def __init__(self, entries: dict[str, ClusterIdentity] | None = None) -> None:
        self._entries: dict[str, ClusterIdentity] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, signature: str) -> bool:
        return signature in self._entries

    def get(self, signature: str) -> ClusterIdentity | None:
        return self._entries.get(signature)

    def set(self, signature: str, identity: ClusterIdentity) -> None:
        self._entries[signature] = identity

    def lookup(self, member_ids: Iterable[str]) -> ClusterIdentity | None:
        identity = self.get(cluster_signature(member_ids))
        if identity is None or not identity.name or not identity.summary:
            return None
        return identity

    def remember(self, member_ids: Iterable[str], name: str, summary: str) -> ClusterIdentity:
        members = sorted(set(member_ids))
        identity = ClusterIdentity(name=name, summary=summary, member_ids=members)
        self.set(cluster_signature(members), identity)
        return identity

    def to_payload(self) -> dict[str, Any]:
        return {signature: identity.model_dump(by_alias=True) for signature, identity in sorted(self._entries.items())}

    def to_json(self) -> str:
        return json.dumps(self.to_payload(), ensure_ascii=False)

    @classmethod
    def from_payload(cls, raw: Any) -> ClusterIdentityCache:
        if not isinstance(raw, dict):
            if raw is not None:
                logger.warning("Identity cache payload is %s, not a mapping; starting empty", type(raw).__name__)
            return cls()

        entries: dict[str, ClusterIdentity] = {}
        dropped = 0
        for signature, value in raw.items():
            if not isinstance(signature, str):
                dropped += 1
                continue
            try:
                entries[signature] = ClusterIdentity.model_validate(value)
            except ValidationError:
                dropped += 1
        if dropped:
            logger.warning("Dropped %s malformed identity cache entries", dropped)
        return cls(entries)

    @classmethod
    def from_json(cls, text: str | None) -> ClusterIdentityCache:
        if not text:
            return cls()
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            logger.warning("Identity cache is not valid JSON; starting empty")
            return cls()
        return cls.from_payload(raw)
