"""Core Pydantic domain models for Constellate."""

from __future__ import annotations

import math
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

STAR_ID_PREFIX = "star-"
NEUTRAL_SCORE = 50.0
SCORE_MIN = 0.0
SCORE_MAX = 100.0
DEFAULT_STAR_SIZE = 4.0

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Canonical order of the seven mood dimensions (camelCase wire names).
MOOD_SCORE_KEYS = (
    "selfAwareness",
    "resilience",
    "empathy",
    "selfDirection",
    "meaningOrientation",
    "openness",
    "selfAcceptance",
)


def is_valid_date(value: str) -> bool:
    return bool(_DATE_RE.match(value or ""))


def star_id_for_date(date: str) -> str:
    return f"{STAR_ID_PREFIX}{date}"


def date_from_star_id(star_id: str) -> str | None:
    if not star_id.startswith(STAR_ID_PREFIX):
        return None
    date = star_id[len(STAR_ID_PREFIX) :]
    return date if is_valid_date(date) else None


def _finite_or(value: Any, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def clamp_score(value: Any) -> float:
    """Coerce a raw score into [0, 100]; unusable values become the neutral midpoint."""
    number = _finite_or(value, NEUTRAL_SCORE)
    return max(SCORE_MIN, min(SCORE_MAX, number))


class MoodScores(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    self_awareness: float = Field(default=NEUTRAL_SCORE, alias="selfAwareness")
    resilience: float = Field(default=NEUTRAL_SCORE, alias="resilience")
    empathy: float = Field(default=NEUTRAL_SCORE, alias="empathy")
    self_direction: float = Field(default=NEUTRAL_SCORE, alias="selfDirection")
    meaning_orientation: float = Field(default=NEUTRAL_SCORE, alias="meaningOrientation")
    openness: float = Field(default=NEUTRAL_SCORE, alias="openness")
    self_acceptance: float = Field(default=NEUTRAL_SCORE, alias="selfAcceptance")

    @model_validator(mode="before")
    @classmethod
    def _accept_positional(cls, data: Any) -> Any:
        if isinstance(data, Sequence) and not isinstance(data, (str, bytes)):
            values = list(data)[: len(MOOD_SCORE_KEYS)]
            return dict(zip(MOOD_SCORE_KEYS, values))
        if data is None:
            return {}
        return data

    @field_validator("*", mode="before")
    @classmethod
    def _lenient_score(cls, value: Any) -> float:
        return clamp_score(value)

    def value(self, key: str) -> float:
        """Look up a dimension by wire name (``selfAwareness``) or attribute name."""
        field = _FIELD_BY_ALIAS.get(key, key)
        if field not in type(self).model_fields:
            raise ValueError(f"Unknown mood dimension: {key}")
        return float(getattr(self, field))

    def as_vector(self) -> list[float]:
        return [self.value(key) for key in MOOD_SCORE_KEYS]

    def mean(self) -> float:
        vector = self.as_vector()
        return sum(vector) / len(vector)


_FIELD_BY_ALIAS = {info.alias: name for name, info in MoodScores.model_fields.items() if info.alias}


class Point(BaseModel):
    model_config = ConfigDict(extra="ignore")

    x: float = NEUTRAL_SCORE
    y: float = NEUTRAL_SCORE

    @field_validator("x", "y", mode="before")
    @classmethod
    def _finite(cls, value: Any) -> float:
        return _finite_or(value, NEUTRAL_SCORE)


class Projection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    x: float
    y: float
    size: float

    @property
    def position(self) -> Point:
        return Point(x=self.x, y=self.y)


class Star(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    date: str
    position: Point
    size: float = DEFAULT_STAR_SIZE
    keywords: list[str] = Field(default_factory=list)
    scores: MoodScores | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_flat_coordinates(cls, data: Any) -> Any:
        # Older payloads stored x/y at the top level of the star.
        if isinstance(data, dict) and "position" not in data and ("x" in data or "y" in data):
            data = dict(data)
            data["position"] = {"x": data.pop("x", None), "y": data.pop("y", None)}
        if isinstance(data, dict) and "id" not in data and isinstance(data.get("date"), str):
            data = dict(data)
            data["id"] = star_id_for_date(data["date"])
        return data

    @field_validator("size", mode="before")
    @classmethod
    def _lenient_size(cls, value: Any) -> float:
        return _finite_or(value, DEFAULT_STAR_SIZE)

    @field_validator("keywords", mode="before")
    @classmethod
    def _lenient_keywords(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [item for item in value if isinstance(item, str)]

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y

    def distance_to(self, other: Star) -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


class Connection(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    source: str = Field(alias="from")
    target: str = Field(alias="to")
    # Set on edges synthesized by a recluster pass; those are rebuilt on every pass.
    derived: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return canonical_pair(self.source, self.target)

    @property
    def is_self_loop(self) -> bool:
        return self.source == self.target

    def touches(self, star_id: str) -> bool:
        return self.source == star_id or self.target == star_id


_MEMBER_ALIASES = AliasChoices("memberIds", "member_ids", "starIds")


class Cluster(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    member_ids: list[str] = Field(default_factory=list, validation_alias=_MEMBER_ALIASES, serialization_alias="memberIds")
    name: str | None = None
    summary: str | None = None


class ClusterIdentity(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str
    summary: str
    member_ids: list[str] = Field(default_factory=list, validation_alias=_MEMBER_ALIASES, serialization_alias="memberIds")


class NamingRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    member_ids: list[str]
    dates: list[str]
    snippets: dict[str, str] = Field(default_factory=dict)
    keywords: dict[str, list[str]] = Field(default_factory=dict)
    identity_hint: str | None = None


class DisplayPoint(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    x: float
    y: float


class DisplayStar(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    date: str
    x: float
    y: float
    size: float
    keywords: list[str] = Field(default_factory=list)


class AtlasView(BaseModel):
    model_config = ConfigDict(extra="forbid")

    stars: list[DisplayStar]
    connections: list[Connection]
    clusters: list[Cluster]
    floating_star_ids: list[str] = Field(default_factory=list)


class ReclusterReport(BaseModel):
    model_config = ConfigDict(extra="forbid")

    generated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    star_count: int
    visible_star_count: int
    clusters: list[Cluster]
    floating_star_ids: list[str]
    connections_added: int
    connections_removed: int = 0
    cache_hits: int
    naming_calls: int
    naming_failures: int
    profile: dict[str, Any] = Field(default_factory=dict)
