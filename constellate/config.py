"""Configuration models and loading for Constellate."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constellate.models import MOOD_SCORE_KEYS


class ProjectionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    view_min: float = 10.0
    view_max: float = 90.0
    # Fixed axis pairing; selfDirection only feeds the date fallback and insights.
    x_axis: list[str] = Field(default_factory=lambda: ["selfAwareness", "openness", "meaningOrientation"])
    y_axis: list[str] = Field(default_factory=lambda: ["selfAcceptance", "resilience", "empathy"])
    size_axis: list[str] = Field(default_factory=lambda: ["selfAcceptance", "resilience"])
    content_length_divisor: float = 400.0
    content_scale_cap: float = 2.0
    merge_base_size: float = 3.0
    size_min: float = 4.0
    size_max: float = 6.0

    @field_validator("x_axis", "y_axis", "size_axis")
    @classmethod
    def _known_dimensions(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("axis must name at least one mood dimension")
        unknown = [key for key in value if key not in MOOD_SCORE_KEYS]
        if unknown:
            raise ValueError(f"unknown mood dimensions: {', '.join(unknown)}")
        return value

    @model_validator(mode="after")
    def _ordered_ranges(self) -> ProjectionConfig:
        if self.view_min >= self.view_max:
            raise ValueError("projection.view_min must be below view_max")
        if self.size_min > self.size_max:
            raise ValueError("projection.size_min must not exceed size_max")
        if self.content_length_divisor <= 0:
            raise ValueError("projection.content_length_divisor must be positive")
        return self


class ClusteringConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    threshold: float = Field(default=28.0, gt=0.0)


class ConnectionsConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fan_out: int = Field(default=2, ge=1)
    keyword_links: bool = True


class LayoutConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    viewport: float = Field(default=100.0, gt=0.0)
    padding: float = Field(default=12.0, ge=0.0)
    max_zoom: float = Field(default=2.5, gt=0.0)
    min_separation: float = Field(default=7.0, ge=0.0)
    # Upper bound on repulsion passes; layout stops early once no pair moves.
    iterations: int = Field(default=100, ge=0)

    @model_validator(mode="after")
    def _padding_fits(self) -> LayoutConfig:
        if self.padding * 2 >= self.viewport:
            raise ValueError("layout.padding leaves no room inside the viewport")
        return self


class VisibilityConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    window_days: int | None = Field(default=None, ge=1)


class NamingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: str = "keywords"
    model: str = "gpt-4o-mini"
    endpoint: str | None = None
    api_key_env: str | None = "OPENAI_API_KEY"
    timeout_seconds: float = 10.0
    temperature: float = 0.7
    max_snippet_chars: int = 80


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: str = "sqlite"
    sqlite_path: str = ".constellate/constellate.db"


class ConstellateConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    projection: ProjectionConfig = Field(default_factory=ProjectionConfig)
    clustering: ClusteringConfig = Field(default_factory=ClusteringConfig)
    connections: ConnectionsConfig = Field(default_factory=ConnectionsConfig)
    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    visibility: VisibilityConfig = Field(default_factory=VisibilityConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_effective_config(
    project_path: str | Path,
    user_defaults: dict[str, Any] | None = None,
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> ConstellateConfig:
    """Load config with precedence runtime > project .constellate.yaml > user > system."""
    project = Path(project_path)
    project_config = _load_yaml(project / ".constellate.yaml")

    merged: dict[str, Any] = {}
    for layer in (system_defaults, user_defaults, project_config, runtime_override):
        if layer:
            merged = _deep_merge(merged, layer)

    return ConstellateConfig.model_validate(merged)
