"""Constellation naming providers."""

from __future__ import annotations

from constellate.config import NamingConfig
from constellate.naming.base import ClusterNamer
from constellate.naming.keywords import KeywordNamer
from constellate.naming.openai_compatible import OpenAICompatibleNamer


def namer_from_config(config: NamingConfig) -> ClusterNamer:
    if config.provider == "openai-compatible":
        if not config.endpoint:
            raise ValueError("naming.endpoint is required for openai-compatible provider")
        return OpenAICompatibleNamer(
            endpoint=config.endpoint,
            model=config.model,
            api_key_env=config.api_key_env,
            timeout_seconds=config.timeout_seconds,
            temperature=config.temperature,
            max_snippet_chars=config.max_snippet_chars,
        )
    if config.provider == "keywords":
        return KeywordNamer()
    raise ValueError(f"Unknown naming provider: {config.provider}")


__all__ = ["ClusterNamer", "KeywordNamer", "OpenAICompatibleNamer", "namer_from_config"]
