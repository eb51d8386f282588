"""Nexo engine configuration.

Centralised, typed configuration for a generation run. All settings use
Pydantic v2 models so they can be validated at construction time and
serialised to/from JSON or environment variables without boiler-plate.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

NPM_REGISTRY_URL = "https://registry.npmjs.org"


class ExecutionStrategy(str, Enum):
    """How the orchestrator executes the sorted step list."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class ConflictPolicy(str, Enum):
    """What happens when two steps declare different versions of one dependency."""

    LAST_WRITE_WINS = "last_write_wins"
    HIGHEST_WINS = "highest_wins"
    ERROR = "error"


class RetryPolicy(BaseModel):
    """Exponential backoff settings for network operations.

    The delay before retry *n* (0-indexed) is
    ``min(initial_delay * backoff_multiplier ** n, max_delay)``.
    """

    max_retries: int = Field(default=3, ge=0)
    initial_delay: float = Field(default=1.0, ge=0.0, description="Seconds before the first retry")
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    max_delay: float = Field(default=10.0, ge=0.0, description="Upper bound for any single delay")


class NetworkConfig(BaseModel):
    """Settings for registry lookups."""

    registry_url: str = Field(default=NPM_REGISTRY_URL)
    timeout: float = Field(default=3.0, gt=0, description="Per-request timeout in seconds")
    connectivity_check_interval: float = Field(
        default=30.0, ge=0, description="Seconds before a known connectivity state is re-checked"
    )
    memory_cache_ttl: float = Field(default=3600.0, ge=0)
    offline: bool = Field(default=False, description="Skip the network entirely")


class CacheConfig(BaseModel):
    """Settings for the persisted disk cache."""

    enabled: bool = Field(default=True)
    path: Path = Field(default_factory=lambda: Path.home() / ".nexo" / "cache.json")
    ttl: float = Field(default=24 * 60 * 60, ge=0)
    schema_version: str = Field(default="1.0.0", description="Bump to invalidate existing files")


class EngineConfig(BaseModel):
    """Tuning knobs for step execution."""

    max_concurrency: int = Field(default=4, ge=1, description="Maximum concurrent steps")
    strategy: ExecutionStrategy = Field(default=ExecutionStrategy.PARALLEL)
    resolve_versions: bool = Field(
        default=True, description="Replace pinned versions with live registry versions"
    )
    await_prefetch: bool = Field(
        default=True, description="Wait for the background prefetch before resolving"
    )
    conflict_policy: ConflictPolicy = Field(default=ConflictPolicy.LAST_WRITE_WINS)


class Config(BaseModel):
    """Global engine configuration.

    Instances are typically created once by the caller (or ``from_env``)
    and then handed to the ``Orchestrator``.
    """

    network: NetworkConfig = Field(default_factory=NetworkConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    verbose: bool = Field(default=False)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def save(self, path: Path) -> Path:
        """Persist the configuration to a JSON file and return its path."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @classmethod
    def load(cls, path: Path) -> "Config":
        """Load a previously-saved configuration from JSON."""
        raw = Path(path).read_text(encoding="utf-8")
        return cls.model_validate_json(raw)

    @classmethod
    def from_env(cls) -> "Config":
        """Build a ``Config`` from environment variables.

        Recognised variables (all optional):
            NEXO_OFFLINE, NEXO_REGISTRY_URL, NEXO_NETWORK_TIMEOUT,
            NEXO_MAX_CONCURRENCY, NEXO_STRATEGY, NEXO_CACHE_DIR, NEXO_NO_CACHE,
            NEXO_SKIP_RESOLVE, NEXO_VERBOSE (or DEBUG).
        """
        network_kwargs: dict[str, Any] = {}
        if os.environ.get("NEXO_REGISTRY_URL"):
            network_kwargs["registry_url"] = os.environ["NEXO_REGISTRY_URL"]
        if os.environ.get("NEXO_NETWORK_TIMEOUT"):
            network_kwargs["timeout"] = float(os.environ["NEXO_NETWORK_TIMEOUT"])
        network_kwargs["offline"] = _env_flag("NEXO_OFFLINE")

        cache_kwargs: dict[str, Any] = {"enabled": not _env_flag("NEXO_NO_CACHE")}
        if os.environ.get("NEXO_CACHE_DIR"):
            cache_kwargs["path"] = Path(os.environ["NEXO_CACHE_DIR"]) / "cache.json"

        engine_kwargs: dict[str, Any] = {"resolve_versions": not _env_flag("NEXO_SKIP_RESOLVE")}
        if os.environ.get("NEXO_MAX_CONCURRENCY"):
            engine_kwargs["max_concurrency"] = int(os.environ["NEXO_MAX_CONCURRENCY"])
        if os.environ.get("NEXO_STRATEGY"):
            engine_kwargs["strategy"] = ExecutionStrategy(os.environ["NEXO_STRATEGY"].lower())

        return cls(
            network=NetworkConfig(**network_kwargs),
            cache=CacheConfig(**cache_kwargs),
            engine=EngineConfig(**engine_kwargs),
            verbose=_env_flag("NEXO_VERBOSE") or _env_flag("DEBUG"),
        )


def _env_flag(name: str) -> bool:
    """Interpret an environment variable as a boolean switch."""
    return os.environ.get(name, "").strip().lower() in {"1", "true", "yes", "on"}
