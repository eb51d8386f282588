"""Shared pytest fixtures for the Nexo test suite.

Provides reusable fixtures for:
- Temporary project directories
- Fake clocks for cache and connectivity expiry
- Offline and mock-transport version resolvers
- Small hand-built step registries
"""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from nexo.config import Config
from nexo.context import ProjectContext, Selections
from nexo.network import VersionResolver
from nexo.package_descriptor import PackageDescriptor
from nexo.registry import StepDescriptor, StepRegistry
from nexo.utils import set_verbose


# ---------------------------------------------------------------------------
# Global state
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_verbose():
    """Debug output is process-wide; keep tests independent of each other."""
    set_verbose(False)
    yield
    set_verbose(False)


# ---------------------------------------------------------------------------
# Paths & Directories
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Temporary directory for generated projects (auto-cleanup)."""
    project_dir = tmp_path / "test-project"
    project_dir.mkdir()
    yield project_dir


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

class FakeClock:
    """Manually advanced clock usable wherever ``time.time`` is injected."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Registry mocks
# ---------------------------------------------------------------------------

def npm_handler(
    latest: dict[str, str] | None = None,
    packuments: dict[str, dict[str, Any]] | None = None,
    calls: list[str] | None = None,
) -> Callable[[httpx.Request], httpx.Response]:
    """Build an ``httpx.MockTransport`` handler imitating the npm registry.

    ``latest`` maps package names to the ``/<name>/latest`` version;
    ``packuments`` maps names to the full ``/<name>`` document. Anything else
    is a 404. Requested paths are appended to *calls* when given.
    """
    latest = latest or {}
    packuments = packuments or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if calls is not None:
            calls.append(path)
        name = path.lstrip("/")
        if name.endswith("/latest"):
            pkg = name[: -len("/latest")]
            if pkg in latest:
                return httpx.Response(200, json={"name": pkg, "version": latest[pkg]})
            return httpx.Response(404, json={"error": "Not found"})
        if name in packuments:
            return httpx.Response(200, content=json.dumps(packuments[name]).encode())
        if name == "react":
            return httpx.Response(200, json={"name": "react"})
        return httpx.Response(404, json={"error": "Not found"})

    return handler


@pytest.fixture
def offline_resolver() -> VersionResolver:
    """Resolver that never touches the network."""
    return VersionResolver(offline=True)


@pytest.fixture
def mock_resolver_factory():
    """Factory for resolvers backed by ``npm_handler``."""

    def _make(**kwargs: Any) -> VersionResolver:
        handler_kwargs = {k: kwargs.pop(k) for k in ("latest", "packuments", "calls") if k in kwargs}
        transport = httpx.MockTransport(npm_handler(**handler_kwargs))
        return VersionResolver(transport=transport, **kwargs)

    return _make


# ---------------------------------------------------------------------------
# Context & Registry
# ---------------------------------------------------------------------------

@pytest.fixture
def selections() -> Selections:
    return Selections(project_name="demo-app")


@pytest.fixture
def project_context(tmp_project_dir: Path, selections: Selections, offline_resolver: VersionResolver) -> ProjectContext:
    """Context over a loaded descriptor in a temp directory."""
    package = PackageDescriptor(tmp_project_dir)
    package.load(selections.project_name)
    return ProjectContext(tmp_project_dir, selections, package, offline_resolver)


@pytest.fixture
def registry_factory():
    """Factory for registries whose loaders return the given callables directly."""

    def _make(steps: dict[str, Any], deps: dict[str, set[str]] | None = None) -> StepRegistry:
        deps = deps or {}
        return StepRegistry(
            StepDescriptor(name, (lambda fn=fn: fn), depends_on=frozenset(deps.get(name, ())))
            for name, fn in steps.items()
        )

    return _make


@pytest.fixture
def offline_config(tmp_path: Path) -> Config:
    """Engine config that stays off the network and keeps the cache in tmp."""
    config = Config()
    config.network.offline = True
    config.cache.path = tmp_path / "cache" / "cache.json"
    return config


@pytest.fixture
def context_factory(tmp_project_dir: Path, offline_resolver: VersionResolver):
    """Factory for contexts over a fresh descriptor with custom selections."""

    def _make(**choices: Any) -> ProjectContext:
        choices.setdefault("project_name", "demo-app")
        selections = Selections(**choices)
        package = PackageDescriptor(tmp_project_dir)
        package.load(selections.project_name)
        return ProjectContext(tmp_project_dir, selections, package, offline_resolver)

    return _make
