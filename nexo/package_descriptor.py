"""In-memory accumulator for the generated project's ``package.json``.

Every configurator step mutates the same ``PackageDescriptor``; only the
orchestrator persists it, exactly once, after all steps and version
resolution have finished. Concurrent steps therefore never touch the file.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from nexo.config import ConflictPolicy
from nexo.errors import ConfiguratorError, PersistenceError
from nexo.network import VersionResolver, is_valid_version, normalize_version, parse_release
from nexo.utils import load_json, print_debug, save_json

DEFAULT_PROJECT_NAME = "my-nexo-app"
PACKAGE_FILE = "package.json"


class DependencyConflict(BaseModel):
    """A dependency that was declared twice with different versions."""

    name: str
    previous: str
    requested: str
    kept: str


def default_package(project_name: str | None = None) -> dict[str, Any]:
    """Return the record used when no ``package.json`` exists yet."""
    return {
        "name": project_name or DEFAULT_PROJECT_NAME,
        "version": "0.1.0",
        "private": True,
        "type": "module",
        "dependencies": {},
        "devDependencies": {},
        "scripts": {},
    }


def _sorted_map(entries: dict[str, str]) -> dict[str, str]:
    return dict(sorted(entries.items(), key=lambda item: item[0]))


class PackageDescriptor:
    """Mutation-friendly view over ``dependencies``, ``devDependencies``,
    ``scripts`` and ``overrides`` of a project's ``package.json``.

    Attributes:
        project_path: Directory holding ``package.json``.
        conflict_policy: How ``add`` treats a differing version for a known name.
        conflicts: Every disagreement observed, whatever the policy.
    """

    def __init__(
        self,
        project_path: str | Path,
        conflict_policy: ConflictPolicy = ConflictPolicy.LAST_WRITE_WINS,
    ) -> None:
        self.project_path = Path(project_path)
        self.conflict_policy = conflict_policy
        self.conflicts: list[DependencyConflict] = []
        self._pkg: dict[str, Any] | None = None
        self._saved = False
        self._dependencies: dict[str, str] = {}
        self._dev_dependencies: dict[str, str] = {}
        self._scripts: dict[str, str] = {}
        self._overrides: dict[str, str] = {}

    @property
    def path(self) -> Path:
        return self.project_path / PACKAGE_FILE

    @property
    def loaded(self) -> bool:
        return self._pkg is not None

    @property
    def saved(self) -> bool:
        return self._saved

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def dependencies(self) -> dict[str, str]:
        return dict(self._dependencies)

    @property
    def dev_dependencies(self) -> dict[str, str]:
        return dict(self._dev_dependencies)

    @property
    def scripts(self) -> dict[str, str]:
        return dict(self._scripts)

    @property
    def overrides(self) -> dict[str, str]:
        return dict(self._overrides)

    def has(self, name: str) -> bool:
        return name in self._dependencies or name in self._dev_dependencies

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def load(self, project_name: str | None = None) -> None:
        """Hydrate from an existing ``package.json`` or start a default record.

        Raises:
            PersistenceError: If the file exists but is not a readable JSON object.
        """
        if self.path.is_file():
            try:
                pkg = load_json(self.path)
            except (OSError, ValueError) as exc:
                raise PersistenceError(f"Cannot read {self.path}: {exc}", self.path) from exc
        else:
            pkg = default_package(project_name)

        maps = {
            key: self._read_map(pkg, key)
            for key in ("dependencies", "devDependencies", "scripts", "overrides")
        }
        self._pkg = pkg
        self._dependencies = maps["dependencies"]
        self._dev_dependencies = maps["devDependencies"]
        self._scripts = maps["scripts"]
        self._overrides = maps["overrides"]

    def _read_map(self, pkg: dict[str, Any], key: str) -> dict[str, str]:
        value = pkg.get(key)
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise PersistenceError(
                f"Cannot read {self.path}: \"{key}\" must be an object, got {type(value).__name__}",
                self.path,
            )
        return dict(value)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def add(self, name: str, version: str, dev: bool = False) -> None:
        """Upsert a dependency; repeating the same call changes nothing."""
        target = self._dev_dependencies if dev else self._dependencies
        previous = target.get(name)
        if previous is None or previous == version:
            target[name] = version
            return

        kept = self._settle_conflict(name, previous, version)
        self.conflicts.append(
            DependencyConflict(name=name, previous=previous, requested=version, kept=kept)
        )
        print_debug(f"Dependency conflict for {name}: {previous} vs {version}, keeping {kept}")
        target[name] = kept

    def _settle_conflict(self, name: str, previous: str, requested: str) -> str:
        if self.conflict_policy is ConflictPolicy.ERROR:
            raise ConfiguratorError(
                name, f"conflicting versions requested: {previous} and {requested}"
            )
        if self.conflict_policy is ConflictPolicy.HIGHEST_WINS:
            prev_key = parse_release(previous)
            req_key = parse_release(requested)
            if prev_key is not None and (req_key is None or prev_key >= req_key):
                return previous
        return requested

    def add_script(self, name: str, command: str) -> None:
        self._scripts[name] = command

    def add_override(self, name: str, version: str) -> None:
        self._overrides[name] = version

    def remove(self, name: str) -> None:
        self._dependencies.pop(name, None)
        self._dev_dependencies.pop(name, None)

    def set(self, key: str, value: Any) -> None:
        """Set an arbitrary top-level ``package.json`` field."""
        if self._pkg is None:
            raise PersistenceError("package.json not loaded. Call load() first.", self.path)
        self._pkg[key] = value

    # ------------------------------------------------------------------
    # Version resolution
    # ------------------------------------------------------------------

    async def resolve_latest_versions(self, resolver: VersionResolver) -> dict[str, str]:
        """Replace pinned ranges with live registry versions where possible.

        Lookups fan out concurrently; one failing lookup never affects the
        others, and anything that is not a plausible version leaves the pinned
        value in place.

        Returns:
            The ``{name: version}`` entries that were applied.
        """
        names = list(dict.fromkeys([*self._dependencies, *self._dev_dependencies]))
        if not names:
            return {}

        results = await asyncio.gather(
            *(resolver.resolve_version(name) for name in names),
            return_exceptions=True,
        )

        applied: dict[str, str] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                print_debug(f"Keeping pinned version of {name}: {result}")
                continue
            if not is_valid_version(result):
                print_debug(f"Keeping pinned version of {name}: invalid {result!r}")
                continue
            version = normalize_version(result)
            if name in self._dependencies:
                self._dependencies[name] = version
            if name in self._dev_dependencies:
                self._dev_dependencies[name] = version
            applied[name] = version
        return applied

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return the record that ``save`` would write."""
        if self._pkg is None:
            raise PersistenceError("package.json not loaded. Call load() first.", self.path)
        pkg = dict(self._pkg)
        pkg["dependencies"] = _sorted_map(self._dependencies)
        pkg["devDependencies"] = _sorted_map(self._dev_dependencies)
        pkg["scripts"] = _sorted_map(self._scripts)
        if self._overrides:
            pkg["overrides"] = _sorted_map(self._overrides)
        return pkg

    async def save(self) -> Path:
        """Write ``package.json`` wholesale. Allowed exactly once per descriptor.

        Raises:
            PersistenceError: If not loaded, already saved, or the write fails.
        """
        if self._saved:
            raise PersistenceError("package.json was already saved for this run.", self.path)
        pkg = self.to_dict()
        try:
            await save_json(pkg, self.path)
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self.path}: {exc}", self.path) from exc
        self._saved = True
        return self.path
