"""Step registry and lazy loader.

A ``StepRegistry`` maps step names to ``StepDescriptor`` entries: a deferred
loader, the names the step depends on, and an activation condition over the
user's selections. Implementations are loaded on first use and memoised per
registry, so a step that never activates is never imported.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from types import ModuleType
from typing import TYPE_CHECKING, Any

from nexo.errors import CircularDependencyError
from nexo.utils import print_error, print_warning

if TYPE_CHECKING:
    from nexo.context import ProjectContext, Selections

Step = Callable[["ProjectContext"], Awaitable[None]]


@dataclass(frozen=True)
class StepDescriptor:
    """Static registry entry for one configurator step.

    Attributes:
        name: Unique step key.
        loader: Zero-argument callable returning the module (or the step
            itself); may be a coroutine function.
        export_name: Attribute to look up on the loaded module. Defaults to
            the step name with dashes replaced by underscores.
        depends_on: Steps that must complete before this one starts.
        condition: Predicate over selections; ``None`` means always active.
        label: Progress text shown by the sequential strategy.
    """

    name: str
    loader: Callable[[], Any]
    export_name: str | None = None
    depends_on: frozenset[str] = field(default_factory=frozenset)
    condition: Callable[["Selections"], bool] | None = None
    label: str | None = None

    def is_active(self, selections: "Selections") -> bool:
        return self.condition is None or bool(self.condition(selections))

    @property
    def display_name(self) -> str:
        return self.label or f"Configuring {self.name}"


def _default_export(name: str) -> str:
    return name.replace("-", "_")


def extract_step(loaded: Any, export_name: str) -> Step | None:
    """Pick the step implementation out of whatever a loader returned.

    Modules are searched for ``export_name``, then ``default``, then
    ``<export_name>_step``. Any other callable is taken as the step itself.
    """
    if not isinstance(loaded, ModuleType):
        return loaded if callable(loaded) else None
    for attr in (export_name, "default", f"{export_name}_step"):
        candidate = getattr(loaded, attr, None)
        if callable(candidate):
            return candidate
    return None


class StepRegistry:
    """Catalog of configurator steps with an instance-level load cache."""

    def __init__(self, descriptors: Iterable[StepDescriptor] = ()) -> None:
        self._descriptors: dict[str, StepDescriptor] = {}
        self._loaded: dict[str, Step] = {}
        self._failed: set[str] = set()
        self._locks: dict[str, asyncio.Lock] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __len__(self) -> int:
        return len(self._descriptors)

    @property
    def names(self) -> list[str]:
        return list(self._descriptors)

    def register(self, descriptor: StepDescriptor) -> None:
        if descriptor.name in self._descriptors:
            raise ValueError(f"Step '{descriptor.name}' is already registered")
        self._descriptors[descriptor.name] = descriptor

    def get(self, name: str) -> StepDescriptor | None:
        return self._descriptors.get(name)

    # ------------------------------------------------------------------
    # Activation and ordering
    # ------------------------------------------------------------------

    def get_active_steps(self, selections: "Selections") -> list[str]:
        """Names of every step whose condition holds, in registration order."""
        return [name for name, d in self._descriptors.items() if d.is_active(selections)]

    def dependencies_of(self, name: str, within: Iterable[str] | None = None) -> list[str]:
        """Declared dependencies of *name*, optionally restricted to *within*."""
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            return []
        deps = sorted(descriptor.depends_on)
        if within is None:
            return deps
        allowed = set(within)
        return [d for d in deps if d in allowed]

    def sort_by_dependencies(self, names: Iterable[str]) -> list[str]:
        """Depth-first topological sort restricted to *names*.

        Dependencies outside *names* are ignored. Input order is preserved
        wherever the graph allows it.

        Raises:
            CircularDependencyError: Naming the step found on a cycle.
        """
        subset = list(dict.fromkeys(names))
        allowed = set(subset)
        ordered: list[str] = []
        visited: set[str] = set()
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in visited:
                return
            if name in visiting:
                raise CircularDependencyError(name)
            visiting.add(name)
            for dep in self.dependencies_of(name, allowed):
                visit(dep)
            visiting.discard(name)
            visited.add(name)
            ordered.append(name)

        for name in subset:
            visit(name)
        return ordered

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self, name: str) -> Step | None:
        """Return the implementation of *name*, loading it at most once.

        Unknown names and loader failures yield ``None`` with a warning; the
        caller decides whether a missing step is fatal.
        """
        if name in self._loaded:
            return self._loaded[name]

        async with self._locks.setdefault(name, asyncio.Lock()):
            if name in self._loaded:
                return self._loaded[name]
            if name in self._failed:
                return None

            descriptor = self._descriptors.get(name)
            if descriptor is None:
                print_warning(f"Unknown configurator: {name}")
                return None

            try:
                loaded = descriptor.loader()
                if inspect.isawaitable(loaded):
                    loaded = await loaded
            except Exception as exc:
                print_error(f"Failed to load configurator '{name}': {exc}")
                self._failed.add(name)
                return None

            step = extract_step(loaded, descriptor.export_name or _default_export(name))
            if step is None:
                print_error(f"Configurator '{name}' has no usable export")
                self._failed.add(name)
                return None

            self._loaded[name] = step
            return step

    async def load_many(self, names: Iterable[str]) -> dict[str, Step]:
        """Load several steps concurrently, skipping the ones that fail."""
        unique = list(dict.fromkeys(names))
        steps = await asyncio.gather(*(self.load(n) for n in unique))
        return {name: step for name, step in zip(unique, steps) if step is not None}

    async def preload(self, names: Iterable[str] | None = None) -> None:
        """Warm the cache for *names* (default: every registered step)."""
        await self.load_many(self.names if names is None else names)

    def clear_cache(self) -> None:
        self._loaded.clear()
        self._failed.clear()


def default_registry() -> StepRegistry:
    """Registry populated with the built-in configurator catalog."""
    from nexo.configurators import CATALOG

    return StepRegistry(CATALOG)
