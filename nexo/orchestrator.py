"""Project generation orchestrator.

Turns a set of ``Selections`` into a project directory:

1. Prepare the output directory and load (or create) ``package.json``.
2. Ask the registry for the active steps and sort them by dependency.
3. Run the steps, either one at a time or in phased-parallel tiers.
4. Replace pinned versions with live registry versions (never fatal).
5. Write ``package.json`` exactly once.

Usage::

    orchestrator = Orchestrator(Config.from_env())
    result = await orchestrator.run_project_generation(
        Selections(project_name="shop", state="zustand"), "./out"
    )
"""

from __future__ import annotations

import asyncio
import functools
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import NamedTuple

from pydantic import BaseModel, Field

from nexo.cache import DiskCache
from nexo.config import Config, ExecutionStrategy
from nexo.context import ProjectContext, Selections
from nexo.errors import ConfiguratorError
from nexo.network import VersionResolver
from nexo.package_descriptor import PackageDescriptor
from nexo.registry import StepRegistry, default_registry
from nexo.scheduler import Task, TaskStatus, run_pool
from nexo.utils import (
    create_progress,
    ensure_dir,
    format_duration,
    print_debug,
    print_step,
    print_success,
    print_summary_table,
    print_warning,
    set_verbose,
)

# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


class Phase(NamedTuple):
    """A tier of the phased-parallel strategy.

    ``steps=None`` marks the catch-all tier that receives every active step
    not listed in another phase. ``concurrency=None`` uses the configured
    ``max_concurrency``.
    """

    name: str
    steps: tuple[str, ...] | None
    concurrency: int | None = None


PHASES: tuple[Phase, ...] = (
    Phase("bootstrap", ("framework", "variant", "language"), concurrency=1),
    Phase("features", None),
    Phase("ui", ("ui",)),
    Phase("finalize", ("mandatory", "testing", "linting")),
)


def partition_phases(ordered: list[str], phases: tuple[Phase, ...] = PHASES) -> list[tuple[Phase, list[str]]]:
    """Split sorted step names into phase tiers, preserving sorted order."""
    listed = {name for phase in phases if phase.steps for name in phase.steps}
    tiers: list[tuple[Phase, list[str]]] = []
    for phase in phases:
        if phase.steps is None:
            names = [n for n in ordered if n not in listed]
        else:
            names = [n for n in ordered if n in phase.steps]
        if names:
            tiers.append((phase, names))
    return tiers


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


class GenerationResult(BaseModel):
    """Outcome of a successful ``run_project_generation`` call."""

    project_path: Path
    steps_run: list[str] = Field(default_factory=list)
    strategy: ExecutionStrategy
    duration: float = Field(default=0.0, description="Wall-clock seconds")
    versions_resolved: dict[str, str] = Field(default_factory=dict)
    success: bool = True


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


@dataclass
class _Run:
    """Per-run bookkeeping shared by the step runners."""

    required: frozenset[str] = frozenset()
    skipped: list[str] = field(default_factory=list)


class Orchestrator:
    """Runs configurator steps against a shared ``ProjectContext``.

    Args:
        config: Engine configuration.
        registry: Step catalog; defaults to the built-in configurators.
        resolver: Version resolver to use for every run. When omitted a
            resolver is built per run from ``config``, backed by the disk
            cache if it is enabled.
    """

    def __init__(
        self,
        config: Config | None = None,
        registry: StepRegistry | None = None,
        resolver: VersionResolver | None = None,
    ) -> None:
        self.config = config or Config()
        self.registry = registry or default_registry()
        self._resolver = resolver

    async def run_project_generation(
        self,
        selections: Selections,
        target_dir: str | Path,
        strategy: ExecutionStrategy | str | None = None,
    ) -> GenerationResult:
        """Generate the project described by *selections* under *target_dir*.

        Raises:
            ConfiguratorError: A step failed, or a step that others depend
                on could not be loaded.
            DependencyGraphError: The active steps cannot be ordered.
            PersistenceError: ``package.json`` could not be read or written.
        """
        if self.config.verbose:
            set_verbose(True)
        chosen = ExecutionStrategy(strategy) if strategy is not None else self.config.engine.strategy
        project_path = Path(target_dir).resolve() / selections.project_name
        await asyncio.to_thread(ensure_dir, project_path / "src")

        if self._resolver is not None:
            return await self._generate(selections, project_path, chosen, self._resolver)

        cache_config = self.config.cache
        if not cache_config.enabled:
            resolver = VersionResolver.from_config(self.config)
            return await self._generate(selections, project_path, chosen, resolver)

        disk = DiskCache(cache_config.path, ttl=cache_config.ttl, version=cache_config.schema_version)
        async with disk.session():
            resolver = VersionResolver.from_config(self.config, persistent_cache=disk)
            return await self._generate(selections, project_path, chosen, resolver)

    async def _generate(
        self,
        selections: Selections,
        project_path: Path,
        strategy: ExecutionStrategy,
        resolver: VersionResolver,
    ) -> GenerationResult:
        start = time.monotonic()
        engine = self.config.engine

        package = PackageDescriptor(project_path, conflict_policy=engine.conflict_policy)
        package.load(selections.project_name)
        ctx = ProjectContext(project_path, selections, package, resolver)

        if engine.resolve_versions:
            resolver.start_prefetch()

        versions: dict[str, str] = {}
        run = _Run()
        try:
            ordered = self.registry.sort_by_dependencies(self.registry.get_active_steps(selections))
            run.required = frozenset(
                dep for name in ordered for dep in self.registry.dependencies_of(name, ordered)
            )
            print_debug(f"Steps ({strategy.value}): {', '.join(ordered)}")

            if strategy is ExecutionStrategy.SEQUENTIAL:
                await self._run_sequential(ordered, ctx, run)
            else:
                await self._run_phased(ordered, ctx, run)

            if engine.resolve_versions:
                if engine.await_prefetch:
                    await resolver.wait_for_prefetch()
                try:
                    versions = await package.resolve_latest_versions(resolver)
                except Exception as exc:  # noqa: BLE001
                    print_warning(f"Version resolution failed, keeping pinned versions: {exc}")
        finally:
            await resolver.cancel_prefetch()

        for conflict in package.conflicts:
            print_debug(
                f"{conflict.name}: {conflict.previous} vs {conflict.requested} -> {conflict.kept}"
            )

        await package.save()
        steps_run = [name for name in ordered if name not in run.skipped]
        duration = time.monotonic() - start

        print_success(f"Project created at {project_path} in {format_duration(duration)}")
        print_summary_table(
            {
                "Steps": str(len(steps_run)),
                "Strategy": strategy.value,
                "Dependencies": str(len(package.dependencies) + len(package.dev_dependencies)),
                "Duration": format_duration(duration),
            },
            title="Generation Summary",
        )
        return GenerationResult(
            project_path=project_path,
            steps_run=steps_run,
            strategy=strategy,
            duration=duration,
            versions_resolved=versions,
        )

    # ------------------------------------------------------------------
    # Step execution
    # ------------------------------------------------------------------

    async def _run_step(self, name: str, ctx: ProjectContext, run: _Run) -> bool:
        """Run one step; return ``False`` if it was skipped.

        A step whose implementation cannot be loaded is skipped with a
        warning, unless another active step depends on it.
        """
        step = await self.registry.load(name)
        if step is None:
            if name in run.required:
                raise ConfiguratorError(name, "implementation could not be loaded")
            print_warning(f"Skipping {name}: implementation could not be loaded")
            run.skipped.append(name)
            return False
        try:
            await step(ctx)
        except Exception as exc:
            raise ConfiguratorError(name, str(exc) or type(exc).__name__) from exc
        return True

    def _label(self, name: str) -> str:
        descriptor = self.registry.get(name)
        return descriptor.display_name if descriptor is not None else name

    async def _run_sequential(self, ordered: list[str], ctx: ProjectContext, run: _Run) -> None:
        with create_progress() as progress:
            for name in ordered:
                label = self._label(name)
                task_id = progress.add_task(label, total=None)
                try:
                    ran = await self._run_step(name, ctx, run)
                except ConfiguratorError:
                    print_step(label, "failed")
                    raise
                finally:
                    progress.remove_task(task_id)
                print_step(label, "completed" if ran else "skipped")

    async def _run_phased(self, ordered: list[str], ctx: ProjectContext, run: _Run) -> None:
        default_concurrency = self.config.engine.max_concurrency
        for phase, names in partition_phases(ordered):
            print_debug(f"Phase {phase.name}: {', '.join(names)}")
            tasks = [
                Task(
                    name,
                    functools.partial(self._run_step, name, ctx, run),
                    frozenset(self.registry.dependencies_of(name, names)),
                )
                for name in names
            ]
            await run_pool(
                tasks,
                max_concurrency=phase.concurrency or default_concurrency,
                on_event=functools.partial(self._on_event, run),
            )

    def _on_event(self, run: _Run, name: str, status: TaskStatus) -> None:
        if status is TaskStatus.RUNNING:
            print_debug(f"Starting {name}")
        elif status is TaskStatus.COMPLETED and name in run.skipped:
            print_step(self._label(name), "skipped")
        else:
            print_step(self._label(name), status.value)
