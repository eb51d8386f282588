"""Dependency-ordered concurrency scheduler.

``run_pool`` keeps up to ``max_concurrency`` tasks in flight and refills a
slot the moment any task settles, rather than waiting for a whole dependency
level to finish. Because there is no level pre-pass, deadlocks (cycles or
dependencies that never complete) are detected when the pool runs dry with
tasks still pending.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from nexo.errors import CircularDependencyError, UnmetDependencyError


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Task:
    """A named unit of async work and the names it waits for."""

    name: str
    fn: Callable[[], Awaitable[Any]]
    dependencies: frozenset[str] = field(default_factory=frozenset)


@dataclass
class TaskState:
    """Mutable bookkeeping for one task during a ``run_pool`` call."""

    name: str
    status: TaskStatus = TaskStatus.PENDING
    error: BaseException | None = None
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def duration(self) -> float | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


EventHook = Callable[[str, TaskStatus], None]


def _check_names(tasks: list[Task]) -> None:
    seen: set[str] = set()
    for task in tasks:
        if task.name in seen:
            raise ValueError(f"Duplicate task name: {task.name}")
        seen.add(task.name)


# ---------------------------------------------------------------------------
# Smart pool
# ---------------------------------------------------------------------------


async def run_pool(
    tasks: Iterable[Task],
    max_concurrency: int = 4,
    on_event: EventHook | None = None,
) -> dict[str, TaskState]:
    """Run *tasks* respecting dependencies with at most *max_concurrency* in flight.

    Args:
        tasks: Tasks to execute. Names must be unique.
        max_concurrency: Upper bound on simultaneously running tasks.
        on_event: Optional callback invoked on every state transition.

    Returns:
        Final ``TaskState`` per task name, all ``COMPLETED``.

    Raises:
        ValueError: On duplicate names or ``max_concurrency < 1``.
        UnmetDependencyError: If pending tasks can never become ready.
        Exception: The error of the first task that failed. Tasks already
            running are allowed to settle first; nothing new is started.
    """
    task_list = list(tasks)
    if max_concurrency < 1:
        raise ValueError("max_concurrency must be at least 1")
    _check_names(task_list)

    by_name = {task.name: task for task in task_list}
    states = {task.name: TaskState(task.name) for task in task_list}
    completed: set[str] = set()
    in_flight: dict[asyncio.Task[Any], str] = {}
    first_failure: TaskState | None = None

    def emit(name: str, status: TaskStatus) -> None:
        if on_event is not None:
            on_event(name, status)

    def fill() -> None:
        for name, state in states.items():
            if len(in_flight) >= max_concurrency:
                return
            if state.status is not TaskStatus.PENDING:
                continue
            if not by_name[name].dependencies <= completed:
                continue
            state.status = TaskStatus.RUNNING
            state.started_at = time.monotonic()
            emit(name, TaskStatus.RUNNING)
            in_flight[asyncio.create_task(by_name[name].fn(), name=name)] = name

    try:
        while True:
            if first_failure is None:
                fill()

            if not in_flight:
                if first_failure is not None and first_failure.error is not None:
                    raise first_failure.error
                stuck = sorted(n for n, s in states.items() if s.status is TaskStatus.PENDING)
                if stuck:
                    raise UnmetDependencyError(stuck)
                return states

            done, _ = await asyncio.wait(set(in_flight), return_when=asyncio.FIRST_COMPLETED)
            for finished in done:
                name = in_flight.pop(finished)
                state = states[name]
                state.finished_at = time.monotonic()
                error = finished.exception() if not finished.cancelled() else asyncio.CancelledError()
                if error is None:
                    state.status = TaskStatus.COMPLETED
                    completed.add(name)
                    emit(name, TaskStatus.COMPLETED)
                else:
                    state.status = TaskStatus.FAILED
                    state.error = error
                    emit(name, TaskStatus.FAILED)
                    if first_failure is None:
                        first_failure = state
    finally:
        for pending in in_flight:
            pending.cancel()


# ---------------------------------------------------------------------------
# Static analysis
# ---------------------------------------------------------------------------


def group_by_level(tasks: Iterable[Task]) -> list[list[Task]]:
    """Partition *tasks* into dependency levels without running anything.

    Level 0 holds tasks with no dependencies inside the set; level *n* holds
    tasks whose in-set dependencies all live in earlier levels. Dependencies
    on names outside the set are ignored.

    Raises:
        ValueError: On duplicate names.
        CircularDependencyError: If some tasks can never be levelled.
    """
    task_list = list(tasks)
    _check_names(task_list)
    known = {task.name for task in task_list}
    remaining = {task.name: task.dependencies & known for task in task_list}
    order = {task.name: i for i, task in enumerate(task_list)}
    by_name = {task.name: task for task in task_list}

    levels: list[list[Task]] = []
    placed: set[str] = set()
    while remaining:
        ready = [name for name, deps in remaining.items() if deps <= placed]
        if not ready:
            raise CircularDependencyError(min(remaining, key=order.__getitem__))
        ready.sort(key=order.__getitem__)
        levels.append([by_name[name] for name in ready])
        placed.update(ready)
        for name in ready:
            del remaining[name]
    return levels


@dataclass(frozen=True)
class TimeEstimate:
    sequential: float
    parallel: float
    savings_percent: float


def estimate_time_savings(tasks: Iterable[Task], avg_step_time: float = 0.1) -> TimeEstimate:
    """Rough wall-clock estimate for sequential versus level-parallel execution."""
    task_list = list(tasks)
    levels = group_by_level(task_list)
    sequential = len(task_list) * avg_step_time
    parallel = len(levels) * avg_step_time
    savings = 0.0 if sequential == 0 else round((sequential - parallel) / sequential * 100, 1)
    return TimeEstimate(sequential=sequential, parallel=parallel, savings_percent=savings)
