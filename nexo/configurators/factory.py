"""Builders for configurator steps that mostly add dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from nexo.context import ProjectContext

DependencyTable = Mapping[str, Mapping[str, str]]
AfterHook = Callable[["ProjectContext", str], Awaitable[None]]


def dependency_configurator(
    key: str,
    table: DependencyTable,
    dev: bool = False,
    after: AfterHook | None = None,
) -> Callable[["ProjectContext"], Awaitable[None]]:
    """Create a step that adds ``table[selection]`` for the selection *key*.

    The step does nothing when the selection is ``"none"`` or has no entry in
    *table*. Otherwise every package in the entry is added (to
    ``devDependencies`` when *dev* is set) and *after* is awaited with the
    selected value.

    Example::

        FORMS = {"rhf-zod": {"react-hook-form": "^7.60.0", "zod": "^3.25.0"}}
        forms_step = dependency_configurator("forms", FORMS)
    """

    async def step(ctx: "ProjectContext") -> None:
        selection = getattr(ctx.selections, key)
        if not selection or selection == "none":
            return
        packages = table.get(selection)
        if packages is None:
            return
        for name, version in packages.items():
            ctx.package.add(name, version, dev=dev)
        if after is not None:
            await after(ctx, selection)

    step.__name__ = f"{key}_step"
    step.__qualname__ = step.__name__
    return step
