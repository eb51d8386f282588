"""Built-in configurator steps.

``CATALOG`` lists every step with its dependencies and activation condition.
Step modules are imported lazily by the registry, so only steps that the
selections activate are ever loaded.
"""

from __future__ import annotations

import importlib
from collections.abc import Callable
from types import ModuleType

from nexo.configurators.factory import dependency_configurator
from nexo.registry import StepDescriptor

__all__ = ["CATALOG", "dependency_configurator"]


def _module(name: str) -> Callable[[], ModuleType]:
    def load() -> ModuleType:
        return importlib.import_module(f"nexo.configurators.{name}")

    return load


def _selected(option: str):
    return lambda selections: selections.is_enabled(option)


CATALOG: tuple[StepDescriptor, ...] = (
    # Core
    StepDescriptor("framework", _module("core"), label="Setting up framework"),
    StepDescriptor(
        "variant", _module("core"), depends_on=frozenset({"framework"}), label="Configuring build variant"
    ),
    StepDescriptor(
        "language", _module("core"), depends_on=frozenset({"variant"}), label="Configuring language"
    ),
    # Styling
    StepDescriptor(
        "styling", _module("styling"), depends_on=frozenset({"language"}), label="Configuring styling"
    ),
    StepDescriptor(
        "ui",
        _module("styling"),
        depends_on=frozenset({"styling"}),
        condition=_selected("ui"),
        label="Adding UI library",
    ),
    StepDescriptor(
        "icons",
        _module("styling"),
        depends_on=frozenset({"language"}),
        condition=_selected("icons"),
        label="Adding icons",
    ),
    # State
    StepDescriptor(
        "forms",
        _module("state"),
        depends_on=frozenset({"language"}),
        condition=_selected("forms"),
        label="Adding forms",
    ),
    StepDescriptor(
        "state",
        _module("state"),
        depends_on=frozenset({"language"}),
        condition=_selected("state"),
        label="Adding state management",
    ),
    StepDescriptor(
        "routing",
        _module("state"),
        depends_on=frozenset({"language"}),
        condition=_selected("routing"),
        label="Adding routing",
    ),
    StepDescriptor(
        "data_fetching",
        _module("state"),
        depends_on=frozenset({"language"}),
        condition=_selected("data_fetching"),
        label="Adding data fetching",
    ),
    StepDescriptor(
        "animation",
        _module("state"),
        depends_on=frozenset({"language"}),
        condition=_selected("animation"),
        label="Adding animation",
    ),
    # Project
    StepDescriptor(
        "structure", _module("project"), depends_on=frozenset({"language"}), label="Creating folders"
    ),
    StepDescriptor(
        "mandatory",
        _module("project"),
        depends_on=frozenset({"styling", "structure"}),
        label="Writing project files",
    ),
    StepDescriptor(
        "ai_instructions",
        _module("project"),
        depends_on=frozenset({"language"}),
        condition=_selected("ai_instructions"),
        label="Writing AI instructions",
    ),
    # Optional features
    StepDescriptor(
        "testing",
        _module("project"),
        depends_on=frozenset({"mandatory"}),
        condition=_selected("testing"),
        label="Configuring testing",
    ),
    StepDescriptor(
        "linting",
        _module("project"),
        depends_on=frozenset({"mandatory"}),
        condition=_selected("linting"),
        label="Configuring linting",
    ),
)
