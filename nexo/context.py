"""User selections and the per-run context handed to every step.

``Selections`` is frozen: steps read it but cannot change it. The
``ProjectContext`` exposes the single shared ``PackageDescriptor`` through a
read-only attribute so no step can swap it for another instance.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from nexo.errors import ConfigFileError
from nexo.network import VersionResolver
from nexo.package_descriptor import DEFAULT_PROJECT_NAME, PackageDescriptor

PROJECT_CONFIG_FILES: tuple[str, ...] = ("nexo.config.json", ".nexorc.json", ".nexorc")


class Selections(BaseModel):
    """Answers that drive which steps run and what they generate."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    project_name: str = Field(default=DEFAULT_PROJECT_NAME, min_length=1)
    framework: str = Field(default="react")
    variant: str = Field(default="ts", description="ts, ts-swc, ts-compiler, js, js-swc, js-compiler")
    styling: str = Field(default="tailwind")
    ui: str = Field(default="none")
    forms: str = Field(default="none")
    state: str = Field(default="none")
    routing: str = Field(default="none")
    data_fetching: str = Field(default="none")
    icons: str = Field(default="none")
    structure: str = Field(default="simple")
    animation: str = Field(default="none")
    testing: str = Field(default="none")
    linting: str = Field(default="none")
    ai_instructions: tuple[str, ...] = Field(default=())
    optional_features: tuple[str, ...] = Field(default=())

    @property
    def is_typescript(self) -> bool:
        return self.variant.startswith("ts")

    @property
    def script_ext(self) -> str:
        return "ts" if self.is_typescript else "js"

    @property
    def component_ext(self) -> str:
        return "tsx" if self.is_typescript else "jsx"

    def is_enabled(self, option: str) -> bool:
        """``True`` when *option* is set to something other than ``"none"``."""
        value = getattr(self, option)
        if isinstance(value, tuple):
            return len(value) > 0
        return bool(value) and value != "none"


class ProjectContext:
    """State shared by every step of one generation run.

    Attributes:
        project_path: Absolute output directory.
        selections: The run's immutable selections.
        resolver: Version resolver steps may consult for live versions.
    """

    __slots__ = ("_project_path", "_selections", "_package", "_resolver")

    def __init__(
        self,
        project_path: str | Path,
        selections: Selections,
        package: PackageDescriptor,
        resolver: VersionResolver,
    ) -> None:
        self._project_path = Path(project_path).resolve()
        self._selections = selections
        self._package = package
        self._resolver = resolver

    @property
    def project_path(self) -> Path:
        return self._project_path

    @property
    def selections(self) -> Selections:
        return self._selections

    @property
    def package(self) -> PackageDescriptor:
        return self._package

    @property
    def resolver(self) -> VersionResolver:
        return self._resolver

    def path(self, *parts: str) -> Path:
        """Join *parts* onto the project path."""
        return self._project_path.joinpath(*parts)


# ---------------------------------------------------------------------------
# Project configuration files
# ---------------------------------------------------------------------------


def _snake_case(key: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", key).lower()


def load_project_config(directory: str | Path) -> dict[str, Any] | None:
    """Read the first project config file found in *directory*.

    Files are tried in ``PROJECT_CONFIG_FILES`` order.

    Returns:
        The parsed object, or ``None`` when no config file exists.

    Raises:
        ConfigFileError: If a config file exists but is not a JSON object.
    """
    base = Path(directory)
    for filename in PROJECT_CONFIG_FILES:
        candidate = base / filename
        if not candidate.is_file():
            continue
        try:
            data = json.loads(candidate.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise ConfigFileError(f"Cannot read {candidate}: {exc}", {"path": str(candidate)}) from exc
        if not isinstance(data, dict):
            raise ConfigFileError(f"{candidate} must contain a JSON object", {"path": str(candidate)})
        return data
    return None


def selections_from_config(data: dict[str, Any], **defaults: Any) -> Selections:
    """Build ``Selections`` from a config mapping.

    Keys may be camelCase (``dataFetching``) or snake_case. Precedence is
    *defaults* < config file values. ``preset`` keys are ignored.
    """
    values: dict[str, Any] = dict(defaults)
    for key, value in data.items():
        if key == "preset" or value is None:
            continue
        name = _snake_case(key)
        if name in ("ai_instructions", "optional_features") and isinstance(value, list):
            value = tuple(value)
        values[name] = value
    return Selections(**values)
