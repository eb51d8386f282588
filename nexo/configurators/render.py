"""Jinja2 rendering for files produced by configurator steps.

Templates live beside this module under ``templates/`` as ``*.j2`` files and
are rendered with a context built from the run's ``ProjectContext``.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from nexo.utils import write_file

if TYPE_CHECKING:
    from nexo.context import ProjectContext

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


class TemplateRenderer:
    """Renders step templates against a project context."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        self.template_dir = Path(template_dir) if template_dir is not None else _DEFAULT_TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape([]),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["title_case"] = _title_case_filter

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        return self.env.get_template(template_name).render(**context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        return self.env.from_string(template_string).render(**context)

    async def render_to_file(
        self,
        template_name: str,
        output_path: str | Path,
        context: dict[str, Any],
    ) -> bool:
        """Render *template_name* into *output_path*.

        Returns:
            ``True`` if the file was (re)written, ``False`` if already current.
        """
        return await write_file(output_path, self.render(template_name, context))


def template_context(ctx: "ProjectContext", **extra: Any) -> dict[str, Any]:
    """Variables every template may rely on."""
    selections = ctx.selections
    context: dict[str, Any] = {
        "project_name": selections.project_name,
        "selections": selections,
        "is_typescript": selections.is_typescript,
        "script_ext": selections.script_ext,
        "component_ext": selections.component_ext,
    }
    context.update(extra)
    return context


_renderer: TemplateRenderer | None = None


def get_renderer() -> TemplateRenderer:
    """Shared renderer over the packaged templates."""
    global _renderer
    if _renderer is None:
        _renderer = TemplateRenderer()
    return _renderer


async def render_into(ctx: "ProjectContext", template_name: str, *parts: str, **extra: Any) -> bool:
    """Render *template_name* to ``ctx.path(*parts)``."""
    return await get_renderer().render_to_file(
        template_name, ctx.path(*parts), template_context(ctx, **extra)
    )


# ---------------------------------------------------------------------------
# Jinja2 filters
# ---------------------------------------------------------------------------


def _pascal_case_filter(value: str) -> str:
    """``my-app`` -> ``MyApp``."""
    parts = re.split(r"[-_\s]+", str(value))
    return "".join(word.capitalize() for word in parts if word)


def _title_case_filter(value: str) -> str:
    """``my-app`` -> ``My App``."""
    return " ".join(word.capitalize() for word in re.split(r"[-_\s]+", str(value)) if word)
