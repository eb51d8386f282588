"""Project-level steps: folder structure, mandatory files, AI instruction
files, testing and linting."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from nexo.configurators.factory import dependency_configurator
from nexo.configurators.render import render_into
from nexo.utils import ensure_dir

if TYPE_CHECKING:
    from nexo.context import ProjectContext

STRUCTURES: dict[str, tuple[str, ...]] = {
    "simple": ("src/components", "src/hooks", "src/utils", "src/assets"),
    "feature-based": (
        "src/app",
        "src/features",
        "src/shared/components",
        "src/shared/hooks",
        "src/shared/utils",
        "src/shared/types",
    ),
}

# Tool name -> output file.
AI_INSTRUCTION_FILES = {
    "cursor": ".cursorrules",
    "windsurf": ".windsurfrules",
    "cline": ".clinerules",
    "claude": "CLAUDE_INSTRUCTIONS.md",
    "gemini": "GEMINI_INSTRUCTIONS.md",
    "codex": "CODEX_INSTRUCTIONS.md",
    "universal": "AI_INSTRUCTIONS.md",
}

TESTING = {
    "vitest": {
        "vitest": "^3.0.0",
        "@testing-library/react": "^16.0.0",
        "@testing-library/dom": "^10.0.0",
        "jsdom": "^26.0.0",
    },
    "jest": {
        "jest": "^29.7.0",
        "jest-environment-jsdom": "^29.7.0",
        "@testing-library/react": "^16.0.0",
        "@testing-library/dom": "^10.0.0",
        "@types/jest": "^29.5.0",
        "ts-jest": "^29.1.0",
    },
}

TESTING_SCRIPTS = {
    "vitest": {"test": "vitest", "test:ui": "vitest --ui", "test:run": "vitest run"},
    "jest": {"test": "jest", "test:watch": "jest --watch"},
}

LINTING = {
    "eslint-prettier": {
        "eslint": "^9.39.0",
        "prettier": "^3.7.0",
        "eslint-plugin-react-hooks": "^5.0.0",
        "eslint-plugin-react-refresh": "^0.4.0",
    },
    "biome": {"@biomejs/biome": "^2.0.0"},
}

LINTING_SCRIPTS = {
    "eslint-prettier": {
        "lint": "eslint . --report-unused-disable-directives --max-warnings 0",
        "format": 'prettier --write "src/**/*.{ts,tsx,js,jsx,css,json}"',
    },
    "biome": {
        "lint": "biome lint .",
        "format": "biome format . --write",
        "check": "biome check --write .",
    },
}


async def structure_step(ctx: "ProjectContext") -> None:
    dirs = STRUCTURES.get(ctx.selections.structure, STRUCTURES["simple"])

    def _create() -> None:
        for directory in dirs:
            ensure_dir(ctx.path(directory))

    await asyncio.to_thread(_create)


async def mandatory_step(ctx: "ProjectContext") -> None:
    await render_into(ctx, "README.md.j2", "README.md")
    await render_into(ctx, "gitignore.j2", ".gitignore")
    await render_into(ctx, "manifest.json.j2", "public", "manifest.json")


async def ai_instructions_step(ctx: "ProjectContext") -> None:
    """Write ``.nexo/ai-context.md`` plus one file per selected AI tool."""
    await render_into(ctx, "ai_context.md.j2", ".nexo", "ai-context.md", tool="Project Context")
    for tool in ctx.selections.ai_instructions:
        filename = AI_INSTRUCTION_FILES.get(tool)
        if filename is None:
            continue
        await render_into(ctx, "ai_context.md.j2", filename, tool=tool)


async def _add_scripts(table: dict[str, dict[str, str]], ctx: "ProjectContext", selection: str) -> None:
    for name, command in table.get(selection, {}).items():
        ctx.package.add_script(name, command)


async def _testing_scripts(ctx: "ProjectContext", selection: str) -> None:
    await _add_scripts(TESTING_SCRIPTS, ctx, selection)


async def _linting_scripts(ctx: "ProjectContext", selection: str) -> None:
    await _add_scripts(LINTING_SCRIPTS, ctx, selection)


testing_step = dependency_configurator("testing", TESTING, dev=True, after=_testing_scripts)
linting_step = dependency_configurator("linting", LINTING, dev=True, after=_linting_scripts)
