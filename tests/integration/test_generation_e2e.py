"""Integration tests for full project generation with the built-in steps.

These tests run the real registry, configurators and orchestrator against a
temporary directory with the registry forced offline, and verify that the
generated project contains a well-formed package.json and the expected files.

No network access is required.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from nexo.config import Config
from nexo.context import Selections
from nexo.orchestrator import Orchestrator
from nexo.registry import default_registry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _read_package(project_path: Path) -> dict[str, Any]:
    return json.loads((project_path / "package.json").read_text(encoding="utf-8"))


FULL_SELECTIONS = Selections(
    project_name="shop",
    variant="ts-swc",
    ui="shadcn",
    forms="rhf-zod",
    state="redux",
    routing="react-router",
    data_fetching="tanstack-query",
    icons="lucide",
    structure="feature-based",
    animation="framer-motion",
    testing="vitest",
    linting="eslint-prettier",
    ai_instructions=("claude",),
)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

@pytest.mark.integration
class TestGeneration:
    """Generate real projects from the built-in catalog."""

    @pytest.mark.asyncio
    async def test_default_selections(self, tmp_path: Path, offline_config: Config):
        offline_config.engine.resolve_versions = False
        orchestrator = Orchestrator(offline_config, default_registry())

        result = await orchestrator.run_project_generation(Selections(project_name="plain"), tmp_path)

        assert result.steps_run == ["framework", "variant", "language", "styling", "structure", "mandatory"]
        project = result.project_path
        pkg = _read_package(project)
        assert pkg["name"] == "plain"
        assert pkg["dependencies"] == {"react": "^19.0.0", "react-dom": "^19.0.0"}
        assert pkg["scripts"]["build"] == "tsc && vite build"
        for relative in ("index.html", "src/main.tsx", "src/App.tsx", "tsconfig.json", "vite.config.ts", "README.md"):
            assert (project / relative).is_file(), relative

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy", ["sequential", "parallel"])
    async def test_full_selection(self, tmp_path: Path, offline_config: Config, strategy: str):
        orchestrator = Orchestrator(offline_config, default_registry())

        result = await orchestrator.run_project_generation(FULL_SELECTIONS, tmp_path, strategy=strategy)

        project = result.project_path
        pkg = _read_package(project)
        deps, dev_deps = pkg["dependencies"], pkg["devDependencies"]

        assert "@vitejs/plugin-react-swc" in dev_deps
        assert "@vitejs/plugin-react" not in dev_deps
        for name in ("react", "@reduxjs/toolkit", "react-router-dom", "@tanstack/react-query", "lucide-react", "clsx"):
            assert name in deps, name
        assert dev_deps["eslint"].startswith("^9.")
        assert "test" in pkg["scripts"]
        assert list(deps) == sorted(deps)

        for relative in (
            "src/store/store.ts",
            "src/lib/utils.ts",
            "src/features",
            "CLAUDE_INSTRUCTIONS.md",
            ".nexo/ai-context.md",
        ):
            assert (project / relative).exists(), relative

        order = result.steps_run
        assert order.index("framework") < order.index("variant") < order.index("language")
        assert order.index("styling") < order.index("ui")
        assert order.index("mandatory") < order.index("testing")

    @pytest.mark.asyncio
    async def test_rerun_into_existing_project(self, tmp_path: Path, offline_config: Config):
        offline_config.engine.resolve_versions = False
        first = await Orchestrator(offline_config, default_registry()).run_project_generation(
            Selections(project_name="again"), tmp_path
        )
        pkg = _read_package(first.project_path)
        pkg["engines"] = {"node": ">=20"}
        (first.project_path / "package.json").write_text(json.dumps(pkg), encoding="utf-8")

        second = await Orchestrator(offline_config, default_registry()).run_project_generation(
            Selections(project_name="again", state="zustand"), tmp_path
        )

        pkg = _read_package(second.project_path)
        assert pkg["engines"] == {"node": ">=20"}
        assert pkg["dependencies"]["zustand"] == "^5.0.0"
