"""Unit tests for the built-in configurator steps (nexo.configurators.*).

Tests cover:
- framework / variant / language bootstrap steps (TS and JS)
- styling, UI library and icon steps
- state management with generated Redux store
- structure, mandatory files, AI instruction files
- testing and linting scripts
"""

from __future__ import annotations

import json

import pytest

from nexo.configurators import core, project, state, styling


# ---------------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------------


class TestCoreSteps:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_framework_typescript(self, context_factory):
        ctx = context_factory()
        await core.framework_step(ctx)

        assert ctx.package.dependencies == {"react": "^19.0.0", "react-dom": "^19.0.0"}
        assert ctx.package.dev_dependencies["vite"] == "^6.0.0"
        assert ctx.package.to_dict()["scripts"] == {"dev": "vite", "preview": "vite preview"}
        assert ctx.path("index.html").is_file()
        assert ctx.path("src", "main.tsx").is_file()
        assert "export default function App" in ctx.path("src", "App.tsx").read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_framework_javascript_extensions(self, context_factory):
        ctx = context_factory(variant="js")
        await core.framework_step(ctx)
        assert ctx.path("src", "main.jsx").is_file()
        assert ctx.path("src", "App.jsx").is_file()
        assert "getElementById('root')!" not in ctx.path("src", "main.jsx").read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_swc_variant_swaps_plugin(self, context_factory):
        ctx = context_factory(variant="ts-swc")
        await core.framework_step(ctx)
        await core.variant_step(ctx)
        assert "@vitejs/plugin-react" not in ctx.package.dev_dependencies
        assert "@vitejs/plugin-react-swc" in ctx.package.dev_dependencies

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_compiler_variant_adds_babel_plugin(self, context_factory):
        ctx = context_factory(variant="js-compiler")
        await core.framework_step(ctx)
        await core.variant_step(ctx)
        assert "babel-plugin-react-compiler" in ctx.package.dev_dependencies
        assert "@vitejs/plugin-react" in ctx.package.dev_dependencies

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_language_typescript(self, context_factory):
        ctx = context_factory()
        await core.language_step(ctx)
        assert ctx.package.dev_dependencies["typescript"] == "^5.7.0"
        assert ctx.package.to_dict()["scripts"]["build"] == "tsc && vite build"
        tsconfig = json.loads(ctx.path("tsconfig.json").read_text(encoding="utf-8"))
        assert tsconfig["compilerOptions"]["jsx"] == "react-jsx"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_language_javascript(self, context_factory):
        ctx = context_factory(variant="js-swc")
        await core.language_step(ctx)
        assert "typescript" not in ctx.package.dev_dependencies
        assert ctx.package.to_dict()["scripts"]["build"] == "vite build"
        assert not ctx.path("tsconfig.json").exists()


# ---------------------------------------------------------------------------
# Styling
# ---------------------------------------------------------------------------


class TestStylingSteps:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_tailwind(self, context_factory):
        ctx = context_factory()
        await styling.styling_step(ctx)
        assert ctx.package.dev_dependencies == styling.STYLING["tailwind"]
        assert "tailwindcss()" in ctx.path("vite.config.ts").read_text(encoding="utf-8")
        assert ctx.path("src", "index.css").read_text(encoding="utf-8").startswith('@import "tailwindcss";')

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_scss_javascript(self, context_factory):
        ctx = context_factory(styling="scss", variant="js-swc")
        await styling.styling_step(ctx)
        assert ctx.package.dev_dependencies == {"sass": "^1.77.0"}
        vite_config = ctx.path("vite.config.js").read_text(encoding="utf-8")
        assert "@vitejs/plugin-react-swc" in vite_config
        assert "tailwind" not in vite_config
        assert ctx.path("src", "index.scss").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_shadcn_writes_cn_helper(self, context_factory):
        ctx = context_factory(ui="shadcn")
        await styling.ui_step(ctx)
        assert "clsx" in ctx.package.dependencies
        assert "ClassValue[]" in ctx.path("src", "lib", "utils.ts").read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_other_ui_library_has_no_helper(self, context_factory):
        ctx = context_factory(ui="mui")
        await styling.ui_step(ctx)
        assert "@mui/material" in ctx.package.dependencies
        assert not ctx.path("src", "lib").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_icons(self, context_factory):
        ctx = context_factory(icons="lucide")
        await styling.icons_step(ctx)
        assert ctx.package.dependencies == {"lucide-react": "^0.563.0"}


# ---------------------------------------------------------------------------
# State, forms, routing, data fetching, animation
# ---------------------------------------------------------------------------


class TestStateSteps:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_redux_writes_store(self, context_factory):
        ctx = context_factory(state="redux")
        await state.state_step(ctx)
        assert "@reduxjs/toolkit" in ctx.package.dependencies
        store = ctx.path("src", "store", "store.ts").read_text(encoding="utf-8")
        assert "export type RootState" in store
        assert ctx.path("src", "store", "counterSlice.ts").is_file()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_redux_javascript_store(self, context_factory):
        ctx = context_factory(state="redux", variant="js")
        await state.state_step(ctx)
        assert "RootState" not in ctx.path("src", "store", "store.js").read_text(encoding="utf-8")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zustand_writes_no_files(self, context_factory):
        ctx = context_factory(state="zustand")
        await state.state_step(ctx)
        assert ctx.package.dependencies == {"zustand": "^5.0.0"}
        assert not ctx.path("src", "store").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_dependency_only_steps(self, context_factory):
        ctx = context_factory(
            forms="rhf-zod",
            routing="react-router",
            data_fetching="tanstack-query",
            animation="gsap",
        )
        for step in (state.forms_step, state.routing_step, state.data_fetching_step, state.animation_step):
            await step(ctx)

        deps = ctx.package.dependencies
        assert deps["react-hook-form"] == "^7.60.0"
        assert deps["react-router-dom"] == "^7.1.0"
        assert deps["@tanstack/react-query"] == "^5.59.0"
        assert deps["gsap"] == "^3.14.2"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_native_fetch_adds_nothing(self, context_factory):
        ctx = context_factory(data_fetching="fetch")
        await state.data_fetching_step(ctx)
        assert ctx.package.dependencies == {}


# ---------------------------------------------------------------------------
# Project-level steps
# ---------------------------------------------------------------------------


class TestProjectSteps:
    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("structure", ["simple", "feature-based"])
    async def test_structure_dirs(self, context_factory, structure: str):
        ctx = context_factory(structure=structure)
        await project.structure_step(ctx)
        for directory in project.STRUCTURES[structure]:
            assert ctx.path(directory).is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_structure_falls_back_to_simple(self, context_factory):
        ctx = context_factory(structure="hexagonal")
        await project.structure_step(ctx)
        assert ctx.path("src", "components").is_dir()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mandatory_files(self, context_factory):
        ctx = context_factory(state="zustand", testing="vitest")
        await project.mandatory_step(ctx)

        readme = ctx.path("README.md").read_text(encoding="utf-8")
        assert readme.startswith("# Demo App")
        assert "- State: zustand" in readme
        assert "- Testing: vitest" in readme
        assert "Routing" not in readme
        assert "node_modules" in ctx.path(".gitignore").read_text(encoding="utf-8")
        manifest = json.loads(ctx.path("public", "manifest.json").read_text(encoding="utf-8"))
        assert manifest["short_name"] == "demo-app"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_ai_instruction_files(self, context_factory):
        ctx = context_factory(ai_instructions=("claude", "cursor", "unknown-tool"))
        await project.ai_instructions_step(ctx)

        assert ctx.path(".nexo", "ai-context.md").is_file()
        assert "claude" in ctx.path("CLAUDE_INSTRUCTIONS.md").read_text(encoding="utf-8")
        assert ctx.path(".cursorrules").is_file()
        written = {p.name for p in ctx.project_path.iterdir() if p.is_file()}
        assert written == {"CLAUDE_INSTRUCTIONS.md", ".cursorrules"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_testing_adds_dev_deps_and_scripts(self, context_factory):
        ctx = context_factory(testing="vitest")
        await project.testing_step(ctx)
        assert "vitest" in ctx.package.dev_dependencies
        assert ctx.package.to_dict()["scripts"]["test:run"] == "vitest run"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_linting_pins_eslint(self, context_factory):
        ctx = context_factory(linting="eslint-prettier")
        await project.linting_step(ctx)
        assert ctx.package.dev_dependencies["eslint"] == "^9.39.0"
        assert "lint" in ctx.package.to_dict()["scripts"]
