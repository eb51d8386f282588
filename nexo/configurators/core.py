"""Bootstrap steps: framework, build variant and language."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nexo.configurators.render import render_into

if TYPE_CHECKING:
    from nexo.context import ProjectContext

REACT_VERSION = "^19.0.0"
VITE_VERSION = "^6.0.0"
COMPILER_VERSION = "^19.0.0-beta-e552027-20250112"


async def framework_step(ctx: "ProjectContext") -> None:
    pkg = ctx.package
    pkg.add("react", REACT_VERSION)
    pkg.add("react-dom", REACT_VERSION)
    pkg.add("vite", VITE_VERSION, dev=True)
    pkg.add("@vitejs/plugin-react", "^4.3.0", dev=True)
    pkg.add_script("dev", "vite")
    pkg.add_script("preview", "vite preview")

    ext = ctx.selections.component_ext
    await render_into(ctx, "index.html.j2", "index.html")
    await render_into(ctx, "main.j2", "src", f"main.{ext}")
    await render_into(ctx, "App.j2", "src", f"App.{ext}")


async def variant_step(ctx: "ProjectContext") -> None:
    """Swap the Vite React plugin for the SWC or React Compiler flavour."""
    variant = ctx.selections.variant
    pkg = ctx.package
    if variant.endswith("-swc"):
        pkg.remove("@vitejs/plugin-react")
        pkg.add("@vitejs/plugin-react-swc", "^3.7.0", dev=True)
    elif variant.endswith("-compiler"):
        pkg.add("babel-plugin-react-compiler", COMPILER_VERSION, dev=True)
        pkg.add("eslint-plugin-react-compiler", COMPILER_VERSION, dev=True)
        pkg.add("@babel/core", "^7.26.0", dev=True)
        pkg.add("@babel/preset-react", "^7.26.0", dev=True)


async def language_step(ctx: "ProjectContext") -> None:
    pkg = ctx.package
    if ctx.selections.is_typescript:
        pkg.add("typescript", "^5.7.0", dev=True)
        pkg.add("@types/react", REACT_VERSION, dev=True)
        pkg.add("@types/react-dom", REACT_VERSION, dev=True)
        pkg.add_script("build", "tsc && vite build")
        await render_into(ctx, "tsconfig.json.j2", "tsconfig.json")
    else:
        pkg.add_script("build", "vite build")
