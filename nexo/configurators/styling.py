"""Styling, UI library and icon steps."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nexo.configurators.factory import dependency_configurator
from nexo.configurators.render import render_into

if TYPE_CHECKING:
    from nexo.context import ProjectContext

STYLING = {
    "tailwind": {"tailwindcss": "^4.0.0", "@tailwindcss/vite": "^4.0.0"},
    "scss": {"sass": "^1.77.0"},
    "css": {},
}

UI_LIBRARIES = {
    "shadcn": {
        "@radix-ui/react-slot": "^1.1.0",
        "class-variance-authority": "^0.7.1",
        "clsx": "^2.1.1",
        "tailwind-merge": "^3.4.0",
    },
    "radix": {
        "@radix-ui/react-dialog": "^1.4.0",
        "@radix-ui/react-dropdown-menu": "^2.1.4",
        "@radix-ui/react-slot": "^1.1.1",
    },
    "heroui": {"@heroui/react": "^2.8.0", "framer-motion": "^12.0.0"},
    "mui": {
        "@mui/material": "^7.3.7",
        "@emotion/react": "^11.14.0",
        "@emotion/styled": "^11.14.0",
    },
    "antd": {"antd": "^6.0.0", "@ant-design/icons": "^6.0.0"},
    "chakra": {"@chakra-ui/react": "^3.31.0", "@emotion/react": "^11.14.0"},
    "styled-components": {"styled-components": "^6.3.8"},
}

ICONS = {
    "lucide": {"lucide-react": "^0.563.0"},
    "react-icons": {"react-icons": "^5.5.0"},
    "iconify": {"@iconify/react": "^6.0.2"},
    "heroicons": {"@heroicons/react": "^2.2.0"},
}


async def styling_step(ctx: "ProjectContext") -> None:
    styling = ctx.selections.styling
    for name, version in STYLING.get(styling, {}).items():
        ctx.package.add(name, version, dev=True)

    await render_into(ctx, "vite.config.j2", f"vite.config.{ctx.selections.script_ext}")
    stylesheet = "index.scss" if styling == "scss" else "index.css"
    await render_into(ctx, "index.css.j2", "src", stylesheet)


async def _write_cn_helper(ctx: "ProjectContext", selection: str) -> None:
    if selection == "shadcn":
        await render_into(ctx, "utils.j2", "src", "lib", f"utils.{ctx.selections.script_ext}")


ui_step = dependency_configurator("ui", UI_LIBRARIES, after=_write_cn_helper)
icons_step = dependency_configurator("icons", ICONS)
