"""Forms, state management, routing, data fetching and animation steps."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nexo.configurators.factory import dependency_configurator
from nexo.configurators.render import render_into

if TYPE_CHECKING:
    from nexo.context import ProjectContext

FORMS = {
    "rhf-zod": {
        "react-hook-form": "^7.60.0",
        "zod": "^3.25.0",
        "@hookform/resolvers": "^3.9.0",
    },
    "rhf-yup": {
        "react-hook-form": "^7.60.0",
        "yup": "^1.6.0",
        "@hookform/resolvers": "^3.9.0",
    },
    "tanstack-form": {"@tanstack/react-form": "^1.31.0", "zod": "^3.25.0"},
}

STATE = {
    "zustand": {"zustand": "^5.0.0"},
    "redux": {"@reduxjs/toolkit": "^2.5.0", "react-redux": "^9.2.0"},
    "jotai": {"jotai": "^2.11.0"},
}

ROUTING = {
    "react-router": {"react-router-dom": "^7.1.0"},
    "tanstack-router": {
        "@tanstack/react-router": "^1.95.0",
        "@tanstack/react-router-devtools": "^1.95.0",
    },
}

# "fetch" is native and needs no package.
DATA_FETCHING = {
    "tanstack-query": {
        "@tanstack/react-query": "^5.59.0",
        "@tanstack/react-query-devtools": "^5.59.0",
    },
    "axios": {"axios": "^1.7.0"},
}

ANIMATION = {
    "framer-motion": {"framer-motion": "^12.0.0"},
    "gsap": {"gsap": "^3.14.2", "@gsap/react": "^2.1.2"},
    "react-spring": {"@react-spring/web": "^9.7.0"},
    "auto-animate": {"@formkit/auto-animate": "^0.8.2"},
}


async def _write_redux_store(ctx: "ProjectContext", selection: str) -> None:
    if selection != "redux":
        return
    ext = ctx.selections.script_ext
    await render_into(ctx, "store.j2", "src", "store", f"store.{ext}")
    await render_into(ctx, "counter_slice.j2", "src", "store", f"counterSlice.{ext}")


forms_step = dependency_configurator("forms", FORMS)
state_step = dependency_configurator("state", STATE, after=_write_redux_store)
routing_step = dependency_configurator("routing", ROUTING)
data_fetching_step = dependency_configurator("data_fetching", DATA_FETCHING)
animation_step = dependency_configurator("animation", ANIMATION)
