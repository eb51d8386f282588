"""Package version resolution against the npm registry.

Offline-first: every lookup is time-boxed, successful answers are cached, and
any failure degrades to a built-in fallback version. ``VersionResolver`` is
the only public entry point that touches the registry; it never raises.

Typical usage::

    resolver = VersionResolver.from_config(config)
    resolver.start_prefetch()
    ...
    version = await resolver.resolve_version("react")   # "^19.1.0" or fallback
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field

from nexo.cache import TTLCache
from nexo.config import NPM_REGISTRY_URL, Config, RetryPolicy
from nexo.utils import print_debug, print_warning

T = TypeVar("T")

# Built-in stable versions used whenever the registry cannot be consulted.
FALLBACK_VERSIONS: dict[str, str] = {
    # React ecosystem
    "react": "^19.0.0",
    "react-dom": "^19.0.0",
    "@vitejs/plugin-react": "^4.3.4",
    "vite": "^6.0.0",
    "typescript": "^5.7.0",
    # State management
    "zustand": "^5.0.0",
    "@reduxjs/toolkit": "^2.5.0",
    "react-redux": "^9.2.0",
    "jotai": "^2.11.0",
    # Routing
    "react-router-dom": "^7.13.0",
    "@tanstack/react-router": "^1.157.0",
    # Data fetching
    "@tanstack/react-query": "^5.64.0",
    "axios": "^1.7.0",
    # Forms
    "react-hook-form": "^7.54.0",
    "zod": "^3.24.0",
    # UI
    "tailwindcss": "^4.0.0",
    "lucide-react": "^0.553.0",
    # ESLint ecosystem, held on v9 until plugins support v10
    "eslint": "^9.29.0",
    "@eslint/js": "^9.29.0",
    "globals": "^16.0.0",
    "typescript-eslint": "^8.33.0",
    "eslint-plugin-react-hooks": "^5.2.0",
    "eslint-plugin-react-refresh": "^0.4.20",
}

# Highest major version (inclusive) a package may be resolved to.
MAX_MAJOR_CONSTRAINTS: dict[str, int] = {
    # ESLint 10 broke peer-dependency compatibility with most plugins.
    "eslint": 9,
    "@eslint/js": 9,
}

PREFETCH_PACKAGES: tuple[str, ...] = (
    "react",
    "react-dom",
    "zustand",
    "react-router-dom",
    "@tanstack/react-query",
    "react-hook-form",
    "zod",
    "tailwindcss",
    "lucide-react",
)

_VERSION_RE = re.compile(r"^\^?\d+\.\d+\.\d+")
_RELEASE_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def is_valid_version(version: Any) -> bool:
    """Return ``True`` for ``"latest"`` or a string that starts like a release tag."""
    return isinstance(version, str) and (version == "latest" or bool(_VERSION_RE.match(version)))


def normalize_version(version: str) -> str:
    """Prefix a bare release with ``^``; ``latest`` and ranges pass through."""
    if version == "latest" or version.startswith("^"):
        return version
    return f"^{version}"


def parse_release(version: str) -> tuple[int, int, int] | None:
    """Parse ``"1.2.3"`` (optionally ``^``/``~`` prefixed) into a comparable tuple."""
    match = _RELEASE_RE.match(version.lstrip("^~"))
    if not match:
        return None
    return (int(match.group(1)), int(match.group(2)), int(match.group(3)))


def pick_highest_within_major(versions: Iterable[str], max_major: int) -> str | None:
    """Return the numerically highest release whose major is <= *max_major*.

    Pre-releases and malformed version keys are ignored.
    """
    best: tuple[int, int, int] | None = None
    best_str: str | None = None
    for candidate in versions:
        parts = parse_release(candidate)
        if parts is None:
            continue
        if parts[0] > max_major:
            continue
        if best is None or parts > best:
            best, best_str = parts, candidate
    return best_str


# ---------------------------------------------------------------------------
# Retry helpers
# ---------------------------------------------------------------------------


def calculate_backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay in seconds before retry *attempt* (0-indexed)."""
    delay = policy.initial_delay * (policy.backoff_multiplier ** attempt)
    return min(delay, policy.max_delay)


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    is_retryable: Callable[[Exception], bool],
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Await *fn* until it succeeds, retrying retryable failures with backoff.

    At most ``policy.max_retries + 1`` attempts are made. The last error (or
    the first non-retryable one) propagates unchanged.
    """
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as exc:
            if attempt >= policy.max_retries or not is_retryable(exc):
                raise
            delay = calculate_backoff_delay(attempt, policy)
            if on_retry is not None:
                on_retry(attempt + 1, delay, exc)
            await sleep(delay)
            attempt += 1


def _is_retryable_http(exc: Exception) -> bool:
    return (
        isinstance(exc, httpx.HTTPStatusError)
        and exc.response.status_code in _RETRYABLE_STATUS
    )


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------


class ResolveResult(BaseModel):
    """Outcome of a single registry lookup, before fallback is applied."""

    package: str
    version: str | None = Field(default=None, description="Range-prefixed version on success")
    success: bool = Field(default=True)
    error: str | None = Field(default=None)


class VersionResolver:
    """Resolve installable version ranges for npm packages.

    The resolver owns an in-memory TTL cache and, optionally, a longer-lived
    persistent cache (typically a ``DiskCache`` opened by the orchestrator).
    Connectivity state is sticky: once the registry is found unreachable,
    lookups return fallbacks until ``connectivity_check_interval`` elapses.
    """

    def __init__(
        self,
        registry_url: str = NPM_REGISTRY_URL,
        timeout: float = 3.0,
        cache: TTLCache | None = None,
        persistent_cache: TTLCache | None = None,
        offline: bool = False,
        connectivity_check_interval: float = 30.0,
        retry: RetryPolicy | None = None,
        fallbacks: dict[str, str] | None = None,
        max_major: dict[str, int] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.timeout = timeout
        self.cache = cache if cache is not None else TTLCache(ttl=3600.0)
        self.persistent_cache = persistent_cache
        self.connectivity_check_interval = connectivity_check_interval
        self.retry = retry or RetryPolicy(max_retries=0)
        self.fallbacks = FALLBACK_VERSIONS if fallbacks is None else fallbacks
        self.max_major = MAX_MAJOR_CONSTRAINTS if max_major is None else max_major
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._forced_offline = offline
        self._detected_offline = False
        self._last_network_check: float | None = None
        self._prefetch_task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(
        cls,
        config: Config,
        persistent_cache: TTLCache | None = None,
    ) -> "VersionResolver":
        return cls(
            registry_url=config.network.registry_url,
            timeout=config.network.timeout,
            cache=TTLCache(ttl=config.network.memory_cache_ttl),
            persistent_cache=persistent_cache,
            offline=config.network.offline,
            connectivity_check_interval=config.network.connectivity_check_interval,
            retry=config.retry,
        )

    # ------------------------------------------------------------------
    # Connectivity state
    # ------------------------------------------------------------------

    @property
    def is_offline(self) -> bool:
        return self._forced_offline or self._detected_offline

    def set_offline(self, offline: bool) -> None:
        """Force (or lift) offline mode for every later lookup."""
        self._forced_offline = offline
        if offline:
            print_warning("Offline mode enabled. Using built-in stable versions.")

    def _cooldown_active(self) -> bool:
        if self._last_network_check is None:
            return False
        return self._clock() - self._last_network_check < self.connectivity_check_interval

    def _mark_offline(self) -> None:
        self._detected_offline = True
        self._last_network_check = self._clock()

    async def check_connectivity(self) -> bool:
        """Check the registry, at most once per ``connectivity_check_interval``."""
        if self._forced_offline:
            return False
        if self._cooldown_active():
            return not self._detected_offline

        check_timeout = min(self.timeout, 2.0)

        async def _ping() -> None:
            async with self._client(timeout=check_timeout) as client:
                await client.get("/react")

        try:
            await asyncio.wait_for(_ping(), check_timeout)
        except (httpx.HTTPError, OSError, asyncio.TimeoutError) as exc:
            print_debug(f"Registry unreachable: {exc}")
            self._mark_offline()
            return False

        self._detected_offline = False
        self._last_network_check = self._clock()
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self, timeout: float | None = None) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` bound to the registry with a short timeout."""
        return httpx.AsyncClient(
            base_url=self.registry_url,
            timeout=httpx.Timeout(timeout or self.timeout),
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    @staticmethod
    def _package_path(name: str) -> str:
        """URL path for a package; scoped names keep ``@`` and encode the slash."""
        return "/" + quote(name, safe="@")

    async def _get_json(self, client: httpx.AsyncClient, path: str) -> Any:
        async def _attempt() -> Any:
            response = await client.get(path)
            response.raise_for_status()
            return response.json()

        return await retry_async(_attempt, self.retry, _is_retryable_http, sleep=self._sleep)

    async def _query_version(self, name: str) -> str | ResolveResult | None:
        ceiling = self.max_major.get(name)
        path = self._package_path(name)
        async with self._client() as client:
            if ceiling is not None:
                data = await self._get_json(client, path)
                versions = data.get("versions") if isinstance(data, dict) else None
                picked = pick_highest_within_major(versions or {}, ceiling)
                if picked is None:
                    return ResolveResult(
                        package=name,
                        success=False,
                        error=f"No release of {name} within major {ceiling}",
                    )
                return picked
            data = await self._get_json(client, f"{path}/latest")
            return data.get("version") if isinstance(data, dict) else None

    async def _fetch_version(self, name: str) -> ResolveResult:
        """Query the registry for *name* and validate the answer.

        The whole lookup, retries included, is bounded by ``self.timeout``;
        httpx's own timeout only limits each individual socket operation.
        """
        try:
            picked = await asyncio.wait_for(self._query_version(name), self.timeout)
        except httpx.ConnectError as exc:
            self._mark_offline()
            return ResolveResult(
                package=name,
                success=False,
                error=f"Cannot connect to {self.registry_url}: {exc}",
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return ResolveResult(
                package=name,
                success=False,
                error=f"Registry request timed out after {self.timeout}s",
            )
        except httpx.HTTPStatusError as exc:
            return ResolveResult(
                package=name,
                success=False,
                error=f"Registry returned HTTP {exc.response.status_code}",
            )
        except Exception as exc:  # noqa: BLE001
            return ResolveResult(
                package=name,
                success=False,
                error=f"Unexpected error resolving {name}: {exc}",
            )

        if isinstance(picked, ResolveResult):
            return picked
        if not isinstance(picked, str) or not is_valid_version(picked):
            return ResolveResult(
                package=name,
                success=False,
                error=f"Registry returned an invalid version for {name}: {picked!r}",
            )
        return ResolveResult(package=name, version=normalize_version(picked))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fallback_for(self, name: str) -> str:
        return self.fallbacks.get(name, "latest")

    async def resolve_version(self, name: str) -> str:
        """Return an installable version range for *name*. Never raises."""
        key = f"version:{name}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        if self.persistent_cache is not None:
            persisted = self.persistent_cache.get(f"npm:{key}")
            if is_valid_version(persisted):
                self.cache.set(key, persisted)
                return persisted

        if self._forced_offline or (self._detected_offline and self._cooldown_active()):
            return self.fallback_for(name)

        result = await self._fetch_version(name)
        if not result.success or result.version is None:
            print_debug(f"Using fallback for {name}: {result.error}")
            return self.fallback_for(name)

        self._detected_offline = False
        self.cache.set(key, result.version)
        if self.persistent_cache is not None:
            self.persistent_cache.set(f"npm:{key}", result.version)
        return result.version

    async def resolve_many(self, names: Iterable[str]) -> dict[str, str]:
        """Resolve several packages concurrently."""
        unique = list(dict.fromkeys(names))
        versions = await asyncio.gather(*(self.resolve_version(n) for n in unique))
        return dict(zip(unique, versions))

    # ------------------------------------------------------------------
    # Background prefetch
    # ------------------------------------------------------------------

    def start_prefetch(self, names: Iterable[str] = PREFETCH_PACKAGES) -> None:
        """Warm the cache in the background; a no-op while a prefetch is running.

        Must be called from inside a running event loop.
        """
        if self._prefetch_task is not None and not self._prefetch_task.done():
            return
        self._prefetch_task = asyncio.get_running_loop().create_task(
            self._prefetch(tuple(names))
        )

    async def _prefetch(self, names: tuple[str, ...]) -> None:
        try:
            if not await self.check_connectivity():
                return
            await self.resolve_many(names)
        except Exception as exc:  # noqa: BLE001
            print_debug(f"Prefetch failed: {exc}")

    @property
    def prefetching(self) -> bool:
        return self._prefetch_task is not None and not self._prefetch_task.done()

    async def wait_for_prefetch(self) -> None:
        """Wait for a running prefetch to finish, if any."""
        task = self._prefetch_task
        if task is not None:
            await task
            self._prefetch_task = None

    async def cancel_prefetch(self) -> None:
        """Cancel a running prefetch and wait until it has unwound."""
        task, self._prefetch_task = self._prefetch_task, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)
