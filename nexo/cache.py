"""TTL caches shared by the version resolver and other expensive lookups.

``TTLCache`` is a plain in-memory store. ``DiskCache`` adds persistence to a
single JSON file tagged with a schema version; a file written under another
version is ignored as a whole rather than partially migrated.

Typical usage::

    cache = DiskCache(Path("~/.nexo/cache.json").expanduser())
    async with cache.session():
        version = await cache.get_or_create("npm:version:react", fetch_react)
"""

from __future__ import annotations

import functools
import json
import re
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from nexo.utils import print_debug, save_json


@dataclass
class CacheEntry:
    """A cached value and the time (seconds since epoch) it was written."""

    value: Any
    timestamp: float

    def is_fresh(self, ttl: float, now: float) -> bool:
        return now - self.timestamp < ttl


class TTLCache:
    """In-memory key/value cache whose entries expire after ``ttl`` seconds."""

    def __init__(self, ttl: float = 3600.0, clock: Callable[[], float] = time.time) -> None:
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str, ttl: float | None = None) -> Any | None:
        """Return the cached value, or ``None`` if missing or expired.

        Expired entries are evicted on read.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(self.ttl if ttl is None else ttl, self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: Any) -> None:
        self._entries[key] = CacheEntry(value=value, timestamp=self._clock())

    def has(self, key: str, ttl: float | None = None) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        return entry.is_fresh(self.ttl if ttl is None else ttl, self._clock())

    async def get_or_create(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
    ) -> Any:
        """Return a fresh cached value or await *factory* and cache its result."""
        if self.has(key, ttl):
            return self._entries[key].value
        value = await factory()
        self.set(key, value)
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_pattern(self, pattern: str) -> None:
        """Drop every key matching the regular expression *pattern*."""
        regex = re.compile(pattern)
        for key in [k for k in self._entries if regex.search(k)]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}

    def prune(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if not e.is_fresh(self.ttl, now)]
        for key in expired:
            del self._entries[key]
        return len(expired)


class DiskCache(TTLCache):
    """A ``TTLCache`` persisted to a versioned JSON file.

    File layout::

        {"version": "1.0.0", "entries": {"<key>": {"value": ..., "timestamp": ...}}}

    Load and save never raise: a corrupt, unreadable or foreign-version file
    simply yields an empty cache, and a failed write is reported as debug
    output.
    """

    def __init__(
        self,
        path: str | Path,
        ttl: float = 24 * 60 * 60,
        version: str = "1.0.0",
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(ttl=ttl, clock=clock)
        self.path = Path(path)
        self.version = version

    def load(self) -> None:
        """Replace the in-memory entries with the contents of the cache file."""
        if not self.path.is_file():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            print_debug(f"Ignoring unreadable cache file {self.path}: {exc}")
            return

        if not isinstance(data, dict) or data.get("version") != self.version:
            print_debug(f"Ignoring cache file {self.path}: schema version mismatch")
            return

        entries: dict[str, CacheEntry] = {}
        for key, raw in (data.get("entries") or {}).items():
            try:
                entries[key] = CacheEntry(value=raw["value"], timestamp=float(raw["timestamp"]))
            except (KeyError, TypeError, ValueError):
                print_debug(f"Ignoring cache file {self.path}: malformed entry '{key}'")
                return
        self._entries = entries

    async def save(self) -> None:
        """Drop expired entries and rewrite the cache file wholesale."""
        self.prune()
        payload = {
            "version": self.version,
            "entries": {
                key: {"value": entry.value, "timestamp": entry.timestamp}
                for key, entry in self._entries.items()
            },
        }
        try:
            await save_json(payload, self.path)
        except (OSError, TypeError, ValueError) as exc:
            print_debug(f"Could not write cache file {self.path}: {exc}")

    @asynccontextmanager
    async def session(self) -> AsyncIterator["DiskCache"]:
        """Load on entry and flush on every exit path, including errors."""
        self.load()
        try:
            yield self
        finally:
            await self.save()


def memoize(
    cache: TTLCache,
    key_fn: Callable[..., str] | None = None,
) -> Callable[[Callable[..., Awaitable[Any]]], Callable[..., Awaitable[Any]]]:
    """Cache the results of an async function in *cache*.

    The default key is built from the function name and the JSON-encoded
    positional and keyword arguments.
    """

    def decorator(fn: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            if key_fn is not None:
                suffix = key_fn(*args, **kwargs)
            else:
                suffix = json.dumps([args, kwargs], sort_keys=True, default=str)
            key = f"memoize:{fn.__name__}:{suffix}"
            return await cache.get_or_create(key, lambda: fn(*args, **kwargs))

        return wrapper

    return decorator
