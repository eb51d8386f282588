"""Exception hierarchy for the Nexo engine.

Graph and step errors are fatal to a run. Network errors are raised only by
low-level helpers and are converted to fallbacks before they reach callers of
the version resolver.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class NexoError(Exception):
    """Base class for every error raised by the engine."""

    code = "NEXO_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        self.context = context or {}
        super().__init__(message)


# ---------------------------------------------------------------------------
# Dependency graph
# ---------------------------------------------------------------------------


class DependencyGraphError(NexoError):
    """Raised when steps cannot be ordered."""

    code = "DEPENDENCY_GRAPH_ERROR"


class CircularDependencyError(DependencyGraphError):
    """A step was revisited while its own dependencies were being visited."""

    code = "CIRCULAR_DEPENDENCY"

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(f"Circular dependency detected: {step}", {"step": step})


class UnmetDependencyError(DependencyGraphError):
    """Pending steps whose dependencies can never complete."""

    code = "UNMET_DEPENDENCY"

    def __init__(self, steps: list[str]) -> None:
        self.steps = list(steps)
        super().__init__(
            f"Circular dependency or unmet dependencies detected: {', '.join(self.steps)}",
            {"steps": self.steps},
        )


# ---------------------------------------------------------------------------
# Step execution
# ---------------------------------------------------------------------------


class ConfiguratorError(NexoError):
    """A configurator step failed or could not be loaded."""

    code = "CONFIGURATOR_ERROR"

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"Step '{step}' failed: {message}", {"step": step})


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class PersistenceError(NexoError):
    """Writing the package descriptor failed or was attempted out of order."""

    code = "PERSISTENCE_ERROR"

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        self.path = str(path) if path is not None else None
        super().__init__(message, {"path": self.path})


class ConfigFileError(NexoError):
    """A project configuration file exists but cannot be used."""

    code = "CONFIG_FILE_ERROR"


# ---------------------------------------------------------------------------
# Network
# ---------------------------------------------------------------------------


class NetworkError(NexoError):
    """General network failure for registry lookups and template fetches."""

    code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        retry_count: int | None = None,
    ) -> None:
        self.url = url
        self.status_code = status_code
        self.retry_count = retry_count
        super().__init__(
            message,
            {"url": url, "status_code": status_code, "retry_count": retry_count},
        )


class RateLimitError(NexoError):
    """The remote host refused the request because of rate limiting."""

    code = "RATE_LIMIT_ERROR"

    def __init__(self, message: str, retry_after: int | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message, {"retry_after": retry_after})


class OfflineError(NexoError):
    """No network connectivity is available."""

    code = "OFFLINE_ERROR"

    def __init__(self, message: str = "No network connection available") -> None:
        super().__init__(message)
