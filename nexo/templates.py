"""Remote project templates fetched from GitHub with retry.

Template specs use the ``gh:owner/repo[/subdir]`` form. The repository is
shallow-cloned with ``git`` into a scratch directory and the requested
subdirectory is copied into the target. Transient failures (connectivity,
rate limits, 5xx) are retried with exponential backoff; a missing repository
is not.
"""

from __future__ import annotations

import asyncio
import re
import shutil
import tempfile
from collections.abc import Awaitable, Callable
from pathlib import Path

from nexo.config import RetryPolicy
from nexo.errors import NetworkError, OfflineError, RateLimitError
from nexo.network import retry_async
from nexo.utils import console, print_success, print_warning, run_command

Runner = Callable[..., Awaitable[tuple[int, str, str]]]

PRESET_TEMPLATES: dict[str, str] = {
    "saas": "gh:Moshaban09/nexo-templates/react/saas",
    "landing": "gh:Moshaban09/nexo-templates/react/landing",
    "dashboard": "gh:Moshaban09/nexo-templates/react/dashboard",
    "portfolio": "gh:Moshaban09/nexo-templates/react/portfolio",
    "ecommerce": "gh:Moshaban09/nexo-templates/react/ecommerce",
    "blog-docs": "gh:Moshaban09/nexo-templates/react/blog-docs",
    "components-ui": "gh:Moshaban09/nexo-templates/react/components-ui",
}

CLONE_TIMEOUT = 120

_OFFLINE_MARKERS = (
    "network",
    "enotfound",
    "econnrefused",
    "etimedout",
    "could not resolve host",
    "unable to connect",
    "unable to access",
    "failed to connect",
    "timed out",
)
_SERVER_MARKERS = ("500", "502", "503", "504")
_RETRY_AFTER = re.compile(r"retry[- ]?after[:\s]+(\d+)", re.IGNORECASE)


def get_preset_template(name: str) -> str | None:
    """Template spec for a preset name (case-insensitive), if one exists."""
    return PRESET_TEMPLATES.get(name.lower())


def parse_template_spec(spec: str) -> tuple[str, str, str | None]:
    """Split ``gh:owner/repo[/subdir]`` into ``(clone_url, web_url, subdir)``.

    Raises:
        ValueError: If *spec* does not name at least ``owner/repo``.
    """
    path = spec[3:] if spec.startswith("gh:") else spec
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Invalid template spec: {spec!r} (expected gh:owner/repo[/subdir])")
    owner, repo = parts[0], parts[1].removesuffix(".git")
    subdir = "/".join(parts[2:]) or None
    web_url = f"https://github.com/{owner}/{repo}"
    return f"{web_url}.git", web_url, subdir


# ---------------------------------------------------------------------------
# Failure classification
# ---------------------------------------------------------------------------


class CloneFailed(Exception):
    """A single ``git clone`` attempt exited non-zero."""


def _is_rate_limited(message: str) -> bool:
    return "403" in message or "rate limit" in message


def _is_offline(message: str) -> bool:
    return any(marker in message for marker in _OFFLINE_MARKERS)


def _is_retryable(exc: Exception) -> bool:
    message = str(exc).lower()
    if "404" in message or "not found" in message:
        return False
    return (
        _is_offline(message)
        or _is_rate_limited(message)
        or any(code in message for code in _SERVER_MARKERS)
    )


def parse_retry_after(message: str) -> int | None:
    match = _RETRY_AFTER.search(message)
    return int(match.group(1)) if match else None


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


def _copy_tree(source: Path, target: Path) -> None:
    shutil.copytree(source, target, dirs_exist_ok=True, ignore=shutil.ignore_patterns(".git"))


async def fetch_template(
    repo: str,
    target_dir: str | Path,
    policy: RetryPolicy | None = None,
    runner: Runner = run_command,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> Path:
    """Download template *repo* into *target_dir*.

    Args:
        repo: ``gh:owner/repo[/subdir]`` spec.
        target_dir: Destination; created if missing, existing files overwritten.
        policy: Retry policy; defaults to ``RetryPolicy()``.
        runner: Command runner with the ``run_command`` signature.
        sleep: Awaitable used between attempts.

    Returns:
        The resolved target directory.

    Raises:
        RateLimitError: GitHub refused the clone because of rate limiting.
        OfflineError: GitHub could not be reached.
        NetworkError: Any other failure, including a missing repository.
    """
    policy = policy or RetryPolicy()
    clone_url, web_url, subdir = parse_template_spec(repo)
    target = Path(target_dir).resolve()
    attempts = 0

    async def _attempt() -> None:
        nonlocal attempts
        attempts += 1
        with tempfile.TemporaryDirectory(prefix="nexo-template-") as scratch:
            checkout = Path(scratch) / "repo"
            rc, _, stderr = await runner(
                ["git", "clone", "--depth", "1", clone_url, str(checkout)],
                timeout=CLONE_TIMEOUT,
            )
            if rc != 0:
                raise CloneFailed(stderr or f"git clone exited with code {rc}")
            source = checkout / subdir if subdir else checkout
            if not source.is_dir():
                raise CloneFailed(f"Template path not found: {subdir}")
            await asyncio.to_thread(_copy_tree, source, target)

    def _on_retry(attempt: int, delay: float, exc: Exception) -> None:
        print_warning(f"Retrying ({attempt}/{policy.max_retries}) in {delay:g}s: {exc}")

    console.print(f"  Cloning template from [bold]{repo}[/bold]...")
    try:
        await retry_async(_attempt, policy, _is_retryable, sleep=sleep, on_retry=_on_retry)
    except CloneFailed as exc:
        message = str(exc)
        lowered = message.lower()
        if _is_rate_limited(lowered):
            raise RateLimitError(
                f'GitHub rate limit exceeded while cloning "{repo}"',
                retry_after=parse_retry_after(message),
            ) from exc
        if _is_offline(lowered):
            raise OfflineError(f'Unable to clone "{repo}": no network connection.') from exc
        raise NetworkError(
            f'Failed to clone template "{repo}" after {attempts} attempt(s): {message}',
            url=web_url,
            retry_count=attempts,
        ) from exc

    print_success("Template cloned successfully")
    return target
