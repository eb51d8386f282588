"""Unit tests for remote template fetching (nexo.templates).

Tests cover:
- get_preset_template / parse_template_spec
- fetch_template success (subdir copied, .git skipped)
- Retry on transient failures, no retry on missing repositories
- Mapping of final failures to RateLimitError / OfflineError / NetworkError
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from nexo.config import RetryPolicy
from nexo.errors import NetworkError, OfflineError, RateLimitError
from nexo.templates import (
    PRESET_TEMPLATES,
    fetch_template,
    get_preset_template,
    parse_retry_after,
    parse_template_spec,
)


class FakeGit:
    """Runner standing in for ``run_command`` during ``git clone``.

    Each call pops the next scripted failure (``(rc, stderr)``); once the
    script is exhausted the clone "succeeds" by writing a small repository.
    """

    def __init__(self, failures: list[tuple[int, str]] | None = None) -> None:
        self.failures = list(failures or [])
        self.calls: list[list[str]] = []

    async def __call__(self, cmd: list[str], **kwargs) -> tuple[int, str, str]:
        self.calls.append(cmd)
        if self.failures:
            rc, stderr = self.failures.pop(0)
            return rc, "", stderr
        checkout = Path(cmd[-1])
        (checkout / ".git").mkdir(parents=True)
        (checkout / ".git" / "HEAD").write_text("ref: main\n", encoding="utf-8")
        saas = checkout / "react" / "saas"
        (saas / "src").mkdir(parents=True)
        (saas / "package.json").write_text('{"name": "saas"}\n', encoding="utf-8")
        (saas / "src" / "App.tsx").write_text("export default 1\n", encoding="utf-8")
        (checkout / "README.md").write_text("# templates\n", encoding="utf-8")
        return 0, "", ""


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_retries=2, initial_delay=1.0, max_delay=10.0)


# ---------------------------------------------------------------------------
# Spec parsing
# ---------------------------------------------------------------------------


class TestTemplateSpecs:
    @pytest.mark.unit
    def test_preset_lookup_is_case_insensitive(self):
        assert get_preset_template("SaaS") == PRESET_TEMPLATES["saas"]
        assert get_preset_template("unknown") is None

    @pytest.mark.unit
    def test_parse_with_subdir(self):
        clone_url, web_url, subdir = parse_template_spec("gh:Moshaban09/nexo-templates/react/saas")
        assert clone_url == "https://github.com/Moshaban09/nexo-templates.git"
        assert web_url == "https://github.com/Moshaban09/nexo-templates"
        assert subdir == "react/saas"

    @pytest.mark.unit
    def test_parse_without_prefix_or_subdir(self):
        assert parse_template_spec("owner/repo.git") == (
            "https://github.com/owner/repo.git",
            "https://github.com/owner/repo",
            None,
        )

    @pytest.mark.unit
    @pytest.mark.parametrize("spec", ["gh:", "gh:owner", "lonely/"])
    def test_parse_rejects_short_specs(self, spec: str):
        with pytest.raises(ValueError):
            parse_template_spec(spec)

    @pytest.mark.unit
    def test_parse_retry_after(self):
        assert parse_retry_after("HTTP 403: rate limit exceeded, Retry-After: 60") == 60
        assert parse_retry_after("rate limit exceeded") is None


# ---------------------------------------------------------------------------
# fetch_template
# ---------------------------------------------------------------------------


class TestFetchTemplate:
    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_copies_requested_subdir(self, tmp_path: Path, fast_policy: RetryPolicy):
        git = FakeGit()
        target = await fetch_template(
            "gh:Moshaban09/nexo-templates/react/saas",
            tmp_path / "out",
            policy=fast_policy,
            runner=git,
        )

        assert target == (tmp_path / "out").resolve()
        assert (target / "package.json").is_file()
        assert (target / "src" / "App.tsx").is_file()
        assert not (target / "README.md").exists()
        assert git.calls[0][:4] == ["git", "clone", "--depth", "1"]
        assert git.calls[0][4] == "https://github.com/Moshaban09/nexo-templates.git"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_whole_repo_without_subdir(self, tmp_path: Path, fast_policy: RetryPolicy):
        target = await fetch_template("gh:owner/repo", tmp_path / "out", policy=fast_policy, runner=FakeGit())
        assert (target / "README.md").is_file()
        assert not (target / ".git").exists()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_transient_failure_retried(self, tmp_path: Path, fast_policy: RetryPolicy):
        git = FakeGit([(128, "error: RPC failed; HTTP 503 curl 22")])
        sleep = AsyncMock()

        target = await fetch_template(
            "gh:Moshaban09/nexo-templates/react/saas",
            tmp_path / "out",
            policy=fast_policy,
            runner=git,
            sleep=sleep,
        )

        assert (target / "package.json").is_file()
        assert len(git.calls) == 2
        sleep.assert_awaited_once_with(1.0)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_repository_not_retried(self, tmp_path: Path, fast_policy: RetryPolicy):
        git = FakeGit([(128, "remote: Repository not found.")])
        sleep = AsyncMock()

        with pytest.raises(NetworkError) as exc_info:
            await fetch_template("gh:owner/ghost", tmp_path / "out", policy=fast_policy, runner=git, sleep=sleep)

        assert exc_info.value.retry_count == 1
        assert exc_info.value.url == "https://github.com/owner/ghost"
        assert len(git.calls) == 1
        sleep.assert_not_awaited()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_missing_subdir_fails(self, tmp_path: Path, fast_policy: RetryPolicy):
        with pytest.raises(NetworkError, match="react/nope"):
            await fetch_template(
                "gh:owner/repo/react/nope", tmp_path / "out", policy=fast_policy, runner=FakeGit()
            )

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_after_retries(self, tmp_path: Path, fast_policy: RetryPolicy):
        message = "HTTP 403: API rate limit exceeded. Retry-After: 60"
        git = FakeGit([(128, message)] * 3)
        sleep = AsyncMock()

        with pytest.raises(RateLimitError) as exc_info:
            await fetch_template("gh:owner/repo", tmp_path / "out", policy=fast_policy, runner=git, sleep=sleep)

        assert exc_info.value.retry_after == 60
        assert len(git.calls) == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_offline(self, tmp_path: Path):
        message = "fatal: unable to access 'https://github.com/owner/repo.git/': Could not resolve host: github.com"
        git = FakeGit([(128, message)])

        with pytest.raises(OfflineError):
            await fetch_template(
                "gh:owner/repo",
                tmp_path / "out",
                policy=RetryPolicy(max_retries=0),
                runner=git,
            )
