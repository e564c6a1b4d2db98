"""Tests for reliz.release.publish module."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

import pytest

from reliz.core.config import ChangelogConfig, Config, GitHubConfig, GitLabConfig, NpmConfig
from reliz.core.errors import ReleaseError
from reliz.core.options import InvocationOptions
from reliz.core.result import Err, Ok, Result
from reliz.output.console import MockConsole
from reliz.platform.http import HttpError, MockHttpClient
from reliz.platform.process import ProcessError
from reliz.release import publish
from reliz.release.changelog import ShellRunner
from reliz.release.model import ReleaseContext
from reliz.release.publish import npm_publish, publish_release, release_title

from ._fakes import FakeRepository, make_context

GITHUB_RELEASES = "https://api.github.com/repos/acme/widget/releases"
GITHUB_URL = "https://github.com/acme/widget/releases/tag/v1.1.0"
# The same origin also parses as a self-hosted GitLab remote.
GITLAB_RELEASES = "https://github.com/api/v4/projects/acme%2Fwidget/releases"
GITLAB_URL = "https://gitlab.example/acme/widget/-/releases/v1.1.0"
TOKENS = {"GITHUB_TOKEN": "gh", "GITLAB_TOKEN": "gl"}
BOTH = Config(github=GitHubConfig(release=True), gitlab=GitLabConfig(release=True))


class LiveRecorder:
    """Stand-in for run_live."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.commands: list[tuple[list[str], Path]] = []

    def __call__(self, cmd: list[str], cwd: Path, env: object = None) -> Result[None, ProcessError]:
        self.commands.append((cmd, cwd))
        if self.fail:
            return Err(ProcessError(tuple(cmd), 1, "", ""))
        return Ok(None)


@pytest.fixture
def live(monkeypatch: pytest.MonkeyPatch) -> LiveRecorder:
    recorder = LiveRecorder()
    monkeypatch.setattr(publish, "run_live", recorder)
    return recorder


def npm(
    cwd: Path,
    config: NpmConfig,
    console: MockConsole | None = None,
    *,
    dry_run: bool = False,
    env: Mapping[str, str] | None = None,
) -> Result[None, ReleaseError]:
    return npm_publish(
        cwd, config, dry_run=dry_run, console=console or MockConsole(), env=env or {}
    )


def release_context(cwd: Path, config: Config, dry_run: bool = False) -> ReleaseContext:
    ctx = make_context(
        cwd,
        config=config,
        options=InvocationOptions(dry_run=dry_run),
        next_version="1.1.0",
        tag_name="v1.1.0",
        date_str="01/02/2024",
    )
    ctx.commits.extend(["fix: a bug", "feat: new thing"])
    return ctx


def publish_all(
    ctx: ReleaseContext,
    http: MockHttpClient,
    console: MockConsole | None = None,
    runner: ShellRunner | None = None,
) -> None:
    publish_release(
        ctx,
        repo=FakeRepository(ctx.cwd),
        http=http,
        console=console or MockConsole(),
        env=TOKENS,
        runner=runner,
    )


def test_release_title() -> None:
    assert release_title("1.1.0") == "Release 1.1.0"


# =============================================================================
# npm
# =============================================================================


class TestNpmPublish:
    def test_publish(self, tmp_path: Path, live: LiveRecorder) -> None:
        console = MockConsole()

        result = npm(tmp_path, NpmConfig(publish=True), console)

        assert result == Ok(None)
        assert live.commands == [(["npm", "publish", "--tag", "latest"], tmp_path.resolve())]
        assert console.find("Published to npm (latest).")

    def test_lockfile_is_synced_first(self, tmp_path: Path, live: LiveRecorder) -> None:
        (tmp_path / "package-lock.json").write_text("{}", encoding="utf-8")

        npm(tmp_path, NpmConfig(publish=True, tag="next"))

        assert [cmd for cmd, _ in live.commands] == [
            ["npm", "install"],
            ["npm", "publish", "--tag", "next"],
        ]

    def test_publish_path(self, tmp_path: Path, live: LiveRecorder) -> None:
        (tmp_path / "dist").mkdir()

        npm(tmp_path, NpmConfig(publish_path="dist"))

        assert live.commands[0][1] == (tmp_path / "dist").resolve()

    def test_otp_from_environment(self, tmp_path: Path, live: LiveRecorder) -> None:
        npm(tmp_path, NpmConfig(), env={"NPM_OTP": "123456"})

        assert live.commands[0][0] == ["npm", "publish", "--tag", "latest", "--otp", "123456"]

    def test_failure_does_not_echo_otp(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(publish, "run_live", LiveRecorder(fail=True))

        result = npm(tmp_path, NpmConfig(otp="654321"))

        assert isinstance(result, Err)
        assert result.error.kind == "publication"
        assert "654321" not in result.error.message

    def test_dry_run(self, tmp_path: Path, live: LiveRecorder) -> None:
        console = MockConsole()

        npm(tmp_path, NpmConfig(), console, dry_run=True)

        assert live.commands == []
        assert console.messages == [
            f"[dry-run] Would run: npm publish --tag latest in {tmp_path.resolve()}"
        ]


# =============================================================================
# publish_release
# =============================================================================


class TestPublishRelease:
    """Publication is ordered and never fails the release."""

    def test_nothing_enabled(self, tmp_path: Path, live: LiveRecorder) -> None:
        http = MockHttpClient()
        ctx = release_context(tmp_path, Config())

        publish_all(ctx, http)

        assert live.commands == []
        assert http.requests == []
        assert ctx.release_url is None

    def test_first_url_wins(self, tmp_path: Path, live: LiveRecorder) -> None:
        http = MockHttpClient()
        http.set_response(GITHUB_RELEASES, {"html_url": GITHUB_URL})
        http.set_response(GITLAB_RELEASES, {"_links": {"self": GITLAB_URL}})
        ctx = release_context(tmp_path, BOTH)

        publish_all(ctx, http)

        assert [r.url for r in http.requests] == [GITHUB_RELEASES, GITLAB_RELEASES]
        assert ctx.release_url == GITHUB_URL
        assert ctx.release_notes == "## 1.1.0 - 01/02/2024\n\n- fix: a bug\n- feat: new thing"
        assert http.requests[0].payload["name"] == "Release 1.1.0"

    def test_failed_provider_is_a_warning(self, tmp_path: Path, live: LiveRecorder) -> None:
        http = MockHttpClient()
        http.set_response(
            GITHUB_RELEASES, HttpError(url=GITHUB_RELEASES, status=500, message="Server Error")
        )
        http.set_response(GITLAB_RELEASES, {"_links": {"self": GITLAB_URL}})
        ctx = release_context(tmp_path, BOTH)
        console = MockConsole()

        publish_all(ctx, http, console)

        assert console.find("warning: GitHub release failed: GitHub API 500: Server Error")
        assert ctx.release_url == GITLAB_URL

    def test_npm_failure_continues(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(publish, "run_live", LiveRecorder(fail=True))
        http = MockHttpClient()
        http.set_response(GITHUB_RELEASES, {"html_url": GITHUB_URL})
        config = Config(npm=NpmConfig(publish=True), github=GitHubConfig(release=True))
        ctx = release_context(tmp_path, config)
        console = MockConsole()

        publish_all(ctx, http, console)

        assert console.find("warning: npm publish failed: npm publish exited with 1")
        assert ctx.release_url == GITHUB_URL

    def test_release_notes_failure_falls_back(self, tmp_path: Path, live: LiveRecorder) -> None:
        def failing(command: str, cwd: Path, **kwargs: object) -> Result[str, ProcessError]:
            return Err(ProcessError((command,), 1, "", "boom"))

        http = MockHttpClient()
        http.set_response(GITHUB_RELEASES, {"html_url": GITHUB_URL})
        config = Config(
            github=GitHubConfig(release=True),
            changelog=ChangelogConfig(release_notes_command="notes"),
        )
        ctx = release_context(tmp_path, config)
        console = MockConsole()

        publish_all(ctx, http, console, runner=failing)

        assert console.find("Release notes failed")
        assert http.requests[0].payload["body"] == (
            "## 1.1.0 - 01/02/2024\n\n- fix: a bug\n- feat: new thing"
        )

    def test_dry_run_sends_nothing(self, tmp_path: Path, live: LiveRecorder) -> None:
        http = MockHttpClient()
        config = Config(npm=NpmConfig(publish=True), github=GitHubConfig(release=True))
        ctx = release_context(tmp_path, config, dry_run=True)

        publish_all(ctx, http)

        assert live.commands == []
        assert http.requests == []
        assert ctx.release_url is None
