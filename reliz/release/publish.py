"""Publication: npm registry, then GitHub and GitLab release records.

Every step here is best-effort. Failures are printed as warnings and the run
carries on; the first release URL obtained is kept on the context.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path

from reliz.core.config import NpmConfig
from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result
from reliz.git.repository import RepositoryProtocol
from reliz.output.console import ConsoleProtocol
from reliz.output.errors import warn_failed
from reliz.platform.http import HttpClient
from reliz.platform.process import ProcessError
from reliz.platform.process import run_live as _run_live
from reliz.release.changelog import ShellRunner, release_notes_body
from reliz.release.model import ReleaseContext
from reliz.release.providers import GitHubProvider, GitLabProvider, ReleaseRequest

__all__ = ["LOCKFILE", "npm_publish", "publish_release", "release_title"]

LOCKFILE = "package-lock.json"

# Module-level so tests can monkeypatch it.
run_live: Callable[..., Result[None, ProcessError]] = _run_live


def release_title(version: str) -> str:
    return f"Release {version}"


def npm_publish(
    cwd: Path,
    npm: NpmConfig,
    *,
    dry_run: bool,
    console: ConsoleProtocol,
    env: Mapping[str, str] | None = None,
) -> Result[None, ReleaseError]:
    """Run ``npm publish`` in ``publishPath``, syncing the lockfile first if there is one."""
    environ = os.environ if env is None else env
    directory = (cwd / npm.publish_path).resolve()
    otp = npm.otp or (environ.get("NPM_OTP") or "").strip() or None

    cmd = ["npm", "publish"]
    if npm.tag:
        cmd += ["--tag", npm.tag]

    if dry_run:
        console.print(f"[dry-run] Would run: {' '.join(cmd)} in {directory}")
        return Ok(None)

    if (directory / LOCKFILE).is_file():
        console.print(f"Syncing {LOCKFILE}...")
        installed = run_live(["npm", "install"], directory)
        if isinstance(installed, Err):
            return Err(ReleaseError(kind="publication", message=f"npm install: {installed.error}"))

    if otp:
        cmd += ["--otp", otp]
    published = run_live(cmd, directory)
    if isinstance(published, Err):
        # The command line carries the one-time password; do not echo it.
        return Err(
            ReleaseError(
                kind="publication",
                message=f"npm publish exited with {published.error.returncode}",
            )
        )
    console.success(f"Published to npm ({npm.tag}).")
    return Ok(None)


def _notes(context: ReleaseContext, console: ConsoleProtocol, runner: ShellRunner | None) -> str:
    result = release_notes_body(context, runner)
    if isinstance(result, Ok):
        return result.value
    warn_failed("Release notes", result.error, console)
    return f"## {context.next_version} - {context.date_str or ''}\n\n" + "\n".join(
        f"- {c}" for c in context.commits
    )


def publish_release(
    context: ReleaseContext,
    *,
    repo: RepositoryProtocol,
    http: HttpClient,
    console: ConsoleProtocol,
    env: Mapping[str, str] | None = None,
    runner: ShellRunner | None = None,
) -> None:
    """npm, then GitHub, then GitLab. Never fails the release."""
    config = context.config
    environ: Mapping[str, str] = dict(os.environ) if env is None else env
    dry_run = context.dry_run

    if config.npm.publish:
        published = npm_publish(context.cwd, config.npm, dry_run=dry_run, console=console, env=environ)
        if isinstance(published, Err):
            warn_failed("npm publish", published.error, console)

    if not (config.github.release or config.gitlab.release):
        return

    version = context.next_version or context.current_version or ""
    tag = context.tag_name or config.tag.name_for(version)
    body = _notes(context, console, runner)
    if context.release_notes is None:
        context.release_notes = body
    remote_url = repo.remote_url()

    providers: list[GitHubProvider | GitLabProvider] = []
    if config.github.release:
        providers.append(GitHubProvider(config.github, http, environ, console))
    if config.gitlab.release:
        providers.append(GitLabProvider(config.gitlab, http, environ, console))

    for provider in providers:
        request = ReleaseRequest(
            tag_name=tag,
            title=release_title(version),
            body=body,
            draft=config.github.draft if isinstance(provider, GitHubProvider) else False,
            prerelease=config.github.pre_release if isinstance(provider, GitHubProvider) else False,
        )
        result = provider.create_release(remote_url, request, dry_run=dry_run)
        match result:
            case Ok(url):
                if url and context.release_url is None:
                    context.release_url = url
            case Err(error):
                warn_failed(f"{provider.name} release", error, console)
