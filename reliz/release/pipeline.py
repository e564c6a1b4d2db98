"""Release orchestration.

``ReleasePipeline.run`` drives one invocation end to end:

1. resolve configuration, load plugins, ``init`` plugins, ``beforeInit`` hooks
2. read package.json; ``--release-version`` and ``--changelog`` stop here
3. preconditions (origin remote, clean tree, git-flow, upstream, branch)
4. bump resolution (argv/env/config, CI default, or interactive prompt)
5. next version and date; confirmation (skipped in dry-run)
6. changelog, ``beforeRelease``, tag pre-removal, branch sync, workflow
7. ``afterGitRelease`` and ``afterBump``
8. publication, async ``release`` plugins, ``afterRelease``

Fatal problems come back as ``Err(ReleaseError)``; the CLI turns them into
``Error: <message>`` and exit code 1. In dry-run the same decisions are made
and logged, and every mutating step only describes itself.
"""

from __future__ import annotations

import datetime as dt
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from reliz.core.config import ResolvedConfig, resolve
from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result
from reliz.git.repository import RepositoryProtocol
from reliz.output.console import ConsoleProtocol
from reliz.platform.http import HttpClient
from reliz.release.changelog import changelog_text, format_date
from reliz.release.hooks import run_hooks
from reliz.release.manifest import read_manifest
from reliz.release.model import ReleaseContext
from reliz.release.plugins import (
    LifecyclePhase,
    Plugin,
    load_plugins,
    run_plugins,
    run_release_phase,
)
from reliz.release.prompts import PromptService, ReleaseSummary
from reliz.release.publish import publish_release
from reliz.release.semver import next_version, suggest_bump
from reliz.release.workflow import (
    build_workflow,
    release_branch_name,
    remove_existing_tag,
    select_workflow,
    sync_branches,
)

__all__ = ["Outcome", "PipelineResult", "ReleasePipeline"]


Outcome = Literal["completed", "cancelled", "info", "dry_run"]


@dataclass(frozen=True, slots=True)
class PipelineResult:
    outcome: Outcome
    context: ReleaseContext | None = None
    output: str | None = None


def _precondition(message: str, hint: str | None = None) -> Err[ReleaseError]:
    return Err(ReleaseError(kind="precondition", message=message, hint=hint))


class ReleasePipeline:
    """One release run with injected collaborators."""

    def __init__(
        self,
        *,
        cwd: Path,
        console: ConsoleProtocol,
        prompts: PromptService,
        repo: RepositoryProtocol,
        http: HttpClient,
        env: Mapping[str, str] | None = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        self.cwd = cwd
        self.console = console
        self.prompts = prompts
        self.repo = repo
        self.http = http
        self.env: Mapping[str, str] = dict(os.environ) if env is None else env
        self.today = today
        self.plugins: list[Plugin] = []

    def run(self, argv: Sequence[str]) -> Result[PipelineResult, ReleaseError]:
        resolved = resolve(self.cwd, argv, self.env)
        if isinstance(resolved, Err):
            return resolved
        return self._run(resolved.value)

    # ------------------------------------------------------------------

    def _run(self, resolved: ResolvedConfig) -> Result[PipelineResult, ReleaseError]:
        config, options = resolved.config, resolved.options
        for warning in resolved.warnings:
            self.console.warning(warning)
        if resolved.source is not None:
            self.console.debug(f"config: {resolved.source.path}")

        if options.dry_run:
            self.console.print("Running in dry-run mode. No changes will be made.")

        ctx = ReleaseContext(cwd=self.cwd, config=config, options=options, dry_run=options.dry_run)
        self.plugins = load_plugins(self.cwd, config.plugins, self.console)
        run_plugins(self.plugins, LifecyclePhase.INIT, ctx, self.console)
        hooked = run_hooks(config.hooks.before_init, ctx, console=self.console)
        if isinstance(hooked, Err):
            return hooked

        manifest = read_manifest(self.cwd)
        if isinstance(manifest, Err):
            return manifest
        ctx.project_name = manifest.value.name
        ctx.current_version = manifest.value.version

        if options.info_only:
            return self._info(ctx)

        checked = self._check_preconditions(ctx)
        if isinstance(checked, Err):
            return checked

        ctx.latest_tag = self.repo.latest_tag()
        ctx.commits.extend(self.repo.commits_since(ctx.latest_tag))

        bump, pre_id = self._resolve_bump(ctx)
        current = manifest.value.version
        ctx.bump = bump
        ctx.pre_id = pre_id
        if options.no_increment:
            ctx.next_version = current
        else:
            ctx.next_version = next_version(current, bump or "patch", pre_id)
        ctx.date_str = format_date(self.today(), config.changelog.date_locale)
        ctx.tag_name = config.tag.name_for(ctx.next_version)
        ctx.workflow = select_workflow(config, options)
        if ctx.workflow == "gitflow":
            ctx.release_branch = release_branch_name(config, ctx.next_version)

        if ctx.dry_run:
            self._log_decisions(ctx)
        else:
            summary = ReleaseSummary(
                project_name=ctx.project_name or "project",
                version=ctx.next_version,
                date_str=ctx.date_str,
                commits=tuple(ctx.commits),
            )
            if not self.prompts.confirm(summary, options.ci, options.yes or options.only_version):
                self.console.print("Release cancelled.")
                return Ok(PipelineResult(outcome="cancelled", context=ctx))

        released = self._release(ctx)
        if isinstance(released, Err):
            return released

        if ctx.dry_run:
            self.console.success("Dry run complete. No changes were made.")
            return Ok(PipelineResult(outcome="dry_run", context=ctx))
        self.console.success("Release completed successfully.")
        return Ok(PipelineResult(outcome="completed", context=ctx))

    def _info(self, ctx: ReleaseContext) -> Result[PipelineResult, ReleaseError]:
        """``--release-version`` prints the next version; ``--changelog`` the fragment."""
        options = ctx.options
        if options.release_version:
            current = ctx.current_version or "0.0.0"
            version = next_version(current, options.bump or "patch", options.preid)
            self.console.print(version)
            return Ok(PipelineResult(outcome="info", output=version))

        if self.repo.remote_url() is None:
            return _precondition('Remote "origin" does not exist.')
        ctx.latest_tag = self.repo.latest_tag()
        ctx.commits.extend(self.repo.commits_since(ctx.latest_tag))
        text = changelog_text(ctx)
        if isinstance(text, Err):
            return text
        self.console.print(text.value)
        return Ok(PipelineResult(outcome="info", context=ctx, output=text.value))

    def _check_preconditions(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        config = ctx.config
        if self.repo.remote_url() is None:
            return _precondition('Remote "origin" does not exist.', hint="git remote add origin <url>")
        if config.require_clean_working_dir and not self.repo.is_clean():
            return _precondition(
                "You have uncommitted changes. Please commit or stash them before releasing."
            )
        if select_workflow(config, ctx.options) == "gitflow" and not self.repo.gitflow_available():
            return _precondition(
                "git flow is not installed. Please install it before releasing.",
                hint="or use --no-git-flow for a linear release",
            )

        branch = self.repo.current_branch()
        ctx.current_branch = branch
        if config.git.require_upstream and (branch is None or not self.repo.has_upstream(branch)):
            return _precondition(
                f'Branch "{branch}" has no upstream. Push the branch first or set '
                "git.requireUpstream: false."
            )
        allowed = config.allow_release_from
        if allowed and branch not in allowed:
            return _precondition(
                f'Cannot release from branch "{branch or "(detached HEAD)"}". '
                f"Allowed: {', '.join(allowed)}."
            )
        return Ok(None)

    def _resolve_bump(self, ctx: ReleaseContext) -> tuple[str | None, str | None]:
        """Decide the bump kind and pre-release id.

        Choosing ``prerelease`` at the prompt asks for an id and releases a
        patch pre-release. An explicit kind combined with a pre-release id
        keeps its kind.
        """
        options = ctx.options
        pre_id = options.preid
        if options.no_increment:
            return None, pre_id

        bump: str | None = options.bump
        if bump is None and options.ci:
            bump = "patch"
        if bump is not None:
            return bump, pre_id

        suggested = suggest_bump(ctx.commits) if ctx.config.conventional_commits else None
        if suggested is not None:
            self.console.info(f"Suggested bump from commits: {suggested}")
        current = ctx.current_version or "0.0.0"
        chosen = self.prompts.choose_bump(current, suggested, "patch", options.ci)
        if chosen == "prerelease":
            if pre_id is None:
                pre_id = self.prompts.choose_preid(options.ci)
            chosen = "patch"
        return chosen, pre_id

    def _log_decisions(self, ctx: ReleaseContext) -> None:
        self.console.print(
            f"[dry-run] Would release {ctx.next_version} (bump: {ctx.bump or 'none'}) "
            f"from {ctx.current_branch or '(detached HEAD)'}."
        )
        self.console.print(f"[dry-run] Workflow: {ctx.workflow}")
        if ctx.release_branch:
            self.console.print(f"[dry-run] Release branch: {ctx.release_branch}")
        self.console.print(f"[dry-run] Tag: {ctx.tag_name}")

    def _plugins(self, phase: LifecyclePhase, ctx: ReleaseContext) -> None:
        if not ctx.dry_run:
            if phase.is_async:
                run_release_phase(self.plugins, ctx, self.console)
            else:
                run_plugins(self.plugins, phase, ctx, self.console)
            return
        names = [p.name for p in self.plugins if p.implements(phase)]
        if names:
            self.console.print(f"[dry-run] Would run {phase} plugins: {', '.join(names)}")

    def _phase(
        self, phase: LifecyclePhase, ctx: ReleaseContext, hooks: Sequence[str]
    ) -> Result[None, ReleaseError]:
        """Plugins for ``phase`` then its hook commands."""
        self._plugins(phase, ctx)
        return run_hooks(hooks, ctx, console=self.console)

    def _release(self, ctx: ReleaseContext) -> Result[None, ReleaseError]:
        config = ctx.config
        hooks = config.hooks

        text = changelog_text(ctx)
        if isinstance(text, Err):
            return text
        ctx.changelog = text.value

        result = self._phase(LifecyclePhase.BEFORE_RELEASE, ctx, hooks.before_release)
        if isinstance(result, Err):
            return result

        if config.tag.delete_if_exists:
            result = remove_existing_tag(ctx, self.repo, self.console)
            if isinstance(result, Err):
                return result

        if ctx.workflow == "gitflow" and config.sync_branches:
            result = sync_branches(ctx, self.repo, self.console)
            if isinstance(result, Err):
                return result

        workflow = build_workflow(select_workflow(config, ctx.options), self.repo, self.console)
        executed = workflow.execute(ctx)
        if isinstance(executed, Err):
            return executed
        self.console.debug(f"workflow states: {' -> '.join(executed.value)}")

        result = self._phase(LifecyclePhase.AFTER_GIT_RELEASE, ctx, hooks.after_git_release)
        if isinstance(result, Err):
            return result
        result = self._phase(LifecyclePhase.AFTER_BUMP, ctx, hooks.after_bump)
        if isinstance(result, Err):
            return result

        publish_release(ctx, repo=self.repo, http=self.http, console=self.console, env=self.env)

        self._plugins(LifecyclePhase.RELEASE, ctx)

        hooked = run_hooks(hooks.after_release, ctx, console=self.console)
        if isinstance(hooked, Err):
            return hooked
        self._plugins(LifecyclePhase.AFTER_RELEASE, ctx)
        return Ok(None)
