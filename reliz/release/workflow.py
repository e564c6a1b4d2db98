"""Release workflows.

Two topologies, selected once per run by ``select_workflow``:

- ``linear``: commit, tag and push on the current branch
- ``gitflow``: release branch, git-flow finish into main/develop, push all

Both walk a fixed state table through ``run_workflow``. Under dry-run each
transition logs what it would do and touches nothing.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal

from reliz.core.config import Config
from reliz.core.errors import ReleaseError
from reliz.core.options import InvocationOptions
from reliz.core.result import Err, Ok, Result
from reliz.git.repository import GitError, RepositoryProtocol, is_non_fast_forward
from reliz.output.console import ConsoleProtocol
from reliz.release.changelog import prepend_entry, render_entry
from reliz.release.fsm import Action, run_workflow
from reliz.release.hooks import interpolate
from reliz.release.manifest import MANIFEST_FILENAME, write_version
from reliz.release.model import ReleaseContext

__all__ = [
    "GITFLOW_STATES",
    "LINEAR_STATES",
    "PUSH_RETRY_FAILED",
    "GitFlowWorkflow",
    "LinearWorkflow",
    "Workflow",
    "WorkflowKind",
    "build_workflow",
    "release_branch_name",
    "remove_existing_tag",
    "select_workflow",
    "sync_branches",
    "update_files",
]


WorkflowKind = Literal["gitflow", "linear"]

LINEAR_STATES = ("start", "files_updated", "committed", "tagged", "pushed", "done")
GITFLOW_STATES = (
    "start",
    "branch_ensured",
    "files_updated",
    "committed",
    "pushed",
    "finished",
    "branches_pushed",
    "tag_pushed",
)

PUSH_RETRY_FAILED = "Push after rebase failed. Please resolve conflicts and push manually."


def select_workflow(config: Config, options: InvocationOptions) -> WorkflowKind:
    if config.git_flow and not options.no_git_flow:
        return "gitflow"
    return "linear"


def _git_failed(error: GitError) -> ReleaseError:
    return ReleaseError(kind="workflow", message=f"git {error.command} failed: {error.message}")


def _lift(result: Result[None, GitError]) -> Result[None, ReleaseError]:
    if isinstance(result, Err):
        return Err(_git_failed(result.error))
    return Ok(None)


def _version(context: ReleaseContext) -> str:
    if context.next_version is None:
        raise ValueError("release context has no next version")
    return context.next_version


def update_files(context: ReleaseContext, console: ConsoleProtocol) -> Result[None, ReleaseError]:
    """Write the new version into package.json and prepend the changelog entry."""
    version = _version(context)
    settings = context.config.changelog
    changelog_path = context.cwd / settings.path

    if context.dry_run:
        console.print(f"[dry-run] Would set {MANIFEST_FILENAME} version to {version}")
        console.print(f"[dry-run] Would prepend {version} entry to {settings.path}")
        return Ok(None)

    written = write_version(context.cwd, version)
    if isinstance(written, Err):
        return written

    entry = render_entry(settings.template, version, context.date_str or "", context.changelog or "")
    try:
        prepend_entry(changelog_path, entry)
    except OSError as e:
        return Err(ReleaseError(kind="workflow", message=f"cannot write {changelog_path}: {e}"))
    console.debug(f"updated {MANIFEST_FILENAME} and {settings.path}")
    return Ok(None)


def _commit(
    context: ReleaseContext, repo: RepositoryProtocol, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    message = interpolate(context.config.commit_message, context.variables())
    if context.dry_run:
        console.print(f"[dry-run] Would commit: {message}")
        return Ok(None)
    console.print("Committing updated files...")
    staged = _lift(repo.add_all())
    if isinstance(staged, Err):
        return staged
    return _lift(repo.commit(message))


def _tag_message(context: ReleaseContext) -> str:
    return interpolate(context.config.tag_message, context.variables())


def sync_branches(
    context: ReleaseContext, repo: RepositoryProtocol, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    """Refresh local main and develop from origin.

    The checked-out branch is fetched but never force-moved.
    """
    branches = context.config.branches
    if context.dry_run:
        console.print(f"[dry-run] Would sync {branches.main} and {branches.develop} from origin")
        return Ok(None)

    console.print("Fetching all branches...")
    fetched = _lift(repo.fetch_all())
    if isinstance(fetched, Err):
        return fetched

    for branch in (branches.main, branches.develop):
        result = _lift(repo.fetch_branch(branch))
        if isinstance(result, Err):
            return result
        if branch == context.current_branch:
            console.print(f"Skipping force update for {branch} (currently checked out).")
            continue
        result = _lift(repo.force_branch(branch, f"origin/{branch}"))
        if isinstance(result, Err):
            return result

    console.print("Branches are up to date.")
    return Ok(None)


def remove_existing_tag(
    context: ReleaseContext, repo: RepositoryProtocol, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    """Delete a local and remote tag with this release's name, so a release can be rerun."""
    tag = context.tag_name or context.config.tag.name_for(_version(context))

    if repo.tag_exists_locally(tag):
        if context.dry_run:
            console.print(f"[dry-run] Would delete local tag {tag}")
        else:
            deleted = _lift(repo.delete_local_tag(tag))
            if isinstance(deleted, Err):
                return deleted
            console.print(f"Deleted local tag {tag}")

    if repo.tag_exists_remotely(tag):
        if context.dry_run:
            console.print(f"[dry-run] Would delete remote tag {tag}")
        else:
            deleted = _lift(repo.delete_remote_tag(tag))
            if isinstance(deleted, Err):
                return deleted
            console.print(f"Deleted remote tag {tag}")

    return Ok(None)


@dataclass(slots=True)
class LinearWorkflow:
    """Commit, tag and push on the current branch."""

    repo: RepositoryProtocol
    console: ConsoleProtocol
    kind: WorkflowKind = "linear"

    @property
    def states(self) -> tuple[str, ...]:
        return LINEAR_STATES

    def execute(self, context: ReleaseContext) -> Result[list[str], ReleaseError]:
        self.console.print("Starting linear release...")
        push_args = context.config.git.push_args
        tag = context.tag_name or context.config.tag.name_for(_version(context))

        def tagged() -> Result[None, ReleaseError]:
            if context.dry_run:
                self.console.print(f"[dry-run] Would create tag {tag}")
                return Ok(None)
            return _lift(self.repo.create_annotated_tag(tag, _tag_message(context)))

        def pushed() -> Result[None, ReleaseError]:
            branch = context.current_branch or self.repo.current_branch()
            if branch is None:
                return Err(ReleaseError(kind="workflow", message="cannot push: HEAD is detached"))
            if context.dry_run:
                self.console.print(f"[dry-run] Would push branch {branch} and tag {tag}")
                return Ok(None)
            result = _lift(self.repo.push_branch(branch, push_args))
            if isinstance(result, Err):
                return result
            return _lift(self.repo.push_tag(tag, push_args))

        actions: dict[str, Action] = {
            "files_updated": lambda: update_files(context, self.console),
            "committed": lambda: _commit(context, self.repo, self.console),
            "tagged": tagged,
            "pushed": pushed,
        }
        result = run_workflow(self.states, actions, on_enter=self._entered)
        if isinstance(result, Ok):
            self.console.success("Linear release completed.")
        return result

    def _entered(self, state: str) -> None:
        self.console.debug(f"linear: {state}")


@dataclass(slots=True)
class GitFlowWorkflow:
    """git-flow release: release branch, finish, push main, develop and the tag."""

    repo: RepositoryProtocol
    console: ConsoleProtocol
    kind: WorkflowKind = "gitflow"

    @property
    def states(self) -> tuple[str, ...]:
        return GITFLOW_STATES

    def execute(self, context: ReleaseContext) -> Result[list[str], ReleaseError]:
        version = _version(context)
        config = context.config
        push_args = config.git.push_args
        release_branch = context.release_branch or release_branch_name(config, version)
        tag = context.tag_name or config.tag.name_for(version)

        self.console.print("Starting git flow release...")

        def branch_ensured() -> Result[None, ReleaseError]:
            exists = release_branch in self.repo.local_branches()
            if exists:
                self.console.print(f"Release branch {release_branch} already exists.")
            else:
                self.console.print(f"Creating release branch: {release_branch}")
            if context.dry_run:
                verb = "check out" if exists else "create"
                self.console.print(f"[dry-run] Would {verb} release branch {release_branch}")
                return Ok(None)
            if exists:
                return _lift(self.repo.checkout(release_branch))
            return _lift(self.repo.gitflow_release_start(version))

        def pushed() -> Result[None, ReleaseError]:
            if context.dry_run:
                self.console.print(f"[dry-run] Would push {release_branch}")
                return Ok(None)
            return self._push_with_retry(release_branch, push_args)

        def finished() -> Result[None, ReleaseError]:
            if context.dry_run:
                self.console.print(f"[dry-run] Would finish git flow release {version} (tag {tag})")
                return Ok(None)
            self.console.print(f"Finishing git flow release: {version}")
            return _lift(self.repo.gitflow_release_finish(version, _tag_message(context)))

        def branches_pushed() -> Result[None, ReleaseError]:
            targets = (config.branches.develop, config.branches.main)
            if context.dry_run:
                self.console.print(f"[dry-run] Would push {' and '.join(targets)}")
                return Ok(None)
            self.console.print("Pushing branches...")
            for branch in targets:
                result = _lift(self.repo.push_branch(branch, push_args))
                if isinstance(result, Err):
                    return result
            return Ok(None)

        def tag_pushed() -> Result[None, ReleaseError]:
            if context.dry_run:
                self.console.print(f"[dry-run] Would push tag {tag}")
                return Ok(None)
            if not self.repo.tag_exists_locally(tag):
                self.console.warning(f"Tag {tag} does not exist locally. Skipping tag push.")
                return Ok(None)
            return _lift(self.repo.push_tag(tag, push_args))

        actions: dict[str, Action] = {
            "branch_ensured": branch_ensured,
            "files_updated": lambda: update_files(context, self.console),
            "committed": lambda: _commit(context, self.repo, self.console),
            "pushed": pushed,
            "finished": finished,
            "branches_pushed": branches_pushed,
            "tag_pushed": tag_pushed,
        }
        result = run_workflow(self.states, actions, on_enter=self._entered)
        if isinstance(result, Ok):
            self.console.success("Git flow release completed.")
        return result

    def _push_with_retry(
        self, release_branch: str, push_args: Sequence[str]
    ) -> Result[None, ReleaseError]:
        """Push HEAD; on a non-fast-forward rejection rebase once and push again."""
        self.console.print("Pushing release branch...")
        first = self.repo.push_head(push_args)
        if isinstance(first, Ok):
            return Ok(None)
        if not is_non_fast_forward(first.error):
            return Err(_git_failed(first.error))

        self.console.warning("Push rejected (non-fast-forward); rebasing and retrying once.")
        rebased = self.repo.pull_rebase(release_branch)
        if isinstance(rebased, Err):
            return Err(ReleaseError(kind="workflow", message=PUSH_RETRY_FAILED, hint=rebased.error.message))
        second = self.repo.push_head(push_args)
        if isinstance(second, Err):
            return Err(ReleaseError(kind="workflow", message=PUSH_RETRY_FAILED, hint=second.error.message))
        return Ok(None)

    def _entered(self, state: str) -> None:
        self.console.debug(f"gitflow: {state}")


type Workflow = LinearWorkflow | GitFlowWorkflow

type WorkflowFactory = Callable[[RepositoryProtocol, ConsoleProtocol], Workflow]

_FACTORIES: dict[WorkflowKind, WorkflowFactory] = {
    "linear": LinearWorkflow,
    "gitflow": GitFlowWorkflow,
}


def build_workflow(
    kind: WorkflowKind, repo: RepositoryProtocol, console: ConsoleProtocol
) -> Workflow:
    return _FACTORIES[kind](repo, console)


def release_branch_name(config: Config, version: str) -> str:
    return f"{config.release_branch_prefix}{version}"
