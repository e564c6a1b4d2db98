"""Git repository abstraction.

Everything the release engine asks of git goes through ``Repository``:
queries return plain values (``None``/``False`` when git cannot answer),
mutations return ``Result[..., GitError]``.

Usage:
    repo = Repository(Path("/path/to/project"))

    if not repo.is_clean():
        ...

    match repo.push_branch("main", ["--follow-tags"]):
        case Ok(_):
            print("pushed")
        case Err(e):
            print(f"push failed: {e.message}")
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from reliz.core.result import Err, Ok, Result
from reliz.platform.process import ProcessError
from reliz.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote", "flow"})

# git-flow opens an editor for merge and tag messages unless told not to.
_GITFLOW_ENV = {"GIT_MERGE_AUTOEDIT": "no", "GIT_EDITOR": "true"}

_DESCRIBE_SUFFIX = re.compile(r"^(.+?)-\d+-g[0-9a-f]+$")

__all__ = [
    "GitError",
    "Repository",
    "RepositoryProtocol",
    "is_non_fast_forward",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message (stderr, or stdout when stderr is empty)
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


def is_non_fast_forward(error: GitError) -> bool:
    """True when a push was rejected because the remote moved ahead."""
    text = error.message.lower()
    return "non-fast-forward" in text or "fetch first" in text


class RepositoryProtocol(Protocol):
    """The git operations the release engine depends on."""

    path: Path

    def current_branch(self) -> str | None: ...
    def is_clean(self) -> bool: ...
    def remote_url(self, name: str | None = None) -> str | None: ...
    def has_upstream(self, branch: str) -> bool: ...
    def latest_tag(self) -> str | None: ...
    def commits_since(self, ref: str | None) -> list[str]: ...
    def local_branches(self) -> list[str]: ...
    def tag_exists_locally(self, name: str) -> bool: ...
    def tag_exists_remotely(self, name: str) -> bool: ...
    def gitflow_available(self) -> bool: ...

    def add_all(self) -> Result[None, GitError]: ...
    def commit(self, message: str) -> Result[None, GitError]: ...
    def checkout(self, branch: str) -> Result[None, GitError]: ...
    def create_annotated_tag(self, name: str, message: str) -> Result[None, GitError]: ...
    def delete_local_tag(self, name: str) -> Result[None, GitError]: ...
    def delete_remote_tag(self, name: str) -> Result[None, GitError]: ...
    def push_branch(self, name: str, extra_args: Sequence[str] = ()) -> Result[None, GitError]: ...
    def push_tag(self, name: str, extra_args: Sequence[str] = ()) -> Result[None, GitError]: ...
    def push_head(self, extra_args: Sequence[str] = ()) -> Result[None, GitError]: ...
    def pull_rebase(self, branch: str) -> Result[None, GitError]: ...
    def fetch_all(self) -> Result[None, GitError]: ...
    def fetch_branch(self, branch: str) -> Result[None, GitError]: ...
    def force_branch(self, branch: str, start_point: str) -> Result[None, GitError]: ...
    def gitflow_release_start(self, version: str) -> Result[None, GitError]: ...
    def gitflow_release_finish(self, version: str, tag_message: str) -> Result[None, GitError]: ...


class Repository:
    """Git operations on one working tree.

    Attributes:
        path: Path to the repository root
        remote: Remote used for pushes and remote tag lookups
    """

    def __init__(self, path: Path, remote: str = "origin") -> None:
        self.path = path
        self.remote = remote

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def current_branch(self) -> str | None:
        """Current branch name, None on detached HEAD or error."""
        result = self._run(["branch", "--show-current"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def is_clean(self) -> bool:
        """Check for a clean working tree (False if status cannot be determined)."""
        result = self._run(["status", "--porcelain"])
        match result:
            case Ok(stdout):
                return stdout.strip() == ""
            case Err(_):
                return False

    def remote_url(self, name: str | None = None) -> str | None:
        result = self._run(["remote", "get-url", name or self.remote])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def has_upstream(self, branch: str) -> bool:
        result = self._run(["rev-parse", "--abbrev-ref", f"{branch}@{{upstream}}"])
        return isinstance(result, Ok)

    def resolve_commit(self, ref: str) -> str | None:
        result = self._run(["rev-parse", "--verify", f"{ref}^{{commit}}"])
        match result:
            case Ok(stdout):
                return stdout.strip() or None
            case Err(_):
                return None

    def latest_tag(self) -> str | None:
        """Most recent tag reachable from HEAD, None when there is none.

        When several tags point at the same commit, the first one listed by
        ``git tag --points-at`` wins so the answer is stable.
        """
        result = self._run(["describe", "--tags", "--abbrev=0"])
        if isinstance(result, Err):
            return None
        described = result.value.strip()
        if not described:
            return None

        m = _DESCRIBE_SUFFIX.match(described)
        base = m.group(1) if m else described
        sha = self.resolve_commit(base) or self.resolve_commit(described)
        if sha is not None:
            at = self._run(["tag", "--list", "--points-at", sha])
            if isinstance(at, Ok):
                tags = [t.strip() for t in at.value.splitlines() if t.strip()]
                if tags:
                    return tags[0]
        return base

    def commits_since(self, ref: str | None) -> list[str]:
        """Subject lines of non-merge commits after ``ref`` (newest first).

        Falls back to the whole history when ``ref`` is None or unknown.
        """
        if ref is not None:
            rev = self.resolve_commit(ref) or ref
            result = self._run(["log", f"{rev}..HEAD", "--no-merges", "--format=%s"])
            if isinstance(result, Ok):
                return _subjects(result.value)

        result = self._run(["log", "--no-merges", "--format=%s"])
        match result:
            case Ok(stdout):
                return _subjects(stdout)
            case Err(_):
                return []

    def local_branches(self) -> list[str]:
        result = self._run(["branch", "--list", "--format=%(refname:short)"])
        match result:
            case Ok(stdout):
                return [b.strip() for b in stdout.splitlines() if b.strip()]
            case Err(_):
                return []

    def local_tags(self) -> list[str]:
        result = self._run(["tag", "--list"])
        match result:
            case Ok(stdout):
                return [t.strip() for t in stdout.splitlines() if t.strip()]
            case Err(_):
                return []

    def tag_exists_locally(self, name: str) -> bool:
        return name in self.local_tags()

    def tag_exists_remotely(self, name: str) -> bool:
        result = self._run(["ls-remote", "--tags", self.remote, f"refs/tags/{name}"])
        match result:
            case Ok(stdout):
                return f"refs/tags/{name}" in stdout
            case Err(_):
                return False

    def gitflow_available(self) -> bool:
        return isinstance(self._run(["flow", "version"]), Ok)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_all(self) -> Result[None, GitError]:
        return self._mutate(["add", "."], "add")

    def commit(self, message: str) -> Result[None, GitError]:
        return self._mutate(["commit", "-m", message], "commit")

    def checkout(self, branch: str) -> Result[None, GitError]:
        return self._mutate(["checkout", branch], "checkout")

    def create_annotated_tag(self, name: str, message: str) -> Result[None, GitError]:
        return self._mutate(["tag", "-a", name, "-m", message], "tag -a")

    def delete_local_tag(self, name: str) -> Result[None, GitError]:
        return self._mutate(["tag", "-d", name], "tag -d")

    def delete_remote_tag(self, name: str) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, f":refs/tags/{name}"], "push (delete tag)")

    def push_branch(self, name: str, extra_args: Sequence[str] = ()) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, name, *extra_args], "push")

    def push_tag(self, name: str, extra_args: Sequence[str] = ()) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, name, *extra_args], "push (tag)")

    def push_head(self, extra_args: Sequence[str] = ()) -> Result[None, GitError]:
        return self._mutate(["push", self.remote, "HEAD", *extra_args], "push HEAD")

    def pull_rebase(self, branch: str) -> Result[None, GitError]:
        return self._mutate(["pull", "--rebase", self.remote, branch], "pull --rebase")

    def fetch_all(self) -> Result[None, GitError]:
        return self._mutate(["fetch", "--all", "--prune"], "fetch --all")

    def fetch_branch(self, branch: str) -> Result[None, GitError]:
        return self._mutate(["fetch", self.remote, branch], "fetch")

    def force_branch(self, branch: str, start_point: str) -> Result[None, GitError]:
        return self._mutate(["branch", "--force", branch, start_point], "branch --force")

    def gitflow_release_start(self, version: str) -> Result[None, GitError]:
        return self._mutate(["flow", "release", "start", version], "flow release start")

    def gitflow_release_finish(self, version: str, tag_message: str) -> Result[None, GitError]:
        return self._mutate(
            ["flow", "release", "finish", "-m", tag_message, version],
            "flow release finish",
            env=_GITFLOW_ENV,
        )

    # ------------------------------------------------------------------

    def _mutate(
        self,
        args: list[str],
        command: str,
        env: Mapping[str, str] | None = None,
    ) -> Result[None, GitError]:
        result = self._run(args, env=env)
        match result:
            case Err(e):
                return Err(
                    GitError(
                        command=command,
                        message=e.stderr.strip() or e.stdout.strip() or f"git {command} failed",
                        returncode=e.returncode,
                    )
                )
            case Ok(_):
                return Ok(None)

    def _run(
        self,
        args: list[str],
        env: Mapping[str, str] | None = None,
    ) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(
            ["git", "-C", str(self.path), *args],
            cwd=self.path,
            env=env,
            timeout=timeout,
        )


def _subjects(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]
