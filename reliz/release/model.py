"""Release context: the single record threaded through one release run.

The pipeline creates one ``ReleaseContext`` and hands the same object to every
step. Steps may fill in fields that are still unset and append to
``commits``; they may not replace a value another step already decided.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from reliz.core.config import Config
from reliz.core.options import InvocationOptions

__all__ = ["ContextFieldError", "ReleaseContext", "Scalar"]


type Scalar = str | int | float | bool


class ContextFieldError(AttributeError):
    """Raised when a step tries to overwrite an already decided context field."""


def _empty_commits() -> list[str]:
    return []


@dataclass(slots=True, eq=False)
class ReleaseContext:
    """Mutable state for one release invocation.

    A field is "set" once it holds something other than None. Set fields keep
    their value for the rest of the run: assigning the same value again is a
    no-op, assigning anything else raises ``ContextFieldError``.
    """

    cwd: Path
    config: Config
    options: InvocationOptions
    dry_run: bool = False
    project_name: str | None = None
    current_branch: str | None = None
    current_version: str | None = None
    latest_tag: str | None = None
    next_version: str | None = None
    bump: str | None = None
    pre_id: str | None = None
    commits: list[str] = field(default_factory=_empty_commits)
    date_str: str | None = None
    changelog: str | None = None
    release_notes: str | None = None
    tag_name: str | None = None
    release_branch: str | None = None
    workflow: str | None = None
    release_url: str | None = None

    def __setattr__(self, name: str, value: object) -> None:
        current = getattr(self, name, None)
        if current is not None and current is not value and current != value:
            raise ContextFieldError(f"release context field {name!r} is already set")
        object.__setattr__(self, name, value)

    @property
    def is_ci(self) -> bool:
        return self.options.ci

    def variables(self) -> dict[str, Scalar]:
        """Scalar values available to hook and template interpolation.

        Unset fields are left out so their placeholders stay visible.
        """
        candidates: dict[str, Scalar | None] = {
            "version": self.next_version,
            "newVersion": self.next_version,
            "currentVersion": self.current_version,
            "latestVersion": self.current_version,
            "latestTag": self.latest_tag,
            "name": self.project_name,
            "projectName": self.project_name,
            "branchName": self.current_branch,
            "currentBranch": self.current_branch,
            "tagName": self.tag_name,
            "bump": self.bump,
            "preId": self.pre_id,
            "dateStr": self.date_str,
            "date": self.date_str,
            "changelog": self.changelog,
            "changelogText": self.changelog,
            "releaseNotes": self.release_notes,
            "releaseBranch": self.release_branch,
            "releaseUrl": self.release_url,
            "cwd": str(self.cwd),
            "dryRun": self.dry_run,
            "isCi": self.is_ci,
        }
        return {k: v for k, v in candidates.items() if v is not None}
