"""Invocation options parsed from the command line.

The parser is deliberately forgiving: unknown tokens are collected rather than
rejected, so wrappers can pass extra arguments through without breaking a
release.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal, cast

__all__ = [
    "BUMP_KINDS",
    "BumpKind",
    "InvocationOptions",
    "is_bump_kind",
    "parse_argv",
]


BumpKind = Literal["patch", "minor", "major", "hotfix", "build"]

# Kinds accepted from argv and the environment; "build" is an internal alias of hotfix.
BUMP_KINDS: tuple[BumpKind, ...] = ("patch", "minor", "major", "hotfix")


def is_bump_kind(value: str | None) -> bool:
    return value in BUMP_KINDS


@dataclass(frozen=True, slots=True)
class InvocationOptions:
    """Flags for one invocation.

    ``parse_argv`` fills these from argv alone; the config resolver then
    produces the effective copy with environment and file toggles applied.

    Attributes:
        bump: Requested bump kind, None to prompt or fall back.
        ci: Non-interactive mode.
        dry_run: Compute and log decisions only.
        no_git_flow: Force the linear workflow.
        yes: Skip the confirmation prompt.
        config_path: Explicit ``--config`` path (must exist).
        preid: Pre-release identifier (alpha, beta, rc, ...).
        no_increment: Release the current version as-is.
        release_version: Print the next version and exit.
        only_version: Only the version is asked for; confirmation is implied.
        changelog: Print the changelog fragment and exit.
        verbose: Show debug output.
        ignored: Tokens that were not understood.
    """

    bump: BumpKind | None = None
    ci: bool = False
    dry_run: bool = False
    no_git_flow: bool = False
    yes: bool = False
    config_path: str | None = None
    preid: str | None = None
    no_increment: bool = False
    release_version: bool = False
    only_version: bool = False
    changelog: bool = False
    verbose: bool = False
    ignored: tuple[str, ...] = ()

    @property
    def info_only(self) -> bool:
        """True when the run prints a single value and stops."""
        return self.release_version or self.changelog


_FLAGS: dict[str, str] = {
    "--ci": "ci",
    "--dry-run": "dry_run",
    "--no-git-flow": "no_git_flow",
    "--yes": "yes",
    "-y": "yes",
    "--no-increment": "no_increment",
    "--release-version": "release_version",
    "--only-version": "only_version",
    "--changelog": "changelog",
    "--verbose": "verbose",
    "-V": "verbose",
}


def parse_argv(argv: Sequence[str]) -> InvocationOptions:
    """Parse the CLI surface.

    Supports a positional bump kind, boolean flags, ``--config <path>``,
    ``--bump=<kind>`` and ``--preid=<id>``.
    """
    flags: dict[str, bool] = {}
    bump: BumpKind | None = None
    config_path: str | None = None
    preid: str | None = None
    ignored: list[str] = []

    args = list(argv)
    i = 0
    while i < len(args):
        a = args[i]
        if a in _FLAGS:
            flags[_FLAGS[a]] = True
        elif a == "--config" and i + 1 < len(args):
            i += 1
            config_path = args[i]
        elif a.startswith("--config="):
            config_path = a.split("=", 1)[1] or None
        elif a.startswith("--bump="):
            value = a.split("=", 1)[1]
            if is_bump_kind(value):
                bump = cast(BumpKind, value)
            else:
                ignored.append(a)
        elif a.startswith("--preid="):
            preid = a.split("=", 1)[1].strip() or None
        elif not a.startswith("-") and is_bump_kind(a):
            bump = cast(BumpKind, a)
        else:
            ignored.append(a)
        i += 1

    return InvocationOptions(
        bump=bump,
        config_path=config_path,
        preid=preid,
        ignored=tuple(ignored),
        **flags,
    )
