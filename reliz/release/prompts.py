"""Interactive prompts.

``PromptService`` is what the pipeline asks; ``TyperPrompts`` answers it on
the terminal. Every method short-circuits to its default when the run is
non-interactive, so CI never blocks on stdin.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import typer

from reliz.output.console import ConsoleProtocol, Style

__all__ = [
    "BUMP_OPTIONS",
    "BumpOption",
    "PromptService",
    "ReleaseSummary",
    "TyperPrompts",
    "default_bump_index",
    "summary_lines",
]

SUMMARY_COMMIT_LIMIT = 10


@dataclass(frozen=True, slots=True)
class BumpOption:
    value: str
    label: str
    desc: str


BUMP_OPTIONS: tuple[BumpOption, ...] = (
    BumpOption("patch", "patch (1.2.3 -> 1.2.4)", "Bugfixes, small changes"),
    BumpOption("minor", "minor (1.2.3 -> 1.3.0)", "New feature, backward compatible"),
    BumpOption("major", "major (1.2.3 -> 2.0.0)", "Breaking changes"),
    BumpOption("hotfix", "hotfix (1.2.3 -> 1.2.3.1)", "Quick fix / build segment"),
    BumpOption("prerelease", "pre-release (alpha/beta/rc)", "Prerelease version"),
)


@dataclass(frozen=True, slots=True)
class ReleaseSummary:
    project_name: str
    version: str
    date_str: str
    commits: tuple[str, ...]


def default_bump_index(suggested: str | None) -> int:
    """1-based menu index of the suggested bump (patch when there is none)."""
    for i, option in enumerate(BUMP_OPTIONS, start=1):
        if option.value == suggested:
            return i
    return 1


def summary_lines(summary: ReleaseSummary) -> list[str]:
    commits = summary.commits
    lines = [
        f"Project: {summary.project_name}",
        f"Version: {summary.version}",
        f"Date: {summary.date_str}",
        f"Commits ({len(commits)}):",
    ]
    lines += [f"  - {c}" for c in commits[:SUMMARY_COMMIT_LIMIT]]
    if len(commits) > SUMMARY_COMMIT_LIMIT:
        lines.append(f"  ... and {len(commits) - SUMMARY_COMMIT_LIMIT} more")
    return lines


class PromptService(Protocol):
    def choose_bump(
        self,
        current: str,
        suggested: str | None,
        default: str,
        non_interactive: bool,
    ) -> str:
        """Pick a bump kind, or ``prerelease``."""
        ...

    def choose_preid(self, non_interactive: bool) -> str | None: ...

    def confirm(self, summary: ReleaseSummary, non_interactive: bool, auto_yes: bool) -> bool: ...


class TyperPrompts:
    def __init__(self, console: ConsoleProtocol) -> None:
        self.console = console

    def choose_bump(
        self,
        current: str,
        suggested: str | None,
        default: str,
        non_interactive: bool,
    ) -> str:
        if non_interactive:
            return default

        self.console.print(f"Current version: {current}")
        self.console.print("Select bump type:")
        for i, option in enumerate(BUMP_OPTIONS, start=1):
            self.console.print(f"{i}. {option.label} - {option.desc}", Style.DIM)

        default_idx = default_bump_index(suggested)
        raw = typer.prompt(f"[1-{len(BUMP_OPTIONS)}]", default=str(default_idx))
        return _pick(raw, BUMP_OPTIONS, fallback=suggested or default)

    def choose_preid(self, non_interactive: bool) -> str | None:
        if non_interactive:
            return None
        raw = typer.prompt("Pre-release id (e.g. alpha, beta, rc) or leave empty", default="")
        return raw.strip() or None

    def confirm(self, summary: ReleaseSummary, non_interactive: bool, auto_yes: bool) -> bool:
        if non_interactive or auto_yes:
            return True
        for line in summary_lines(summary):
            self.console.print(line)
        self.console.newline()
        return typer.confirm("Proceed with release?", default=True)


def _pick(raw: str, options: Sequence[BumpOption], *, fallback: str) -> str:
    try:
        idx = int(raw.strip())
    except ValueError:
        return fallback
    if 1 <= idx <= len(options):
        return options[idx - 1].value
    return fallback
