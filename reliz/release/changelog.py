"""Changelog assembly.

Commit subjects become a Markdown fragment (flat list, or one section per
conventional type), which is rendered into an entry and prepended to the
changelog file. A configured ``changelog.command`` replaces the built-in
formatting entirely; its trimmed stdout is used verbatim.
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

import jdatetime

from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result
from reliz.platform.process import ProcessError
from reliz.platform.process import run_shell as _run_shell
from reliz.release.hooks import interpolate
from reliz.release.model import ReleaseContext

__all__ = [
    "DEFAULT_ENTRY_TEMPLATE",
    "GROUP_HEADERS",
    "ConventionalCommit",
    "changelog_text",
    "format_commits",
    "format_date",
    "parse_conventional",
    "prepend_entry",
    "release_notes_body",
    "render_entry",
]

DEFAULT_ENTRY_TEMPLATE = "## **[${version}] - ${date}**\n${commits}\n\n"

GROUP_HEADERS: dict[str, str] = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "docs": "Documentation",
    "style": "Styles",
    "refactor": "Code Refactoring",
    "perf": "Performance",
    "test": "Tests",
    "chore": "Chores",
    "ci": "CI",
}

_CONVENTIONAL_RE = re.compile(r"^(\w+)(?:\(([^)]+)\))?:\s*(.+)$")

type ShellRunner = Callable[..., Result[str, ProcessError]]

# Module-level so tests can monkeypatch it.
run_shell: ShellRunner = _run_shell


@dataclass(frozen=True, slots=True)
class ConventionalCommit:
    type: str
    scope: str | None
    message: str


def parse_conventional(line: str) -> ConventionalCommit | None:
    """Classify ``type(scope): message``; None for free-form subjects."""
    m = _CONVENTIONAL_RE.match(line)
    if not m:
        return None
    return ConventionalCommit(type=m.group(1).lower(), scope=m.group(2), message=m.group(3).strip())


def _bullets(lines: Iterable[str]) -> str:
    return "\n".join(f"- {line}" for line in lines)


def format_commits(
    subjects: Iterable[str],
    include_types: Iterable[str] | None = None,
    group_by_type: bool = False,
) -> str:
    """Format commit subjects as a Markdown fragment.

    ``include_types`` drops conventional commits of other types; free-form
    subjects are always kept. Grouped output lists types in first-seen order,
    with free-form subjects under "Other".
    """
    allowed = {t.lower() for t in include_types} if include_types else None
    kept: list[tuple[str, str]] = []
    for line in subjects:
        parsed = parse_conventional(line)
        if allowed is not None and parsed is not None and parsed.type not in allowed:
            continue
        kept.append((parsed.type if parsed else "other", line))

    if not group_by_type:
        return _bullets(line for _, line in kept)

    groups: dict[str, list[str]] = {}
    for kind, line in kept:
        groups.setdefault(kind, []).append(line)

    sections = []
    for kind, lines in groups.items():
        header = GROUP_HEADERS.get(kind) or kind[:1].upper() + kind[1:]
        sections.append(f"### {header}\n\n{_bullets(lines)}")
    return "\n\n".join(sections)


def _command_variables(context: ReleaseContext, version: str | None) -> dict[str, str]:
    return {
        "from": context.latest_tag or "",
        "to": "HEAD",
        "version": version or "",
        "latestVersion": context.current_version or "",
    }


def _run_command(
    template: str,
    context: ReleaseContext,
    version: str | None,
    runner: ShellRunner | None,
) -> Result[str, ReleaseError]:
    command = interpolate(template, _command_variables(context, version))
    result = (runner or run_shell)(command, context.cwd, capture=True)
    match result:
        case Ok(stdout):
            return Ok(stdout.strip())
        case Err(e):
            return Err(
                ReleaseError(kind="workflow", message=f"Changelog command failed: {command}. {e.detail}")
            )


def changelog_text(
    context: ReleaseContext,
    runner: ShellRunner | None = None,
) -> Result[str, ReleaseError]:
    """Changelog fragment for this release.

    Uses ``changelog.command`` when configured, the built-in formatter otherwise.
    """
    settings = context.config.changelog
    version = context.next_version or context.current_version
    if settings.command:
        return _run_command(settings.command, context, version, runner)
    return Ok(format_commits(context.commits, settings.include_types, settings.group_by_type))


def release_notes_body(
    context: ReleaseContext,
    runner: ShellRunner | None = None,
) -> Result[str, ReleaseError]:
    """Body for hosted-provider release records.

    ``changelog.releaseNotesCommand`` wins when configured; if it prints
    nothing, a plain list of the commits is used instead.
    """
    settings = context.config.changelog
    version = context.next_version or context.current_version or ""
    heading = f"## {version} - {context.date_str or ''}\n\n"

    if settings.release_notes_command:
        result = _run_command(settings.release_notes_command, context, version, runner)
        if isinstance(result, Err):
            return result
        return Ok(result.value or heading + _bullets(context.commits))

    lines = format_commits(context.commits, settings.include_types, settings.group_by_type)
    return Ok(heading + lines)


def render_entry(template: str | None, version: str, date: str, commits: str) -> str:
    values: Mapping[str, str] = {"version": version, "date": date, "commits": commits}
    return interpolate(template or DEFAULT_ENTRY_TEMPLATE, values)


def prepend_entry(path: Path, entry: str) -> None:
    """Write ``entry`` above the existing changelog content (creating the file)."""
    existing = path.read_text(encoding="utf-8") if path.exists() else ""
    path.write_text(entry + existing, encoding="utf-8")


def format_date(day: dt.date, locale: str = "fa-IR") -> str:
    """Format a release date.

    ``fa*`` locales use the Persian calendar as ``YYYY/MM/DD``; anything else
    is Gregorian ``MM/DD/YYYY``. Digits are always ASCII.
    """
    if locale.lower().startswith("fa"):
        return jdatetime.date.fromgregorian(date=day).strftime("%Y/%m/%d")
    return day.strftime("%m/%d/%Y")
