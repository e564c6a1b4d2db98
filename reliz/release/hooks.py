"""Shell hooks.

Hooks are command templates from the project config, e.g.::

    "hooks": {"afterRelease": ["echo released ${version} to ${releaseUrl}"]}

``${name}`` placeholders are filled from the release context's scalar
variables. Values are substituted verbatim and the result goes to the
system shell, so hook templates must come from trusted configuration.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from typing import TYPE_CHECKING

from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result
from reliz.platform.process import ProcessError
from reliz.platform.process import run_shell as _run_shell

if TYPE_CHECKING:
    from reliz.output.console import ConsoleProtocol
    from reliz.release.model import ReleaseContext

__all__ = ["interpolate", "run_hooks"]

_PLACEHOLDER_RE = re.compile(r"\$\{(\w+)\}")

# Module-level so tests can monkeypatch it.
run_shell: Callable[..., Result[str, ProcessError]] = _run_shell


def interpolate(template: str, variables: Mapping[str, object]) -> str:
    """Replace ``${name}`` with scalar values; anything else is left as-is."""

    def _sub(m: re.Match[str]) -> str:
        value = variables.get(m.group(1))
        if value is None or not isinstance(value, str | int | float | bool):
            return m.group(0)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    return _PLACEHOLDER_RE.sub(_sub, template)


def run_hooks(
    commands: Iterable[str] | str | None,
    context: ReleaseContext,
    *,
    console: ConsoleProtocol,
    dry_run: bool | None = None,
    runner: Callable[..., Result[str, ProcessError]] | None = None,
) -> Result[None, ReleaseError]:
    """Run hook commands one after another.

    Stops at the first failing command. In dry-run mode every command is
    logged and nothing is executed.
    """
    if commands is None:
        return Ok(None)
    items = [commands] if isinstance(commands, str) else list(commands)
    dry = context.dry_run if dry_run is None else dry_run
    variables = context.variables()

    for template in items:
        line = interpolate(template, variables)
        if dry:
            console.print(f"[dry-run] Would run: {line}")
            continue
        console.debug(f"hook: {line}")
        result = (runner or run_shell)(line, context.cwd)
        if isinstance(result, Err):
            return Err(
                ReleaseError(
                    kind="extension",
                    message=f"Hook failed: {line}. {result.error.detail}",
                )
            )
    return Ok(None)
