"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from reliz.core.errors import ErrorCode, ReleaseError
from reliz.output.console import Style

if TYPE_CHECKING:
    from reliz.output.console import ConsoleProtocol

__all__ = ["print_release_error", "release_error_exit_code", "warn_failed"]


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    """Print a fatal error as one ``Error:`` line, plus a dimmed hint if any."""
    console.error(error.message)
    if error.hint:
        console.print(f"hint: {error.hint}", Style.DIM)


def warn_failed(what: str, error: ReleaseError | str, console: ConsoleProtocol) -> None:
    """Report a non-fatal failure and carry on."""
    message = error.message if isinstance(error, ReleaseError) else error
    console.warning(f"{what} failed: {message}")


def release_error_exit_code(error: ReleaseError) -> int:
    """Publication problems are reported but do not fail the run."""
    return int(ErrorCode.FAILURE if error.is_fatal else ErrorCode.OK)
