"""Output abstraction layer."""

from .console import (
    ConsoleProtocol,
    MockConsole,
    OutputRecord,
    RichConsole,
    Style,
)
from .errors import print_release_error, release_error_exit_code, warn_failed

__all__ = [
    "ConsoleProtocol",
    "MockConsole",
    "OutputRecord",
    "RichConsole",
    "Style",
    "print_release_error",
    "release_error_exit_code",
    "warn_failed",
]
