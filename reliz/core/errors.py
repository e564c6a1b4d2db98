"""Error payloads and exit codes.

Release failures are described by a single frozen payload, ``ReleaseError``,
whose ``kind`` places it in one of five families:

- config: bad explicit config path (malformed files only warn)
- precondition: dirty tree, missing remote, forbidden branch, missing git-flow
- workflow: git command failure, push conflict after retry, git-flow finish
- extension: a hook command failed (plugin failures never become errors)
- publication: registry or hosted-provider failure, always downgraded to a warning
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Literal

__all__ = ["ErrorCode", "ErrorKind", "ReleaseError"]


ErrorKind = Literal["config", "precondition", "workflow", "extension", "publication"]


class ErrorCode(IntEnum):
    """Exit codes for the CLI.

    A cancelled confirmation and the info-only modes both exit OK.
    """

    OK = 0
    FAILURE = 1

    def __str__(self) -> str:
        return self.name.lower()


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload."""

    kind: ErrorKind
    message: str
    hint: str | None = None

    @property
    def is_fatal(self) -> bool:
        return self.kind != "publication"
