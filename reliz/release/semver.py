"""Version arithmetic.

Versions are ``major.minor.patch`` with an optional fourth ``build`` component
(used by hotfix bumps) and an optional ``-<id>.<n>`` pre-release suffix.
A trailing ``+<metadata>`` is accepted and ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from functools import total_ordering
from typing import Literal

__all__ = [
    "SuggestedBump",
    "Version",
    "next_version",
    "parse_version",
    "suggest_bump",
]


SuggestedBump = Literal["major", "minor", "patch"]

_VERSION_RE = re.compile(
    r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?"
    r"(?:-([0-9A-Za-z-]+?)(?:\.(\d+))?)?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)

_BREAKING_RE = re.compile(r"^(\w+)(\([^)]*\))?!:?\s|BREAKING CHANGE:", re.IGNORECASE)
_FEAT_RE = re.compile(r"^feat(\([^)]*\))?!?:\s", re.IGNORECASE)
_FIX_RE = re.compile(r"^fix(\([^)]*\))?!?:\s", re.IGNORECASE)


@total_ordering
@dataclass(frozen=True, slots=True)
class Version:
    """A parsed version.

    A pre-release sorts below the release with the same numbers.
    """

    major: int
    minor: int
    patch: int
    build: int | None = None
    pre: tuple[str, int] | None = None

    def _key(self) -> tuple[int, int, int, int, tuple[int, str, int]]:
        pre_key = (1, "", 0) if self.pre is None else (0, self.pre[0], self.pre[1])
        return (self.major, self.minor, self.patch, self.build or 0, pre_key)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.build is not None:
            text += f".{self.build}"
        if self.pre is not None:
            text += f"-{self.pre[0]}.{self.pre[1]}"
        return text


def parse_version(text: str) -> Version | None:
    m = _VERSION_RE.match(text.strip())
    if not m:
        return None
    major, minor, patch, build, pre_id, pre_num = m.groups()
    pre = None
    if pre_id is not None:
        pre = (pre_id.lower(), int(pre_num) if pre_num is not None else 0)
    return Version(
        major=int(major),
        minor=int(minor or 0),
        patch=int(patch or 0),
        build=int(build) if build is not None else None,
        pre=pre,
    )


def _without_metadata(version: str) -> str:
    return version.strip().split("+", 1)[0]


def _numeric_parts(current: str) -> list[int]:
    core = _without_metadata(current).lstrip("v").split("-", 1)[0]
    parts: list[int] = []
    for token in core.split("."):
        parts.append(int(token) if token.isdigit() else 0)
    return parts


def next_version(current: str, bump: str = "patch", preid: str | None = None) -> str:
    """Compute the version that follows ``current``.

    ``hotfix`` (alias ``build``) bumps the fourth component, starting at 1 for
    a three-part version. Unknown bump kinds behave like ``patch``.

    With ``preid``, a current version already ending in ``-<preid>.<n>``
    keeps its base and moves to ``n + 1``; otherwise ``-<preid>.0`` is
    appended to the bumped base.

    Examples:
        >>> next_version("1.2.3", "hotfix")
        '1.2.3.1'
        >>> next_version("1.2.4-beta.0", "patch", "beta")
        '1.2.4-beta.1'
    """
    parts = _numeric_parts(current)
    padded = parts + [0] * (4 - len(parts))
    major, minor, patch, build = padded[:4]

    match bump:
        case "major":
            base = f"{major + 1}.0.0"
        case "minor":
            base = f"{major}.{minor + 1}.0"
        case "hotfix" | "build":
            next_build = 1 if len(parts) == 3 else build + 1
            base = f"{major}.{minor}.{patch}.{next_build}"
        case _:
            base = f"{major}.{minor}.{patch + 1}"

    pre = (preid or "").strip().lower()
    if not pre:
        return base

    m = re.match(rf"^(.+)-{re.escape(pre)}\.(\d+)$", _without_metadata(current), re.IGNORECASE)
    if m:
        return f"{m.group(1)}-{pre}.{int(m.group(2)) + 1}"
    return f"{base}-{pre}.0"


def suggest_bump(subjects: Iterable[str]) -> SuggestedBump | None:
    """Suggest a bump from conventional commit subjects.

    Any breaking change anywhere wins over any feature, which wins over any
    fix. Returns None when nothing qualifies.
    """
    breaking = feat = fix = False
    for subject in subjects:
        first_line = subject.split("\n", 1)[0]
        if _BREAKING_RE.search(first_line) or "BREAKING CHANGE:" in subject:
            breaking = True
        elif _FEAT_RE.match(first_line):
            feat = True
        elif _FIX_RE.match(first_line):
            fix = True

    if breaking:
        return "major"
    if feat:
        return "minor"
    if fix:
        return "patch"
    return None
