"""package.json reader/writer."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from reliz.core.errors import ReleaseError
from reliz.core.result import Err, Ok, Result
from reliz.core.structured import StrDict, as_str_dict, get_str

__all__ = ["MANIFEST_FILENAME", "Manifest", "read_manifest", "write_version"]

MANIFEST_FILENAME = "package.json"


@dataclass(frozen=True, slots=True)
class Manifest:
    version: str
    name: str


def _load(path: Path) -> Result[StrDict, ReleaseError]:
    if not path.is_file():
        return Err(
            ReleaseError(
                kind="precondition",
                message=f"{MANIFEST_FILENAME} not found in {path.parent}",
                hint="run reliz from the project root",
            )
        )
    try:
        data: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        return Err(ReleaseError(kind="precondition", message=f"cannot read {path}: {e}"))
    pkg = as_str_dict(data)
    if pkg is None:
        return Err(ReleaseError(kind="precondition", message=f"{path} is not a JSON object"))
    return Ok(pkg)


def read_manifest(directory: Path) -> Result[Manifest, ReleaseError]:
    """Read version and name; missing fields default to ``0.0.0`` and ``project``."""
    result = _load(directory / MANIFEST_FILENAME)
    if isinstance(result, Err):
        return result
    pkg = result.value
    return Ok(Manifest(version=get_str(pkg, "version") or "0.0.0", name=get_str(pkg, "name") or "project"))


def write_version(directory: Path, version: str) -> Result[None, ReleaseError]:
    """Set ``version`` and rewrite the file with two-space indentation.

    Key order and every other field are preserved.
    """
    path = directory / MANIFEST_FILENAME
    result = _load(path)
    if isinstance(result, Err):
        return result
    pkg = result.value
    pkg["version"] = version
    try:
        path.write_text(json.dumps(pkg, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    except OSError as e:
        return Err(ReleaseError(kind="workflow", message=f"cannot write {path}: {e}"))
    return Ok(None)
