from __future__ import annotations

import ast

from ._utils import sources

ALLOWED = {"platform/process.py"}
SPAWNERS = {"run", "check_output", "check_call", "Popen", "call"}


def _subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        match node:
            case ast.Call(func=ast.Attribute(value=ast.Name(id="subprocess"), attr=attr)) if (
                attr in SPAWNERS
            ):
                lines.append(node.lineno)
            case _:
                pass
    return lines


def test_processes_are_spawned_only_by_the_process_module() -> None:
    offenders = [
        f"{source.where(line)}: direct subprocess call"
        for source in sources()
        if source.rel not in ALLOWED
        for line in _subprocess_calls(source.tree)
    ]
    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)
