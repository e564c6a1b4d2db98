from __future__ import annotations

from ._utils import is_within, sources

# Each layer may import only the layers listed before it.
LAYERS: dict[str, tuple[str, ...]] = {
    "core": ("reliz.platform", "reliz.git", "reliz.output", "reliz.release", "reliz.cli"),
    "platform": ("reliz.release", "reliz.cli"),
    "git": ("reliz.release", "reliz.cli"),
    "output": ("reliz.release", "reliz.cli"),
    "release": ("reliz.cli",),
}


def _violations(package: str) -> list[str]:
    forbidden = LAYERS[package]
    return [
        f"{source.where(ref.line)}: forbidden import '{ref.module}'"
        for source in sources(package)
        for ref in source.imports()
        if any(is_within(ref.module, prefix) for prefix in forbidden)
    ]


def test_core_depends_on_nothing_above_it() -> None:
    offenders = _violations("core")
    assert not offenders, "core layering violations:\n" + "\n".join(offenders)


def test_adapters_do_not_import_release_or_cli() -> None:
    offenders = _violations("platform") + _violations("git") + _violations("output")
    assert not offenders, "adapter layering violations:\n" + "\n".join(offenders)


def test_release_does_not_import_cli() -> None:
    offenders = _violations("release")
    assert not offenders, "release -> cli dependency violations:\n" + "\n".join(offenders)
