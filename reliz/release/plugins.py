"""Code plugins.

A plugin is a Python module (dotted name) or file (``./tools/notify.py``)
listed under ``plugins`` in the project config. It provides callbacks by
defining functions named after lifecycle phases, either at module level or on
a module attribute called ``plugin``::

    # tools/notify.py
    name = "notify"

    def after_release(context):
        print("released", context.next_version)

    async def release(context):
        await post_to_chat(context.release_url)

Plugins are best-effort: load failures and callback exceptions become
warnings and never stop a release. Only the ``release`` phase may return an
awaitable; it is awaited before the next plugin runs.
"""

from __future__ import annotations

import asyncio
import importlib
import importlib.util
import inspect
import sys
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import ModuleType
from typing import TYPE_CHECKING

from reliz.output.errors import warn_failed

if TYPE_CHECKING:
    from reliz.output.console import ConsoleProtocol
    from reliz.release.model import ReleaseContext

__all__ = [
    "LifecyclePhase",
    "Plugin",
    "PluginLoadError",
    "load_plugins",
    "run_plugins",
    "run_plugins_async",
    "run_release_phase",
]


class LifecyclePhase(Enum):
    """Named extension points, in pipeline order."""

    INIT = "init"
    BEFORE_RELEASE = "before_release"
    AFTER_GIT_RELEASE = "after_git_release"
    AFTER_BUMP = "after_bump"
    RELEASE = "release"
    AFTER_RELEASE = "after_release"

    def __str__(self) -> str:
        return self.value

    @property
    def is_async(self) -> bool:
        return self is LifecyclePhase.RELEASE


type Callback = Callable[[ReleaseContext], object]


def _no_callbacks() -> dict[LifecyclePhase, Callback]:
    return {}


@dataclass(frozen=True, slots=True)
class Plugin:
    """A loaded plugin and the phases it implements."""

    name: str
    callbacks: Mapping[LifecyclePhase, Callback] = field(default_factory=_no_callbacks)

    @property
    def capabilities(self) -> frozenset[LifecyclePhase]:
        return frozenset(self.callbacks)

    def implements(self, phase: LifecyclePhase) -> bool:
        return phase in self.callbacks

    @classmethod
    def from_object(cls, source: object, default_name: str) -> Plugin:
        """Collect phase callbacks from a module or plugin object."""
        callbacks: dict[LifecyclePhase, Callback] = {}
        for phase in LifecyclePhase:
            fn = getattr(source, phase.value, None)
            if callable(fn):
                callbacks[phase] = fn
        name = getattr(source, "name", None)
        return cls(name=name if isinstance(name, str) and name else default_name, callbacks=callbacks)


class PluginLoadError(Exception):
    pass


def _is_file_ref(ref: str) -> bool:
    return ref.endswith(".py") or "/" in ref or "\\" in ref


def _import_file(path: Path) -> ModuleType:
    if not path.is_file():
        raise PluginLoadError(f"file not found: {path}")
    module_name = f"reliz_plugin_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise PluginLoadError(f"cannot import {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        sys.modules.pop(module_name, None)
        raise
    return module


def load_plugin(cwd: Path, ref: str) -> Plugin:
    """Import one plugin reference. Raises on failure."""
    if _is_file_ref(ref):
        path = Path(ref)
        module = _import_file(path if path.is_absolute() else cwd / path)
    else:
        module = importlib.import_module(ref)
    source: object = getattr(module, "plugin", None) or module
    return Plugin.from_object(source, default_name=ref)


def load_plugins(cwd: Path, refs: Iterable[str], console: ConsoleProtocol) -> list[Plugin]:
    """Load every configured plugin once, skipping (with a warning) those that fail."""
    plugins: list[Plugin] = []
    for ref in refs:
        if not ref.strip():
            continue
        try:
            plugin = load_plugin(cwd, ref.strip())
        except Exception as e:  # third-party code: any import-time error
            warn_failed(f'Plugin "{ref}" load', str(e), console)
            continue
        console.debug(
            f"plugin {plugin.name}: {', '.join(sorted(p.value for p in plugin.capabilities)) or '-'}"
        )
        plugins.append(plugin)
    return plugins


def run_plugins(
    plugins: Sequence[Plugin],
    phase: LifecyclePhase,
    context: ReleaseContext,
    console: ConsoleProtocol,
) -> None:
    """Call ``phase`` on every plugin implementing it, in registration order."""
    for plugin in plugins:
        fn = plugin.callbacks.get(phase)
        if fn is None:
            continue
        try:
            result = fn(context)
        except Exception as e:  # third-party code
            warn_failed(f"Plugin {plugin.name} {phase}", str(e), console)
            continue
        if inspect.iscoroutine(result):
            result.close()
            warn_failed(
                f"Plugin {plugin.name} {phase}",
                "returned a coroutine; only the release phase may be async",
                console,
            )


async def run_plugins_async(
    plugins: Sequence[Plugin],
    context: ReleaseContext,
    console: ConsoleProtocol,
) -> None:
    """Run the ``release`` phase, awaiting each plugin's result in turn."""
    phase = LifecyclePhase.RELEASE
    for plugin in plugins:
        fn = plugin.callbacks.get(phase)
        if fn is None:
            continue
        try:
            result = fn(context)
            if inspect.isawaitable(result):
                await _as_awaitable(result)
        except Exception as e:  # third-party code
            warn_failed(f"Plugin {plugin.name} {phase}", str(e), console)


async def _as_awaitable(value: Awaitable[object]) -> object:
    return await value


def run_release_phase(
    plugins: Sequence[Plugin],
    context: ReleaseContext,
    console: ConsoleProtocol,
) -> None:
    """Synchronous entry point for the async ``release`` phase."""
    if not any(p.implements(LifecyclePhase.RELEASE) for p in plugins):
        return
    asyncio.run(run_plugins_async(plugins, context, console))
