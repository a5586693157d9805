"""Bundler backends and the options handed to them.

tapline doesn't compile anything. A backend (webpack, vite, mako) does, and
it only sees one thing from us: a BuildOptions value.

BuildOptions is frozen. Plugins that want to change it return a new one
from a ``modifyUniBundlerOpts`` handler, usually via ``dataclasses.replace``.
Nothing downstream ever sees an options object that didn't come out of a
dispatch.

The option shape depends on the backend:

    webpack, mako   babel_preset + chain_webpack + modify_webpack_config
    vite            modify_vite_config

The ``chain_webpack`` / ``modify_*_config`` fields are closures over a
DispatchHandle. When the backend calls them, they re-enter the hook system,
but only for their own key.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable, TypeAlias

import psutil

from .config import BuildConfig, BundlerKind
from .dispatch import DispatchHandle, HookDispatcher
from .hooks import ApplyMode

logger = logging.getLogger("tapline.bundler")

ConfigClosure: TypeAlias = Callable[[Any, Mapping[str, Any] | None], Awaitable[Any]]

WEBPACK_HOOK_KEYS = ("chainWebpack", "modifyWebpackConfig")
VITE_HOOK_KEYS = ("modifyViteConfig",)

BABEL_PRESET = "@umijs/babel-preset-umi"


@runtime_checkable
class Bundler(Protocol):
    """What a backend must provide.

    ``build`` runs for as long as the compilation takes and returns an
    opaque stats object. tapline only reads it in ``get_assets_map`` and
    the size reporter.
    """

    DEFAULT_OUTPUT_PATH: str

    async def build(self, opts: "BuildOptions") -> Any: ...


@dataclass(frozen=True, slots=True)
class BabelOptions:
    preset: tuple[str, Mapping[str, Any]]
    before_plugins: tuple[Any, ...] = ()
    before_presets: tuple[Any, ...] = ()
    extra_plugins: tuple[Any, ...] = ()
    extra_presets: tuple[Any, ...] = ()


@dataclass(frozen=True, slots=True)
class BuildOptions:
    """The options value threaded through the compose stage into the backend.

    Fields that don't apply to the selected backend are None.
    """

    react_runtime: str
    config: BuildConfig
    cwd: str
    entry: Mapping[str, str]
    bundler_kind: BundlerKind
    babel_preset: tuple[str, Mapping[str, Any]] | None = None
    chain_webpack: ConfigClosure | None = None
    modify_webpack_config: ConfigClosure | None = None
    modify_vite_config: ConfigClosure | None = None
    before_babel_plugins: tuple[Any, ...] = ()
    before_babel_presets: tuple[Any, ...] = ()
    extra_babel_plugins: tuple[Any, ...] = ()
    extra_babel_presets: tuple[Any, ...] = ()
    on_build_complete: Callable[[Any], Awaitable[None]] | None = None
    clean: bool = True
    html_files: tuple[Any, ...] = field(default=())

    def as_args(self) -> dict[str, Any]:
        """Flatten into a plain dict for event payloads."""
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


async def get_babel_opts(dispatcher: HookDispatcher) -> BabelOptions:
    """Collect the babel preset options and the plugin/preset lists from hooks."""
    preset_opts = await dispatcher.apply_plugins(
        "modifyBabelPresetOpts",
        ApplyMode.MODIFY,
        initial_value={"presetEnv": {}, "presetReact": {}, "presetTypeScript": {}},
    )

    async def _collect(key: str) -> tuple[Any, ...]:
        return tuple(await dispatcher.apply_plugins(key, ApplyMode.COLLECT, initial_value=[]))

    return BabelOptions(
        preset=(BABEL_PRESET, preset_opts),
        before_plugins=await _collect("addBeforeBabelPlugins"),
        before_presets=await _collect("addBeforeBabelPresets"),
        extra_plugins=await _collect("addExtraBabelPlugins"),
        extra_presets=await _collect("addExtraBabelPresets"),
    )


def log_memory_usage() -> None:
    """Log the resident and virtual memory of this process."""
    info = psutil.Process().memory_info()
    logger.info(
        "Memory Usage: %.2f MB (RSS: %.2f MB)",
        info.vms / 1024 / 1024,
        info.rss / 1024 / 1024,
    )


def compose_build_options(
    *,
    dispatcher: HookDispatcher,
    kind: BundlerKind,
    config: BuildConfig,
    cwd: str,
    entry: Mapping[str, str],
    react_runtime: str,
    babel: BabelOptions,
) -> BuildOptions:
    """Assemble the initial BuildOptions for the selected backend."""

    async def on_build_complete(result: Any) -> None:
        log_memory_usage()
        await dispatcher.apply_plugins("onBuildComplete", ApplyMode.EVENT, args=result)

    backend_fields: dict[str, Any]
    if kind is BundlerKind.VITE:
        handle = DispatchHandle(dispatcher, VITE_HOOK_KEYS)
        backend_fields = {"modify_vite_config": handle.closure("modifyViteConfig")}
    else:
        handle = DispatchHandle(dispatcher, WEBPACK_HOOK_KEYS)
        backend_fields = {
            "babel_preset": babel.preset,
            "chain_webpack": handle.closure("chainWebpack"),
            "modify_webpack_config": handle.closure("modifyWebpackConfig"),
        }

    return BuildOptions(
        react_runtime=react_runtime,
        config=config,
        cwd=cwd,
        entry=dict(entry),
        bundler_kind=kind,
        before_babel_plugins=babel.before_plugins,
        before_babel_presets=babel.before_presets,
        extra_babel_plugins=babel.extra_plugins,
        extra_babel_presets=babel.extra_presets,
        on_build_complete=on_build_complete,
        clean=True,
        **backend_fields,
    )
