"""tapline: hook-driven production build pipeline.

The public API is small:

    from tapline import BuildPipeline, HookRegistry

Register handlers on a registry, hand it to a pipeline with a bundler
backend, run it. Everything else is available if you need it.
"""

__version__ = "0.1.0"

from .assets import HtmlFile, MarkupArgs, get_assets_map, merge_markup_args
from .bundler import BabelOptions, BuildOptions, Bundler
from .config import (
    AppData,
    BuildArgs,
    BuildConfig,
    BundlerKind,
    load_app_data,
    react_runtime,
    resolve_bundler_kind,
)
from .dispatch import DispatchHandle, HookDispatcher
from .errors import (
    ConfigurationError,
    HookHandlerError,
    HookModeError,
    HookPermissionError,
    RegistryFrozenError,
    TaplineError,
)
from .hooks import ApplyMode, HookHandler, HookInvocation, HookRegistry
from .logging import configure_logging
from .pipeline import BuildPipeline, BuildResult
from .plugins import PluginAPI, load_plugins
from .stage import BuildStage, build_stage

__all__ = [
    "AppData",
    "ApplyMode",
    "BabelOptions",
    "BuildArgs",
    "BuildConfig",
    "BuildOptions",
    "BuildPipeline",
    "BuildResult",
    "BuildStage",
    "Bundler",
    "BundlerKind",
    "ConfigurationError",
    "DispatchHandle",
    "HookDispatcher",
    "HookHandler",
    "HookHandlerError",
    "HookInvocation",
    "HookModeError",
    "HookPermissionError",
    "HookRegistry",
    "HtmlFile",
    "MarkupArgs",
    "PluginAPI",
    "RegistryFrozenError",
    "TaplineError",
    "build_stage",
    "configure_logging",
    "get_assets_map",
    "load_app_data",
    "load_plugins",
    "merge_markup_args",
    "react_runtime",
    "resolve_bundler_kind",
]
