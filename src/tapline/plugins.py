"""Plugin loading.

A plugin is a callable that receives a PluginAPI and registers hooks (and,
for backend plugins, a bundler):

    def my_plugin(api: PluginAPI) -> None:
        api.register("modifyEntry", lambda entry, _: {**entry, "admin": "src/admin.ts"})
        api.register_bundler(BundlerKind.WEBPACK, WebpackBundler())

Plugins are named on the command line as ``"package.module:attr"``.
Loading happens once, before the build, and in the order given. That order
becomes the handler order for every hook key the plugins share.
"""

import importlib
import logging
import re
from collections.abc import Callable, Iterable, MutableMapping
from typing import Any, TypeAlias

from .bundler import Bundler
from .config import BundlerKind
from .errors import ConfigurationError
from .hooks import ApplyMode, HandlerFunc, HookHandler, HookKey, HookRegistry

logger = logging.getLogger("tapline.plugins")

_PLUGIN_SPEC_RE = re.compile(
    r"^[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*:[A-Za-z_][A-Za-z0-9_]*$"
)

Plugin: TypeAlias = Callable[["PluginAPI"], Any]


class PluginAPI:
    """What a plugin can touch while it loads."""

    def __init__(
        self,
        registry: HookRegistry,
        bundlers: MutableMapping[BundlerKind, Bundler],
        plugin_id: str,
    ) -> None:
        self._registry = registry
        self._bundlers = bundlers
        self.plugin_id = plugin_id

    def register(
        self,
        key: HookKey,
        fn: HandlerFunc,
        mode: ApplyMode | None = None,
    ) -> HookHandler:
        """Register a hook handler owned by this plugin."""
        return self._registry.register(key, fn, mode=mode, plugin=self.plugin_id)

    def register_bundler(self, kind: BundlerKind, bundler: Bundler) -> None:
        """Provide the backend for ``kind``. A later plugin replaces an earlier one."""
        if kind in self._bundlers:
            logger.warning(
                "Plugin '%s' replaces the %s bundler", self.plugin_id, kind.value
            )
        self._bundlers[kind] = bundler


def resolve_plugin(spec: str) -> Plugin:
    """Import ``"module:attr"`` and return the plugin callable."""
    if not _PLUGIN_SPEC_RE.match(spec):
        raise ConfigurationError(f"Invalid plugin spec '{spec}', expected 'package.module:attr'")
    module_name, attr = spec.split(":", 1)
    module = importlib.import_module(module_name)
    plugin = getattr(module, attr, None)
    if not callable(plugin):
        raise ConfigurationError(f"Plugin '{spec}' is not callable")
    return plugin


def load_plugins(
    specs: Iterable[str | Plugin],
    registry: HookRegistry,
    bundlers: MutableMapping[BundlerKind, Bundler],
) -> list[str]:
    """Load plugins in order. Returns the ids of the loaded plugins."""
    loaded = []
    for spec in specs:
        if isinstance(spec, str):
            plugin, plugin_id = resolve_plugin(spec), spec
        else:
            plugin, plugin_id = spec, getattr(spec, "__qualname__", repr(spec))
        before = len(registry)
        plugin(PluginAPI(registry, bundlers, plugin_id))
        logger.debug(
            "Loaded plugin '%s' (%d handlers)", plugin_id, len(registry) - before
        )
        loaded.append(plugin_id)
    return loaded
