"""Hook dispatcher: applyPlugins.

Given a key and a mode, run every registered handler for that key, one at
a time, in registration order.

- MODIFY folds an accumulator through the chain and returns the last value.
  No handlers means the initial value comes back untouched.
- EVENT calls each handler for its side effects and returns None.
- COLLECT is MODIFY over a list. Each handler gets its own copy of the
  list and returns the next one.

Every handler is awaited before the next one starts, so a handler that
suspends (filesystem, network) never lets a later handler overtake it.
There is no timeout. A hung handler hangs the build.

The first handler that raises aborts the dispatch. Later handlers don't run
and the caller gets a HookHandlerError chained to the original exception.
"""

import inspect
import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from .errors import HookHandlerError, HookModeError, HookPermissionError
from .hooks import ApplyMode, HookHandler, HookInvocation, HookKey, HookRegistry, infer_mode

logger = logging.getLogger("tapline.dispatch")


async def _call(handler: HookHandler, *call_args: Any) -> Any:
    result = handler.fn(*call_args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _mode_accepts(declared: ApplyMode | None, requested: ApplyMode) -> bool:
    # COLLECT is MODIFY over a list, so a `modify*` handler declared MODIFY
    # also serves a COLLECT dispatch of its key
    if declared is None or declared is requested:
        return True
    return declared is ApplyMode.MODIFY and requested is ApplyMode.COLLECT


def _freeze_args(args: Any) -> Any:
    if isinstance(args, dict):
        return MappingProxyType(args)
    return args


class HookDispatcher:
    """Executes hook invocations against a registry."""

    def __init__(self, registry: HookRegistry) -> None:
        self.registry = registry

    async def apply(self, invocation: HookInvocation) -> Any:
        """Run the handlers registered for ``invocation.key``."""
        handlers = self.registry.handlers_for(invocation.key)
        for handler in handlers:
            if not _mode_accepts(handler.mode, invocation.mode):
                raise HookModeError(invocation.key, handler.mode, invocation.mode)

        args = _freeze_args(invocation.args)
        logger.debug(
            "Applying '%s' (%s) with %d handlers",
            invocation.key,
            invocation.mode.name,
            len(handlers),
        )

        match invocation.mode:
            case ApplyMode.MODIFY:
                return await self._modify(invocation.key, handlers, invocation.initial_value, args)
            case ApplyMode.COLLECT:
                return await self._collect(invocation.key, handlers, invocation.initial_value, args)
            case ApplyMode.EVENT:
                await self._event(invocation.key, handlers, args)
                return None

    async def apply_plugins(
        self,
        key: HookKey,
        mode: ApplyMode | None = None,
        initial_value: Any = None,
        args: Any = None,
    ) -> Any:
        """Keyword form of :meth:`apply`. The mode defaults from the key name."""
        return await self.apply(
            HookInvocation(
                key=key,
                mode=mode or infer_mode(key),
                initial_value=initial_value,
                args=args,
            )
        )

    async def _modify(
        self,
        key: HookKey,
        handlers: tuple[HookHandler, ...],
        initial_value: Any,
        args: Any,
    ) -> Any:
        acc = initial_value
        for index, handler in enumerate(handlers):
            try:
                acc = await _call(handler, acc, args)
            except Exception as e:
                raise HookHandlerError(key, index, handler, e) from e
        return acc

    async def _collect(
        self,
        key: HookKey,
        handlers: tuple[HookHandler, ...],
        initial_value: Iterable[Any] | None,
        args: Any,
    ) -> list[Any]:
        items = list(initial_value or ())
        for index, handler in enumerate(handlers):
            try:
                result = await _call(handler, list(items), args)
                items = list(result)
            except Exception as e:
                raise HookHandlerError(key, index, handler, e) from e
        return items

    async def _event(
        self,
        key: HookKey,
        handlers: tuple[HookHandler, ...],
        args: Any,
    ) -> None:
        for index, handler in enumerate(handlers):
            try:
                await _call(handler, args)
            except Exception as e:
                raise HookHandlerError(key, index, handler, e) from e


class DispatchHandle:
    """A narrow view of the dispatcher handed to bundler backends.

    Backends call back into the hook system while they build (to let
    plugins edit the webpack or vite config), but they only get the keys
    they are entitled to. Everything else raises HookPermissionError.
    """

    def __init__(self, dispatcher: HookDispatcher, allowed_keys: Iterable[HookKey]) -> None:
        self._dispatcher = dispatcher
        self.allowed_keys = frozenset(allowed_keys)

    async def modify(self, key: HookKey, memo: Any, args: Mapping[str, Any] | None = None) -> Any:
        """Run a MODIFY dispatch for one of the allowed keys."""
        if key not in self.allowed_keys:
            raise HookPermissionError(key, self.allowed_keys)
        return await self._dispatcher.apply(
            HookInvocation(key=key, mode=ApplyMode.MODIFY, initial_value=memo, args=args or {})
        )

    def closure(self, key: HookKey):
        """Bind ``key`` into an ``async (memo, args) -> memo`` callable."""
        if key not in self.allowed_keys:
            raise HookPermissionError(key, self.allowed_keys)

        async def _apply(memo: Any, args: Mapping[str, Any] | None = None) -> Any:
            return await self.modify(key, memo, args)

        _apply.__name__ = _apply.__qualname__ = key
        return _apply

    def __repr__(self) -> str:
        return f"<DispatchHandle keys={sorted(self.allowed_keys)}>"
