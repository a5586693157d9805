"""Hook registry: where plugins plug in.

A hook key names an extension point ("onGenerateFiles", "modifyWebpackConfig").
Any number of plugins can register handlers under the same key, and the
registry remembers them in the exact order they arrived. That order is the
execution order, forever. Nothing here ever re-sorts.

Handlers come in three shapes, one per application mode:

    MODIFY   (acc, args) -> acc        a reduction chain
    EVENT    (args) -> None            side effects only
    COLLECT  (items, args) -> items    a reduction over a list

Handlers can be plain functions or coroutine functions. The dispatcher
figures out which at call time.

The registry has two phases. During plugin loading it accepts registrations.
Once a build starts it is frozen and becomes read-only for the rest of
the run.
"""

import logging
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable, TypeAlias

from .errors import RegistryFrozenError

logger = logging.getLogger("tapline.hooks")

HookKey: TypeAlias = str


class ApplyMode(Enum):
    """How the handlers of one dispatch are applied."""

    MODIFY = "modify"
    EVENT = "event"
    COLLECT = "collect"


@runtime_checkable
class ModifyHandler(Protocol):
    def __call__(self, acc: Any, args: Any, /) -> Any | Awaitable[Any]: ...


@runtime_checkable
class EventHandler(Protocol):
    def __call__(self, args: Any, /) -> None | Awaitable[None]: ...


@runtime_checkable
class CollectHandler(Protocol):
    def __call__(self, items: list[Any], args: Any, /) -> Any | Awaitable[Any]: ...


HandlerFunc: TypeAlias = ModifyHandler | EventHandler | CollectHandler | Callable[..., Any]


@dataclass(frozen=True, slots=True)
class HookHandler:
    """A handler bound to a hook key.

    ``mode=None`` accepts whatever mode the key is dispatched with.
    ``plugin`` labels the owner for logs and error messages.
    """

    key: HookKey
    fn: HandlerFunc
    mode: ApplyMode | None = None
    plugin: str | None = None

    @property
    def name(self) -> str:
        return getattr(self.fn, "__qualname__", None) or repr(self.fn)

    def __repr__(self) -> str:
        mode = self.mode.name if self.mode else "ANY"
        owner = f" plugin='{self.plugin}'" if self.plugin else ""
        return f"<HookHandler '{self.key}' {self.name} mode={mode}{owner}>"


@dataclass(frozen=True, slots=True)
class HookInvocation:
    """One dispatch request. Created per call, never retained."""

    key: HookKey
    mode: ApplyMode
    initial_value: Any = None
    args: Any = None


def infer_mode(key: HookKey) -> ApplyMode:
    """Default application mode for a key, from its naming convention.

    ``modify*`` keys reduce, ``add*`` keys collect, everything else
    (``on*``, ``before*``...) is an event.
    """
    if key.startswith("modify"):
        return ApplyMode.MODIFY
    if key.startswith("add"):
        return ApplyMode.COLLECT
    return ApplyMode.EVENT


class HookRegistry:
    """Ordered handler storage, keyed by hook key.

    Not thread-safe. Registration must finish before the first dispatch,
    which is what ``freeze()`` enforces.

    Usage:
        registry = HookRegistry()
        registry.register("modifyEntry", add_admin_entry, plugin="admin")
        registry.freeze()
        registry.handlers_for("modifyEntry")
    """

    def __init__(self) -> None:
        self._handlers: dict[HookKey, list[HookHandler]] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(
        self,
        key: HookKey,
        fn: HandlerFunc,
        mode: ApplyMode | None = None,
        plugin: str | None = None,
    ) -> HookHandler:
        """Append a handler for ``key``. Duplicates are kept and all run."""
        if self._frozen:
            raise RegistryFrozenError(key)
        if not callable(fn):
            raise TypeError(f"Hook handler for '{key}' must be callable, got {type(fn).__name__}")
        handler = HookHandler(key=key, fn=fn, mode=mode, plugin=plugin)
        self._handlers.setdefault(key, []).append(handler)
        logger.debug("Registered %r", handler)
        return handler

    def handlers_for(self, key: HookKey) -> tuple[HookHandler, ...]:
        """Handlers for ``key`` in registration order. Empty if none."""
        return tuple(self._handlers.get(key, ()))

    def freeze(self) -> None:
        """End the registration phase. Idempotent."""
        if not self._frozen:
            logger.debug(
                "Hook registry frozen with %d handlers across %d keys",
                len(self),
                len(self._handlers),
            )
        self._frozen = True

    def keys(self) -> list[HookKey]:
        return list(self._handlers)

    def __contains__(self, key: object) -> bool:
        return bool(self._handlers.get(key)) if isinstance(key, str) else False

    def __bool__(self) -> bool:
        # truthy even with no handlers
        return True

    def __len__(self) -> int:
        return sum(len(handlers) for handlers in self._handlers.values())

    def __iter__(self) -> Iterator[HookHandler]:
        for handlers in self._handlers.values():
            yield from handlers
