"""Errors: fail fast, fail loud.

tapline has no retry layer and no partial-success mode. Every failure
bubbles to the top of the build, and the only thing the core adds on the
way up is context: which hook, which handler, which stage.

The taxonomy:

1. **HookHandlerError**: a registered handler raised. The dispatch is
   aborted at that handler and the original exception is chained.
2. **HookModeError / HookPermissionError**: a handler or a backend used the
   hook machinery in a way it didn't declare.
3. **RegistryFrozenError**: somebody tried to register after the plugin
   loading phase ended.
4. **ConfigurationError**: the configuration can't select a single backend.

Backend build failures and filesystem errors are deliberately *not*
wrapped. They propagate unchanged.
"""

from typing import Any


class TaplineError(Exception):
    """Base class for errors raised by tapline itself."""


class ConfigurationError(TaplineError):
    """Raised when the build configuration is contradictory."""


class RegistryFrozenError(TaplineError):
    """Raised when a handler is registered after the registry was frozen."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Cannot register a handler for '{key}': the hook registry is frozen")


class HookModeError(TaplineError):
    """Raised when a handler's declared mode disagrees with the dispatch mode."""

    def __init__(self, key: str, declared: Any, requested: Any) -> None:
        self.key = key
        self.declared = declared
        self.requested = requested
        super().__init__(
            f"Hook '{key}' was dispatched as {requested.name} "
            f"but a handler was registered as {declared.name}"
        )


class HookPermissionError(TaplineError):
    """Raised when a dispatch handle is asked for a key it does not expose."""

    def __init__(self, key: str, allowed: frozenset[str]) -> None:
        self.key = key
        self.allowed = allowed
        super().__init__(
            f"Hook '{key}' is not available through this handle "
            f"(allowed: {', '.join(sorted(allowed)) or 'none'})"
        )


class HookHandlerError(TaplineError):
    """Raised when a hook handler fails during a dispatch."""

    def __init__(
        self,
        key: str,
        index: int,
        handler: Any,
        error: Exception,
    ) -> None:
        """Initialize the handler error.

        Args:
            key: The hook key being dispatched.
            index: Position of the failing handler in registration order.
            handler: The registered HookHandler that failed.
            error: The exception the handler raised.
        """
        self.key = key
        self.index = index
        self.handler = handler
        self.error = error
        owner = f" (plugin '{handler.plugin}')" if getattr(handler, "plugin", None) else ""
        super().__init__(f"Hook '{key}' handler #{index}{owner} failed: {error}")

    def __repr__(self) -> str:
        """Return a summary showing key, handler position, and error type."""
        return (
            f"<HookHandlerError key='{self.key}' "
            f"index={self.index} "
            f"error={type(self.error).__name__}>"
        )
