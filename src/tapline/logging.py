"""Build logging.

A build talks to whoever started it in short prefixed lines:

    event - tapline 0.1.0 building with webpack
    info  - [compose] React 18.2.0 -> automatic runtime
    event - Build index.html

``event`` is its own level (between INFO and WARNING) for the handful of
lines a user actually waits for: the banner, each HTML file written, the
size report. Everything else is ordinary INFO/DEBUG.

Under CI, ``configure_logging(structured=True)`` switches to JSON lines
carrying the build and stage names. Nothing here touches the root logger;
only the ``tapline`` tree is configured, and only when the CLI asks.
"""

import json
import logging
import sys
from collections.abc import MutableMapping
from typing import IO, Any

EVENT = 25
logging.addLevelName(EVENT, "EVENT")

_PREFIXES = {
    logging.DEBUG: ("debug", "\033[90m"),
    logging.INFO: ("info", "\033[36m"),
    EVENT: ("event", "\033[35m"),
    logging.WARNING: ("warn", "\033[33m"),
    logging.ERROR: ("error", "\033[31m"),
    logging.CRITICAL: ("fatal", "\033[31m"),
}
_RESET = "\033[0m"


def _prefix(levelno: int) -> tuple[str, str]:
    for threshold in sorted(_PREFIXES, reverse=True):
        if levelno >= threshold:
            return _PREFIXES[threshold]
    return _PREFIXES[logging.DEBUG]


class BuildFormatter(logging.Formatter):
    """``event - message`` lines, optionally colored, with the stage in brackets."""

    def __init__(self, color: bool = True) -> None:
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        tag, color = _prefix(record.levelno)
        tag = f"{tag:<5}"
        if self.color:
            tag = f"{color}{tag}{_RESET}"

        stage = getattr(record, "stage", None)
        message = record.getMessage()
        if stage:
            message = f"[{stage}] {message}"

        line = f"{tag} - {message}"
        if record.exc_info and record.exc_info[1]:
            error = record.exc_info[1]
            line += f"\n        {type(error).__name__}: {error}"
        return line


class JsonLinesFormatter(logging.Formatter):
    """One JSON object per record, for CI log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": _prefix(record.levelno)[0],
            "msg": record.getMessage(),
        }
        for key in ("build", "stage"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        if record.exc_info and record.exc_info[1]:
            entry["error"] = f"{type(record.exc_info[1]).__name__}: {record.exc_info[1]}"
        return json.dumps(entry)


class BuildLogger(logging.LoggerAdapter[logging.Logger]):
    """Adapter carrying the build name and, inside a stage, the stage name."""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs

    def event(self, msg: str, *args: Any) -> None:
        self.log(EVENT, msg, *args)

    def for_stage(self, stage_name: str) -> "BuildLogger":
        return BuildLogger(self.logger, {**(self.extra or {}), "stage": stage_name})


def log_event(logger: logging.Logger | BuildLogger, msg: str, *args: Any) -> None:
    """Emit ``msg`` at the EVENT level on a plain logger or a BuildLogger."""
    logger.log(EVENT, msg, *args)


def configure_logging(
    level: int = logging.INFO,
    structured: bool = False,
    stream: IO[str] | None = None,
) -> None:
    """Attach a single handler to the ``tapline`` logger tree.

    Args:
        level: Lowest level shown. EVENT lines show at the default INFO.
        structured: JSON lines instead of prefixed text.
        stream: Where to write. Defaults to stderr; colors only on a TTY.
    """
    stream = stream or sys.stderr
    handler = logging.StreamHandler(stream)
    if structured:
        handler.setFormatter(JsonLinesFormatter())
    else:
        handler.setFormatter(BuildFormatter(color=getattr(stream, "isatty", lambda: False)()))

    tree = logging.getLogger("tapline")
    tree.handlers.clear()
    tree.addHandler(handler)
    tree.setLevel(level)
    tree.propagate = False


def get_logger(build_name: str) -> BuildLogger:
    return BuildLogger(logging.getLogger(f"tapline.build.{build_name}"), {"build": build_name})
