"""Build configuration and the bundler selection gate.

Three things live here:

1. **BuildConfig / BuildArgs**: what the user asked for, as frozen values.
   User config files speak camelCase (``outputPath``); ``from_mapping``
   translates and keeps anything it doesn't recognize in ``extra``.

2. **resolve_bundler_kind**: turns the ``vite``/``mako`` flags into exactly
   one BundlerKind. Both flags at once is a ConfigurationError rather than
   a silent priority order.

3. **react_runtime**: automatic JSX runtime from React 17.0.0 onward,
   inclusive. Not 16.14.0, even though it shipped the new runtime: it breaks
   externals configs that don't map ``react/jsx-runtime``.
"""

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Self

from .errors import ConfigurationError

logger = logging.getLogger("tapline.config")

DEFAULT_OUTPUT_PATH = "dist"
TMP_DIR_NAME = ".tapline"
AUTOMATIC_RUNTIME_SINCE = (17, 0, 0)

_SEMVER_RE = re.compile(
    r"^[v=^~\s]*(?P<major>\d+)(?:\.(?P<minor>\d+))?(?:\.(?P<patch>\d+))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?(?:\+[0-9A-Za-z.-]+)?$"
)


class BundlerKind(Enum):
    """The one backend a build runs on."""

    WEBPACK = "webpack"
    VITE = "vite"
    MAKO = "mako"

    @property
    def self_reports_assets(self) -> bool:
        """Backends that print their own asset sizes."""
        return self is not BundlerKind.WEBPACK

    @property
    def injects_assets(self) -> bool:
        """Backends that inject js/css into HTML themselves."""
        return self is BundlerKind.VITE


_CONFIG_ALIASES = {
    "outputPath": "output_path",
    "publicPath": "public_path",
    "headScripts": "head_scripts",
}

_FLAG_FIELDS = ("vite", "mako", "mpa", "esm")


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Resolved user configuration for one build."""

    output_path: str | None = None
    public_path: str = "/"
    vite: bool = False
    mako: bool = False
    mpa: bool = False
    esm: bool = False
    compress: bool = True
    styles: tuple[Any, ...] = ()
    scripts: tuple[Any, ...] = ()
    head_scripts: tuple[Any, ...] = ()
    metas: tuple[Any, ...] = ()
    links: tuple[Any, ...] = ()
    title: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Self:
        """Build a config from a user config mapping (camelCase or snake_case keys)."""
        known = set(cls.__dataclass_fields__) - {"extra"}
        kwargs: dict[str, Any] = {}
        extra: dict[str, Any] = dict(data.get("extra", {}))
        for raw_key, value in data.items():
            if raw_key == "extra":
                continue
            key = _CONFIG_ALIASES.get(raw_key, raw_key)
            if key not in known:
                extra[raw_key] = value
            elif key in ("styles", "scripts", "head_scripts", "metas", "links"):
                kwargs[key] = tuple(value or ())
            elif key in _FLAG_FIELDS:
                # ``mpa: {}`` in user config means "enabled with defaults"
                kwargs[key] = value is not None and value is not False
            else:
                kwargs[key] = value
        return cls(**kwargs, extra=extra)

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Load a JSON config file. A missing file is the default config."""
        if not path.is_file():
            logger.debug("No config file at %s, using defaults", path)
            return cls()
        with path.open(encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        return cls.from_mapping(data)

    @property
    def resolved_output_path(self) -> str:
        return self.output_path or DEFAULT_OUTPUT_PATH


@dataclass(frozen=True, slots=True)
class BuildArgs:
    """Command-line arguments that reach the build."""

    clean: bool = True
    vite: bool = False


@dataclass(frozen=True, slots=True)
class Paths:
    """Absolute paths for one build."""

    cwd: Path
    abs_tmp_path: Path
    abs_output_path: Path

    @classmethod
    def for_project(cls, cwd: Path, config: BuildConfig) -> Self:
        cwd = cwd.resolve()
        return cls(
            cwd=cwd,
            abs_tmp_path=cwd / TMP_DIR_NAME,
            abs_output_path=(cwd / config.resolved_output_path).resolve(),
        )


@dataclass(frozen=True, slots=True)
class AppData:
    """What the build knows about the project before it starts."""

    cwd: Path
    pkg: Mapping[str, Any] = field(default_factory=dict)
    react_version: str | None = None
    tool_version: str = ""


def _read_json(path: Path) -> dict[str, Any]:
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def load_app_data(cwd: Path, tool_version: str = "") -> AppData:
    """Read package.json and the installed React version from ``cwd``."""
    pkg_path = cwd / "package.json"
    pkg = _read_json(pkg_path) if pkg_path.is_file() else {}

    react_version = None
    react_pkg = cwd / "node_modules" / "react" / "package.json"
    if react_pkg.is_file():
        react_version = _read_json(react_pkg).get("version")

    return AppData(cwd=cwd, pkg=pkg, react_version=react_version, tool_version=tool_version)


def resolve_bundler_kind(config: BuildConfig) -> BundlerKind:
    """Select exactly one backend from the config flags."""
    if config.vite and config.mako:
        raise ConfigurationError("`vite` and `mako` are mutually exclusive; enable only one")
    if config.vite:
        return BundlerKind.VITE
    if config.mako:
        return BundlerKind.MAKO
    return BundlerKind.WEBPACK


def _semver_key(version: str) -> tuple[tuple[int, int, int], tuple[Any, ...]] | None:
    match = _SEMVER_RE.match(version.strip())
    if match is None:
        return None
    core = (
        int(match["major"]),
        int(match["minor"] or 0),
        int(match["patch"] or 0),
    )
    pre = match["pre"]
    if pre is None:
        # a release sorts after all of its pre-releases
        return core, (1,)
    idents = tuple((0, int(p), "") if p.isdigit() else (1, 0, p) for p in pre.split("."))
    return core, (0, idents)


def version_gte(version: str, minimum: tuple[int, int, int]) -> bool:
    """``version >= minimum`` by semver precedence. Unparseable is False."""
    key = _semver_key(version)
    if key is None:
        return False
    return key >= (minimum, (1,))


def react_runtime(version: str | None) -> str:
    """JSX runtime for the detected React version."""
    if version and version_gte(version, AUTOMATIC_RUNTIME_SINCE):
        return "automatic"
    return "classic"
