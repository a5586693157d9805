"""tapline command line.

Commands:
- build: build the app for production
"""

import asyncio
import logging
import os
from dataclasses import replace
from pathlib import Path

import typer

from . import __version__
from .bundler import Bundler
from .config import BuildArgs, BuildConfig, BundlerKind, load_app_data
from .hooks import HookRegistry
from .logging import configure_logging
from .pipeline import BuildPipeline
from .plugins import load_plugins

CONFIG_FILE = "tapline.json"

app = typer.Typer(
    help="Hook-driven production builds.",
    no_args_is_help=True,
)


@app.callback()
def main() -> None:
    """tapline: build pipeline driven by plugin hooks."""


@app.command("build")
def build_command(
    plugins: list[str] = typer.Option(
        [],
        "--plugin",
        "-p",
        help="Plugin to load, as 'package.module:attr'. Repeatable; order matters.",
    ),
    cwd: Path = typer.Option(
        Path("."),
        "--cwd",
        help="Project root (where package.json and tapline.json live)",
    ),
    clean: bool = typer.Option(
        True,
        "--clean/--no-clean",
        help="Remove the temp directory before building",
    ),
    vite: bool = typer.Option(
        False,
        "--vite",
        help="Emit ESM script tags (vite dev flag)",
    ),
    structured_logs: bool = typer.Option(
        False,
        "--structured-logs",
        help="Log JSON lines instead of human-readable output",
    ),
    log_level: str = typer.Option("INFO", "--log-level", help="Logging level"),
) -> None:
    """Build the app for production.

    Examples:
        tapline build -p my_plugins:webpack     # build with a webpack backend plugin
        COMPRESS=none tapline build -p ...      # build without compression
        tapline build --clean -p ...            # clean temp files and build
    """
    configure_logging(
        level=getattr(logging, log_level.upper(), logging.INFO),
        structured=structured_logs,
    )
    log = logging.getLogger("tapline.cli")

    root = cwd.resolve()
    try:
        config = BuildConfig.from_file(root / CONFIG_FILE)
        if os.environ.get("COMPRESS") == "none":
            config = replace(config, compress=False)

        registry = HookRegistry()
        bundlers: dict[BundlerKind, Bundler] = {}
        load_plugins(plugins, registry, bundlers)

        pipeline = BuildPipeline(
            registry,
            bundlers,
            app_data=load_app_data(root, tool_version=__version__),
            config=config,
            args=BuildArgs(clean=clean, vite=vite),
        )
        asyncio.run(pipeline.run())
    except Exception as e:
        log.error("Build failed: %s", e, exc_info=log.isEnabledFor(logging.DEBUG))
        raise typer.Exit(code=1) from e

