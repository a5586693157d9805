"""Asset map, markup arguments, and HTML persistence.

After the backend finishes, the HTML stage needs to know which js/css files
the entry produced. ``get_assets_map`` reads that from the stats object:

    {"umi": ["umi.3f2a.js", "umi.3f2a.css"]}   ->
    {"umi.js": ["/umi.3f2a.js"], "umi.css": ["/umi.3f2a.css"]}

Then ``merge_markup_args`` folds those URLs into the user's markup args.
The ordering is deliberate and asymmetric:

    styles  = user styles ++ bundle css    (bundle css wins the cascade)
    scripts = bundle js ++ user scripts    (the app boots before extras)

vite injects its own tags, so its asset lists are always empty.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from .config import BuildConfig, BundlerKind
from .dispatch import HookDispatcher
from .fs import LocalFileSystem
from .hooks import ApplyMode
from .logging import log_event

logger = logging.getLogger("tapline.assets")

ENTRY_NAME = "umi"


@dataclass(frozen=True, slots=True)
class HtmlFile:
    """One HTML document to write, relative to the output directory."""

    path: str
    content: str

    @classmethod
    def coerce(cls, item: Any) -> "HtmlFile":
        """Accept an HtmlFile or a {path, content} mapping from a plugin."""
        if isinstance(item, cls):
            return item
        if isinstance(item, Mapping):
            return cls(path=str(item["path"]), content=str(item["content"]))
        raise TypeError(f"Expected an HtmlFile or a mapping, got {type(item).__name__}")


@dataclass(frozen=True, slots=True)
class MarkupArgs:
    styles: tuple[Any, ...] = ()
    scripts: tuple[Any, ...] = ()
    head_scripts: tuple[Any, ...] = ()
    metas: tuple[Any, ...] = ()
    links: tuple[Any, ...] = ()
    title: str | None = None
    esm_script: bool = False
    path: str = "/"


def chunk_files(stats: Any) -> Mapping[str, Any]:
    """Emitted file names per chunk, from a stats mapping or a stats object."""
    if stats is None:
        return {}
    if isinstance(stats, Mapping):
        return stats.get("assetsByChunkName") or {}
    to_json = getattr(stats, "to_json", None)
    if callable(to_json):
        return to_json().get("assetsByChunkName") or {}
    return getattr(stats, "assets_by_chunk_name", None) or {}


def get_assets_map(stats: Any, public_path: str = "/") -> dict[str, list[str]]:
    """Group each chunk's emitted js and css files into public URLs."""
    prefix = public_path if public_path.endswith("/") else f"{public_path}/"
    assets: dict[str, list[str]] = {}
    for chunk, files in chunk_files(stats).items():
        if isinstance(files, str):
            files = [files]
        for file in files:
            for ext in ("js", "css"):
                if file.endswith(f".{ext}"):
                    assets.setdefault(f"{chunk}.{ext}", []).append(f"{prefix}{file}")
    return assets


async def get_markup_args(dispatcher: HookDispatcher, config: BuildConfig) -> MarkupArgs:
    """Seed markup args from config and let plugins add to each list."""

    async def _collect(key: str, seed: Iterable[Any]) -> tuple[Any, ...]:
        items = await dispatcher.apply_plugins(key, ApplyMode.COLLECT, initial_value=list(seed))
        return tuple(items)

    title = await dispatcher.apply_plugins(
        "modifyHTMLTitle", ApplyMode.MODIFY, initial_value=config.title
    )
    return MarkupArgs(
        styles=await _collect("addHTMLStyles", config.styles),
        scripts=await _collect("addHTMLScripts", config.scripts),
        head_scripts=await _collect("addHTMLHeadScripts", config.head_scripts),
        metas=await _collect("addHTMLMetas", config.metas),
        links=await _collect("addHTMLLinks", config.links),
        title=title,
    )


def merge_markup_args(
    args: MarkupArgs,
    assets_map: Mapping[str, list[str]],
    kind: BundlerKind,
    esm_script: bool,
) -> MarkupArgs:
    """Fold bundle assets into the markup args for the root document."""
    if kind.injects_assets:
        bundle_styles: list[dict[str, str]] = []
        bundle_scripts: list[dict[str, str]] = []
    else:
        bundle_styles = [{"href": url} for url in assets_map.get(f"{ENTRY_NAME}.css", [])]
        bundle_scripts = [{"src": url} for url in assets_map.get(f"{ENTRY_NAME}.js", [])]
    return replace(
        args,
        styles=(*args.styles, *bundle_styles),
        scripts=(*bundle_scripts, *args.scripts),
        esm_script=esm_script,
        path="/",
    )


def write_html_files(
    files: Iterable[HtmlFile],
    output_dir: Path,
    fs: LocalFileSystem | None = None,
) -> list[HtmlFile]:
    """Write each document under ``output_dir``, creating parents as needed.

    Files already written stay on disk if a later one fails.
    """
    fs = fs or LocalFileSystem()
    written = []
    for html in files:
        fs.write_text((output_dir / html.path).resolve(), html.content)
        log_event(logger, "Build %s", html.path)
        written.append(html)
    return written
