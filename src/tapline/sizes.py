"""File sizes after gzip.

Take a snapshot of the output directory before the backend overwrites it,
then print every js/css asset after the build with its gzipped size and
how much it moved:

    48.21 kB (+1.02 kB)  dist/umi.3f2a9c01.js
     1.88 kB             dist/umi.3f2a9c01.css

Only the webpack backend needs this. vite and mako print their own.
"""

import gzip
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeAlias

from .assets import chunk_files
from .logging import log_event

logger = logging.getLogger("tapline.sizes")

MEASURED_SUFFIXES = (".js", ".css")

# umi.3f2a9c01.js and umi.7be01d44.js are the same asset across builds
_HASH_RE = re.compile(r"\.[0-9a-f]{8,}(?=\.(?:js|css)$)")

SizeSnapshot: TypeAlias = dict[str, int]


def _canonical_name(relpath: str) -> str:
    return _HASH_RE.sub("", relpath)


def _gzip_size(path: Path) -> int:
    return len(gzip.compress(path.read_bytes()))


def _iter_assets(folder: Path) -> list[Path]:
    if not folder.is_dir():
        return []
    return sorted(
        p for p in folder.rglob("*") if p.is_file() and p.suffix in MEASURED_SUFFIXES
    )


def measure_file_sizes(folder: Path) -> SizeSnapshot:
    """Gzipped size of every js/css file under ``folder``, keyed by hash-less name."""
    return {
        _canonical_name(p.relative_to(folder).as_posix()): _gzip_size(p)
        for p in _iter_assets(folder)
    }


def _format_size(size: int) -> str:
    return f"{size / 1024:.2f} kB"


def _format_diff(current: int, previous: int | None) -> str:
    if previous is None or previous == current:
        return ""
    delta = current - previous
    sign = "+" if delta > 0 else "-"
    return f"({sign}{_format_size(abs(delta))})"


@dataclass(frozen=True, slots=True)
class AssetSize:
    path: str
    size: int
    previous: int | None

    def __str__(self) -> str:
        diff = _format_diff(self.size, self.previous)
        return f"{_format_size(self.size):>10} {diff:<14} {self.path}"


def _emitted_assets(stats: Any, build_folder: Path) -> list[Path]:
    names = {
        name
        for files in chunk_files(stats).values()
        for name in ([files] if isinstance(files, str) else files)
        if name.endswith(MEASURED_SUFFIXES)
    }
    paths = sorted(p for p in (build_folder / name for name in names) if p.is_file())
    # stats without asset names (or a foreign shape): list the folder instead
    return paths or _iter_assets(build_folder)


def print_file_sizes(stats: Any, previous: SizeSnapshot, build_folder: Path) -> list[AssetSize]:
    """Log gzipped sizes of the assets this build emitted, largest first."""
    rows = []
    for path in _emitted_assets(stats, build_folder):
        rel = path.relative_to(build_folder).as_posix()
        rows.append(
            AssetSize(
                path=f"{build_folder.name}/{rel}",
                size=_gzip_size(path),
                previous=previous.get(_canonical_name(rel)),
            )
        )
    rows.sort(key=lambda row: row.size, reverse=True)

    log_event(logger, "File sizes after gzip:\n")
    for row in rows:
        logger.info("  %s", row)
    return rows


class FileSizeReporter:
    """The measure/report pair the pipeline calls around the build."""

    def measure(self, folder: Path) -> SizeSnapshot:
        return measure_file_sizes(folder)

    def report(self, stats: Any, previous: SizeSnapshot, build_folder: Path) -> list[AssetSize]:
        return print_file_sizes(stats, previous, build_folder)
