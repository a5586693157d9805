"""Filesystem access used by the build.

The pipeline only does three things to disk: wipe the temp directory,
create directories, and write UTF-8 text. They go through this object so
tests (and dry runs) can swap it out.
"""

import logging
import shutil
from pathlib import Path

logger = logging.getLogger("tapline.fs")


class LocalFileSystem:
    def remove_tree(self, path: Path) -> None:
        """Recursively delete ``path``. A missing path is fine."""
        if path.exists():
            logger.debug("Removing %s", path)
            shutil.rmtree(path)

    def write_text(self, path: Path, content: str) -> None:
        """Write ``content`` to ``path``, creating parent directories first."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
