"""Scratch space for the temporary files of one render.

The stripped base, the template copy, the per-sheet intermediates and the
staged output all live in one private directory that is removed when the
scope ends, whether the render succeeded or not.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)


class ScratchSpace:
    """Caller-owned scratch directory with scoped release.

    Usage:
        with ScratchSpace() as scratch:
            base = scratch.path("excel-template.xlsx")
            ...
        # directory and everything in it is gone here

    Args:
        root: Parent directory for the scratch directory. Defaults to the
            system temp directory.
        prefix: Prefix of the created directory name.
    """

    def __init__(self, root: str | Path | None = None, prefix: str = "excel-render-"):
        self.root = Path(root) if root is not None else None
        self.prefix = prefix
        self._directory: Path | None = None

    @property
    def directory(self) -> Path:
        if self._directory is None:
            raise RuntimeError("ScratchSpace is not open")
        return self._directory

    @property
    def is_open(self) -> bool:
        return self._directory is not None

    def open(self) -> "ScratchSpace":
        if self._directory is None:
            if self.root is not None:
                self.root.mkdir(parents=True, exist_ok=True)
            self._directory = Path(tempfile.mkdtemp(prefix=self.prefix, dir=self.root))
            logger.debug("Opened scratch directory %s", self._directory)
        return self

    def path(self, name: str) -> Path:
        """Path for a scratch file called ``name`` (not created)."""
        return self.directory / name

    def close(self) -> None:
        if self._directory is None:
            return
        directory, self._directory = self._directory, None
        shutil.rmtree(directory)
        logger.debug("Removed scratch directory %s", directory)

    def __enter__(self) -> "ScratchSpace":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
