"""
Source file discovery for contract_audit.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from contract_audit.utils import should_exclude, to_posix

logger = logging.getLogger(__name__)


class SourceScanner:
    """
    Enumerate candidate source files under a root directory.

    Files are kept when their extension is allow-listed and no ignore glob
    matches their root-relative path. Directories matched by an ignore glob
    are pruned without being walked.
    """

    def __init__(
        self,
        root: Path,
        extensions: list[str],
        ignore: list[str] | None = None,
    ) -> None:
        """
        Initialize the scanner.

        Args:
            root: Root directory to walk.
            extensions: Allowed file extensions (with or without leading dot).
            ignore: Glob patterns matched against root-relative POSIX paths.
        """
        self.root = root
        self.extensions = {
            (ext if ext.startswith(".") else "." + ext).lower() for ext in extensions
        }
        self.ignore = list(ignore or [])

    def _dir_excluded(self, rel_dir: str) -> bool:
        # Pruned when an arbitrary child of the directory would be ignored
        return should_exclude(rel_dir + "/*", self.ignore)

    def scan(self) -> list[Path]:
        """
        Walk the root.

        Returns:
            Sorted list of matching file paths.
        """
        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            rel_dir = to_posix(os.path.relpath(dirpath, self.root))
            rel_dir = "" if rel_dir == "." else rel_dir

            kept = []
            for name in dirnames:
                child = f"{rel_dir}/{name}" if rel_dir else name
                if self._dir_excluded(child):
                    logger.debug("Pruning %s", child)
                    continue
                kept.append(name)
            dirnames[:] = sorted(kept)

            for name in filenames:
                if Path(name).suffix.lower() not in self.extensions:
                    continue
                rel = f"{rel_dir}/{name}" if rel_dir else name
                if should_exclude(rel, self.ignore):
                    continue
                found.append(Path(dirpath) / name)

        found.sort()
        logger.debug("Found %d source files under %s", len(found), self.root)
        return found

    def relative(self, filepath: Path) -> str:
        """Root-relative POSIX path of a scanned file."""
        return to_posix(os.path.relpath(filepath, self.root))
