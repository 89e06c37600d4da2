"""Remove files a previous release installed that the current release no longer ships."""

import errno
import os
from pathlib import Path
from typing import Iterable

from ariadna.core.logging_config import get_logger
from ariadna.setup.layout import InstallContext
from ariadna.setup.models import Ledger

logger = get_logger("ariadna.orphans")


class OrphanReclaimer:
    """Delete orphaned files and prune the directories they leave empty.

    orphans = tracked paths in the previous ledger - managed paths of the
    new release. Directories are only ever removed by the bottom-up empty
    sweep, never recursively, so unrelated files sitting next to managed
    ones cannot be lost.
    """

    def __init__(self, context: InstallContext):
        self.context = context

    def find_orphans(self, ledger: Ledger | None, managed_paths: Iterable[str]) -> list[str]:
        """Tracked paths absent from the new release, in ledger order."""
        if ledger is None:
            return []

        managed = set(managed_paths)
        orphans = []
        for rel_path in ledger.files:
            if rel_path in managed:
                continue
            if not self.context.owns_path(rel_path):
                logger.warning("Refusing to reclaim path outside managed roots", rel_path=rel_path)
                continue
            orphans.append(rel_path)
        return orphans

    def reclaim(self, ledger: Ledger | None, managed_paths: Iterable[str]) -> list[str]:
        """Delete orphans still on disk and prune emptied directories.

        Returns:
            Relative paths that were actually deleted
        """
        if ledger is None:
            return []

        removed = []
        for rel_path in self.find_orphans(ledger, managed_paths):
            path = self.context.target_path(rel_path)
            if not path.is_file() and not path.is_symlink():
                continue
            path.unlink()
            removed.append(rel_path)
            logger.info("Removed orphaned file", rel_path=rel_path)

        self.prune_empty_dirs()
        return removed

    def prune_empty_dirs(self) -> list[Path]:
        """Remove empty directories below each owned root, deepest first.

        Shared roots are skipped: their subdirectories belong to the user.
        The roots themselves are kept.
        """
        pruned = []
        for root in self.context.roots:
            if root.shared:
                continue
            root_path = self.context.target_path(root.rel_path)
            if not root_path.is_dir() or root_path.is_symlink():
                continue

            for dirpath, _dirnames, _filenames in os.walk(root_path, topdown=False):
                path = Path(dirpath)
                if path == root_path or path.is_symlink():
                    continue
                if any(path.iterdir()):
                    continue
                try:
                    path.rmdir()
                except OSError as e:
                    if e.errno in (errno.ENOTEMPTY, errno.EEXIST):
                        continue
                    raise
                pruned.append(path)
                logger.debug("Pruned empty directory", directory=path)

        return pruned
