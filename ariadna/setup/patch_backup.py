"""Back up locally modified files before an upgrade overwrites them.

Backups mirror the target-relative layout under ``ariadna-local-patches/``
and are described by ``backup-meta.json``. Nothing here reapplies patches;
that is a separate, human-triggered step (``/ariadna:reapply-patches``).
"""

from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from ariadna.core.logging_config import get_logger
from ariadna.setup.fs import copy_file, rmtree_robust
from ariadna.setup.layout import BACKUP_META_NAME, InstallContext
from ariadna.setup.models import PatchBackupRecord, utc_timestamp

logger = get_logger("ariadna.patch_backup")


class PatchBackupManager:
    """Copy modified files aside and record what was preserved."""

    def __init__(self, context: InstallContext):
        self.context = context

    @property
    def backup_dir(self) -> Path:
        return self.context.patches_dir

    @property
    def meta_path(self) -> Path:
        return self.backup_dir / BACKUP_META_NAME

    def backup(
        self,
        modified: Sequence[str],
        from_version: str | None,
    ) -> PatchBackupRecord | None:
        """Back up every modified path, then write the record.

        All copies finish before this returns, so the caller can overwrite
        the originals afterwards. Any copy failure propagates and the
        caller must not proceed to overwrite.

        Args:
            modified: Target-relative paths classified as modified
            from_version: Version recorded in the ledger being upgraded from

        Returns:
            The written record, or None when nothing was modified
        """
        if not modified:
            return None

        for rel_path in modified:
            src = self.context.target_path(rel_path)
            dst = self.backup_dir.joinpath(*rel_path.split("/"))
            copy_file(src, dst)
            logger.debug("Backed up modified file", rel_path=rel_path, backup=dst)

        record = PatchBackupRecord(
            backed_up_at=utc_timestamp(self.context.clock()),
            from_version=from_version,
            files=list(modified),
        )
        self.meta_path.write_text(record.to_json(), encoding="utf-8")
        logger.info(
            "Local patches backed up",
            file_count=len(modified),
            from_version=from_version,
        )
        return record

    def load_record(self) -> PatchBackupRecord | None:
        """Read backup-meta.json; missing or malformed metadata reads as None."""
        try:
            raw = self.meta_path.read_bytes()
        except (FileNotFoundError, NotADirectoryError):
            return None

        try:
            return PatchBackupRecord.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError):
            logger.warning("Ignoring malformed backup metadata", path=self.meta_path)
            return None

    def remove(self) -> bool:
        """Delete the backup area and its record. Returns True if it existed."""
        if not self.backup_dir.exists() and not self.backup_dir.is_symlink():
            return False
        rmtree_robust(self.backup_dir)
        return True
