"""Detect local edits to installed files by comparing digests with the ledger."""

from dataclasses import dataclass, field

from ariadna.core.logging_config import get_logger
from ariadna.setup.fs import compute_file_hash
from ariadna.setup.layout import InstallContext
from ariadna.setup.models import FileStatus, Ledger

logger = get_logger("ariadna.change_detector")


@dataclass
class ChangeReport:
    """Classification of every tracked path in a ledger."""

    unmodified: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    # Ledger entries outside the managed roots; never backed up or deleted
    ignored: list[str] = field(default_factory=list)

    @property
    def has_modifications(self) -> bool:
        return bool(self.modified)

    def paths(self, status: FileStatus) -> list[str]:
        return getattr(self, status.value)


class ChangeDetector:
    """Classify installed files as unmodified, modified or missing.

    Classification only reads the target directory; it never writes.
    """

    def __init__(self, context: InstallContext):
        self.context = context

    def classify(self, rel_path: str, recorded_digest: str) -> FileStatus:
        path = self.context.target_path(rel_path)
        if not path.is_file():
            return FileStatus.MISSING
        if compute_file_hash(path) == recorded_digest.lower():
            return FileStatus.UNMODIFIED
        return FileStatus.MODIFIED

    def scan(self, ledger: Ledger | None) -> ChangeReport:
        """Classify every tracked path, preserving ledger order."""
        report = ChangeReport()
        if ledger is None:
            return report

        for rel_path, digest in ledger.files.items():
            if not self.context.owns_path(rel_path):
                logger.warning("Ledger entry outside managed roots ignored", rel_path=rel_path)
                report.ignored.append(rel_path)
                continue
            status = self.classify(rel_path, digest)
            report.paths(status).append(rel_path)
            logger.debug("Classified tracked file", rel_path=rel_path, status=status.value)

        return report
