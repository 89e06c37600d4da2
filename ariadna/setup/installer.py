"""Ariadna install / upgrade orchestrator.

One run walks a small state machine:

    START -> FRESH_INSTALL -> COPY_TREES -> WRITE_METADATA -> DONE
    START -> UPGRADE -> BACKUP_MODIFIED -> RECLAIM_ORPHANS
          -> COPY_TREES -> WRITE_METADATA -> DONE

The choice between the two is made by whether a ledger exists. Any step
failure propagates and the run is not completed; every step is re-derived
from disk plus the release tree, so simply running again is the recovery.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ariadna.core.logging_config import generate_correlation_id, get_logger
from ariadna.setup.change_detector import ChangeDetector, ChangeReport
from ariadna.setup.errors import ReleaseSourceError
from ariadna.setup.layout import MANIFEST_NAME, PATCHES_DIR, InstallContext
from ariadna.setup.manifest import ManifestStore
from ariadna.setup.models import Ledger, PatchBackupRecord
from ariadna.setup.orphans import OrphanReclaimer
from ariadna.setup.patch_backup import PatchBackupManager
from ariadna.setup.statusline import StatuslineHook
from ariadna.setup.tree_installer import TreeInstaller

console = Console()
logger = get_logger("ariadna.installer")


class RunPhase(str, Enum):
    START = "start"
    FRESH_INSTALL = "fresh_install"
    UPGRADE = "upgrade"
    BACKUP_MODIFIED = "backup_modified"
    RECLAIM_ORPHANS = "reclaim_orphans"
    COPY_TREES = "copy_trees"
    WRITE_METADATA = "write_metadata"
    DONE = "done"


@dataclass
class InstallPlan:
    """What an install would do, computed without touching the target."""

    fresh_install: bool
    previous_version: str | None = None
    modified: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    managed_count: int = 0


@dataclass
class InstallSummary:
    """Summary of changes made during an install run."""

    target_dir: Path
    version: str
    phases: list[RunPhase] = field(default_factory=list)
    previous_version: str | None = None
    changes: ChangeReport = field(default_factory=ChangeReport)
    backup: PatchBackupRecord | None = None
    orphans_removed: list[str] = field(default_factory=list)
    installed_counts: dict[str, int] = field(default_factory=dict)
    ledger: Ledger | None = None
    statusline_installed: bool = False
    warnings: list[str] = field(default_factory=list)

    @property
    def fresh_install(self) -> bool:
        return RunPhase.FRESH_INSTALL in self.phases

    @property
    def completed(self) -> bool:
        return bool(self.phases) and self.phases[-1] is RunPhase.DONE


class Installer:
    """Synchronize the release tree into a target directory."""

    def __init__(
        self,
        context: InstallContext,
        statusline: bool = False,
        force_statusline: bool = False,
        out: Console | None = None,
    ):
        self.context = context
        self.statusline = statusline
        self.force_statusline = force_statusline
        self.console = out or console

        self.manifest = ManifestStore(context)
        self.detector = ChangeDetector(context)
        self.patches = PatchBackupManager(context)
        self.reclaimer = OrphanReclaimer(context)
        self.trees = TreeInstaller(context)
        self.statusline_hook = StatuslineHook(context)

    @property
    def target_dir(self) -> Path:
        return self.context.target_dir

    def _check_source(self) -> None:
        source = self.context.source_dir
        if not source.is_dir():
            raise ReleaseSourceError(f"Release source not found: {source}", source)
        if not any(self.context.source_path(root.rel_path).is_dir() for root in self.context.roots):
            raise ReleaseSourceError(
                f"Release source {source} contains none of the managed directories",
                source,
            )

    def plan(self) -> InstallPlan:
        """Describe what install() would do. Reads only."""
        self._check_source()
        ledger = self.manifest.load()
        managed = self.trees.managed_paths()
        if ledger is None:
            return InstallPlan(fresh_install=True, managed_count=len(managed))

        changes = self.detector.scan(ledger)
        return InstallPlan(
            fresh_install=False,
            previous_version=ledger.version,
            modified=changes.modified,
            missing=changes.missing,
            orphans=self.reclaimer.find_orphans(ledger, managed),
            managed_count=len(managed),
        )

    def install(self) -> InstallSummary:
        """Run one install or upgrade.

        Raises:
            ReleaseSourceError: If the release tree is unusable (nothing touched)
            OSError: On any filesystem failure; the run is left incomplete
        """
        self._check_source()
        trace_id = generate_correlation_id()
        summary = InstallSummary(target_dir=self.target_dir, version=self.context.version)
        summary.phases.append(RunPhase.START)

        self.console.print(
            f"[bold]Ariadna v{escape(self.context.version)}[/bold] - "
            f"Installing to {escape(str(self.target_dir))}\n"
        )
        logger.info("Install started", trace_id=trace_id, target=self.target_dir, version=self.context.version)

        ledger = self.manifest.load()
        if ledger is None:
            summary.phases.append(RunPhase.FRESH_INSTALL)
        else:
            summary.phases.append(RunPhase.UPGRADE)
            summary.previous_version = ledger.version
            self._upgrade(ledger, summary, trace_id)

        summary.phases.append(RunPhase.COPY_TREES)
        with logger.measure_time("copy_trees", trace_id=trace_id):
            summary.installed_counts = self.trees.copy_trees()
        for root in self.context.roots:
            count = summary.installed_counts.get(root.rel_path, 0)
            label = root.label or root.rel_path
            self.console.print(
                f"  [green]✓[/green] Installed {count} {escape(label)} ({escape(root.rel_path)}/)"
            )

        summary.phases.append(RunPhase.WRITE_METADATA)
        self.trees.write_version()
        self.console.print(f"  [green]✓[/green] Wrote VERSION ({escape(self.context.version)})")
        summary.ledger = self.trees.build_ledger()
        if ledger is not None and ledger.timestamp and self._same_install(ledger, summary.ledger):
            # Nothing changed: the ledger is rewritten byte-for-byte
            summary.ledger.timestamp = ledger.timestamp
        self.manifest.save(summary.ledger)
        self.console.print(f"  [green]✓[/green] Wrote manifest ({MANIFEST_NAME})")

        if self.statusline:
            installed, message = self.statusline_hook.install(force=self.force_statusline)
            summary.statusline_installed = installed
            if installed:
                self.console.print(f"  [green]✓[/green] {escape(message)}")
            else:
                summary.warnings.append(message)
                self.console.print(f"  [yellow]![/yellow] {escape(message)}")

        summary.phases.append(RunPhase.DONE)
        logger.info(
            "Install finished",
            trace_id=trace_id,
            fresh_install=summary.fresh_install,
            file_count=len(summary.ledger.files),
            orphans_removed=len(summary.orphans_removed),
            modified=len(summary.changes.modified),
        )

        self.report_local_patches()
        self.console.print("\nDone! Launch Claude Code and run /ariadna:help.")
        return summary

    @staticmethod
    def _same_install(previous: Ledger, current: Ledger) -> bool:
        return previous.version == current.version and previous.files == current.files

    def _upgrade(self, ledger: Ledger, summary: InstallSummary, trace_id: str) -> None:
        summary.changes = self.detector.scan(ledger)

        # Every modification is captured before anything is overwritten
        summary.phases.append(RunPhase.BACKUP_MODIFIED)
        summary.backup = self.patches.backup(summary.changes.modified, ledger.version)
        if summary.backup is not None:
            self.console.print(
                f"  [cyan]i[/cyan]  Found {len(summary.backup.files)} locally modified file(s) "
                f"- backed up to {PATCHES_DIR}/"
            )
            for rel_path in summary.backup.files:
                self.console.print(f"     {escape(rel_path)}")

        summary.phases.append(RunPhase.RECLAIM_ORPHANS)
        with logger.measure_time("reclaim_orphans", trace_id=trace_id):
            summary.orphans_removed = self.reclaimer.reclaim(ledger, self.trees.managed_paths())
        for rel_path in summary.orphans_removed:
            self.console.print(f"  [green]✓[/green] Removed orphaned {escape(rel_path)}")

    def report_local_patches(self) -> PatchBackupRecord | None:
        """Tell the user about backed-up patches waiting to be reapplied."""
        record = self.patches.load_record()
        if record is None or not record.files:
            return None

        self.console.print("")
        self.console.print(
            f"  [yellow]Local patches detected[/yellow] (from v{escape(record.from_version or 'unknown')}):"
        )
        for rel_path in record.files:
            self.console.print(f"     {escape(rel_path)}")
        self.console.print("")
        self.console.print(f"  Your modifications are saved in {PATCHES_DIR}/")
        self.console.print("  Run /ariadna:reapply-patches to merge them into the new version.")
        return record
