"""Remove everything Ariadna installed.

Ownership comes from the managed-root list and the agent naming convention
only; the ledger digests are not consulted, so uninstall works even when
the ledger is missing or stale.
"""

from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from ariadna.core.logging_config import generate_correlation_id, get_logger
from ariadna.setup.fs import rmtree_robust
from ariadna.setup.layout import PATCHES_DIR, InstallContext, ManagedRoot
from ariadna.setup.manifest import ManifestStore
from ariadna.setup.patch_backup import PatchBackupManager
from ariadna.setup.statusline import StatuslineHook

console = Console()
logger = get_logger("ariadna.uninstaller")


@dataclass
class UninstallSummary:
    target_dir: Path
    removed_roots: list[str] = field(default_factory=list)
    removed_files: list[str] = field(default_factory=list)
    statusline_removed: bool = False
    patches_removed: bool = False
    manifest_removed: bool = False


class Uninstaller:
    def __init__(self, context: InstallContext, out: Console | None = None):
        self.context = context
        self.console = out or console

    @property
    def target_dir(self) -> Path:
        return self.context.target_dir

    def uninstall(self) -> UninstallSummary:
        trace_id = generate_correlation_id()
        summary = UninstallSummary(target_dir=self.target_dir)

        self.console.print(f"[bold]Ariadna[/bold] - Uninstalling from {escape(str(self.target_dir))}\n")
        logger.info("Uninstall started", trace_id=trace_id, target=self.target_dir)

        for root in self.context.roots:
            if root.shared:
                self._remove_shared(root, summary)
            else:
                self._remove_owned(root, summary)

        statusline_removed, message = StatuslineHook(self.context).remove()
        summary.statusline_removed = statusline_removed
        self.console.print(f"  [green]✓[/green] {escape(message)}")

        summary.patches_removed = PatchBackupManager(self.context).remove()
        if summary.patches_removed:
            self.console.print(f"  [green]✓[/green] Removed {PATCHES_DIR}/")

        summary.manifest_removed = ManifestStore(self.context).delete()
        if summary.manifest_removed:
            self.console.print("  [green]✓[/green] Removed manifest")

        logger.info(
            "Uninstall finished",
            trace_id=trace_id,
            removed_roots=summary.removed_roots,
            file_count=len(summary.removed_files),
        )
        self.console.print("\nDone! Ariadna has been uninstalled.")
        return summary

    def _remove_owned(self, root: ManagedRoot, summary: UninstallSummary) -> None:
        path = self.context.target_path(root.rel_path)
        if not path.is_dir() and not path.is_symlink():
            return
        rmtree_robust(path)
        summary.removed_roots.append(root.rel_path)
        self.console.print(f"  [green]✓[/green] Removed {escape(root.rel_path)}/")

    def _remove_shared(self, root: ManagedRoot, summary: UninstallSummary) -> None:
        directory = self.context.target_path(root.rel_path)
        if not directory.is_dir():
            return

        removed = 0
        for entry in sorted(directory.iterdir()):
            if not (entry.is_file() or entry.is_symlink()) or not root.owns_name(entry.name):
                continue
            entry.unlink()
            summary.removed_files.append(f"{root.rel_path}/{entry.name}")
            removed += 1

        if removed:
            label = root.label or root.rel_path
            self.console.print(f"  [green]✓[/green] Removed {removed} {escape(label)}")
