#!/usr/bin/env python3
"""Ariadna command line - install, upgrade, inspect or remove the Claude Code content.

USAGE:
    ariadna install [OPTIONS]
    ariadna uninstall [OPTIONS]
    ariadna status [OPTIONS]

EXAMPLES:
    ariadna install                      # Install/upgrade into ~/.claude (or $CLAUDE_CONFIG_DIR)
    ariadna install --local              # Install into ./.claude for this project only
    ariadna install --dry-run            # Show what an upgrade would back up and remove
    ariadna install --statusline         # Also configure the Ariadna status line
    ariadna status                       # Show installed version and local edits
    ariadna uninstall                    # Remove everything Ariadna installed
"""

import argparse
import sys
import traceback

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ariadna import VERSION
from ariadna.core.config import InstallerSettings, resolve_source_dir, resolve_target_dir
from ariadna.core.logging_config import setup_logging
from ariadna.setup.change_detector import ChangeDetector
from ariadna.setup.errors import InstallerError
from ariadna.setup.installer import Installer
from ariadna.setup.layout import InstallContext
from ariadna.setup.manifest import ManifestStore
from ariadna.setup.patch_backup import PatchBackupManager
from ariadna.setup.uninstaller import Uninstaller

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="ariadna",
        description="Install or update Ariadna commands, agents and workflows for Claude Code",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--version", action="version", version=f"ariadna {VERSION}")

    target = argparse.ArgumentParser(add_help=False)
    target.add_argument(
        "--local",
        action="store_true",
        help="Use ./.claude in the current directory instead of the global config dir",
    )
    target.add_argument(
        "--target-dir",
        help="Explicit target directory (overrides --local and CLAUDE_CONFIG_DIR)",
    )
    target.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show detailed output",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser("install", parents=[target], help="Install or upgrade")
    install.add_argument(
        "--source-dir",
        help="Release tree to install from (default: bundled content)",
    )
    install.add_argument(
        "--statusline",
        action="store_true",
        help="Also install the Ariadna status line into settings.json",
    )
    install.add_argument(
        "--force-statusline",
        action="store_true",
        help="Replace an existing custom statusLine",
    )
    install.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without making changes",
    )

    subparsers.add_parser("uninstall", parents=[target], help="Remove everything Ariadna installed")
    subparsers.add_parser("status", parents=[target], help="Show installed version and local edits")

    return parser.parse_args(argv)


def build_context(args: argparse.Namespace, settings: InstallerSettings) -> InstallContext:
    return InstallContext(
        target_dir=resolve_target_dir(args.target_dir, local=args.local, settings=settings),
        source_dir=resolve_source_dir(getattr(args, "source_dir", None), settings=settings),
    )


def print_plan(installer: Installer) -> None:
    plan = installer.plan()
    console.print(f"[yellow][DRY-RUN][/yellow] Target: {escape(str(installer.target_dir))}")
    if plan.fresh_install:
        console.print(f"  Fresh install of {plan.managed_count} files")
        return

    console.print(
        f"  Upgrade from v{escape(plan.previous_version or 'unknown')} "
        f"to v{escape(installer.context.version)} ({plan.managed_count} files)"
    )
    for rel_path in plan.modified:
        console.print(f"  [cyan]Would back up[/cyan] {escape(rel_path)}")
    for rel_path in plan.orphans:
        console.print(f"  [red]Would remove[/red] {escape(rel_path)}")
    if not plan.modified and not plan.orphans:
        console.print("  No local modifications or orphaned files")


def print_status(context: InstallContext) -> int:
    ledger = ManifestStore(context).load()
    if ledger is None:
        console.print(f"Ariadna is not installed in {escape(str(context.target_dir))}")
        return 1

    changes = ChangeDetector(context).scan(ledger)

    table = Table(title=f"Ariadna v{escape(ledger.version or 'unknown')}", show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Target", escape(str(context.target_dir)))
    table.add_row("Installed at", escape(ledger.timestamp or "unknown"))
    table.add_row("Tracked files", str(len(ledger.files)))
    table.add_row("Unmodified", str(len(changes.unmodified)))
    table.add_row("Modified", str(len(changes.modified)))
    table.add_row("Missing", str(len(changes.missing)))
    console.print(table)

    for rel_path in changes.modified:
        console.print(f"  [yellow]~[/yellow] {escape(rel_path)}")
    for rel_path in changes.missing:
        console.print(f"  [red]-[/red] {escape(rel_path)}")

    record = PatchBackupManager(context).load_record()
    if record is not None and record.files:
        console.print(
            f"\n{len(record.files)} backed-up patch(es) from v{escape(record.from_version or 'unknown')} "
            "waiting for /ariadna:reapply-patches"
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure, 130 when interrupted)
    """
    args = parse_args(argv)
    try:
        settings = InstallerSettings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration:[/red] {escape(str(e))}")
        return 1

    try:
        setup_logging(
            log_level="DEBUG" if args.verbose else settings.log_level,
            log_dir=str(settings.log_dir) if settings.log_dir else None,
            log_to_file=settings.log_to_file,
        )
        context = build_context(args, settings)

        if args.command == "install":
            installer = Installer(
                context,
                statusline=args.statusline,
                force_statusline=args.force_statusline,
            )
            if args.dry_run:
                print_plan(installer)
                return 0
            installer.install()
            return 0

        if args.command == "uninstall":
            Uninstaller(context).uninstall()
            return 0

        return print_status(context)

    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        return 130
    except InstallerError as e:
        console.print(f"\n[red]Error:[/red] {escape(str(e))}")
        return 1
    except PermissionError as e:
        console.print(f"\n[red]Permission denied:[/red] {escape(str(e))}")
        console.print("Check file permissions on the target directory and re-run; the install is safe to retry.")
        return 1
    except OSError as e:
        console.print(f"\n[red]OS error:[/red] {escape(str(e))}")
        console.print("The run did not complete; re-running is safe.")
        if args.verbose:
            console.print(escape(traceback.format_exc()))
        return 1


if __name__ == "__main__":
    sys.exit(main())
