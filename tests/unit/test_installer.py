"""Install / upgrade orchestration tests.

Exercises the full run against a throwaway release tree and target:
fresh install, upgrades with local edits, orphan removal, idempotency
and failure before mutation.
"""

import itertools
import json
from datetime import timedelta
from pathlib import Path

import pytest

from ariadna.setup.errors import ReleaseSourceError
from ariadna.setup.fs import compute_file_hash
from ariadna.setup.installer import Installer, RunPhase
from ariadna.setup.layout import InstallContext

from tests.conftest import FIXED_NOW, RELEASE_FILES, read_manifest, write_tree


def _install(context: InstallContext, out, **kwargs):
    return Installer(context, out=out, **kwargs).install()


class TestFreshInstall:
    """Installing into an empty target."""

    def test_phases(self, context, out) -> None:
        summary = _install(context, out)

        assert summary.phases == [
            RunPhase.START,
            RunPhase.FRESH_INSTALL,
            RunPhase.COPY_TREES,
            RunPhase.WRITE_METADATA,
            RunPhase.DONE,
        ]
        assert summary.fresh_install
        assert summary.completed
        assert summary.backup is None
        assert summary.orphans_removed == []

    def test_content_and_metadata(self, context, out) -> None:
        _install(context, out)
        target = context.target_dir

        assert (target / "commands/ariadna/help.md").read_text() == "# Ariadna help\n"
        assert (target / "agents/ariadna-executor.md").exists()
        assert not (target / "agents/README.md").exists()
        assert (target / "ariadna/VERSION").read_text() == "2.0.0"
        assert not (target / "ariadna-local-patches").exists()

    def test_manifest_digests_match_installed_files(self, context, out) -> None:
        _install(context, out)

        manifest = read_manifest(context.target_dir)
        assert manifest["version"] == "2.0.0"
        assert manifest["timestamp"] == "2026-01-31T09:15:00Z"
        assert "ariadna/VERSION" in manifest["files"]
        for rel_path, digest in manifest["files"].items():
            assert len(digest) == 64
            assert digest == compute_file_hash(context.target_path(rel_path))

    def test_progress_output(self, context, out) -> None:
        _install(context, out)
        text = out.file.getvalue()

        assert "Ariadna v2.0.0 - Installing to" in text
        assert "Installed 3 commands (commands/ariadna/)" in text
        assert "Installed 2 agents (agents/)" in text
        assert "Wrote VERSION (2.0.0)" in text
        assert "Wrote manifest (ariadna-manifest.json)" in text
        assert "Done! Launch Claude Code and run /ariadna:help." in text

    def test_malformed_ledger_takes_fresh_path(self, context, out) -> None:
        context.target_dir.mkdir()
        context.manifest_path.write_text("this is not json")

        summary = _install(context, out)

        assert summary.fresh_install
        assert read_manifest(context.target_dir)["version"] == "2.0.0"


class TestUpgrade:
    """Installing over a previous install."""

    @pytest.fixture
    def installed(self, make_context, out) -> InstallContext:
        context = make_context("1.0.0")
        _install(context, out)
        return context

    def test_phases(self, installed, make_context, out) -> None:
        summary = _install(make_context("2.0.0"), out)

        assert summary.phases == [
            RunPhase.START,
            RunPhase.UPGRADE,
            RunPhase.BACKUP_MODIFIED,
            RunPhase.RECLAIM_ORPHANS,
            RunPhase.COPY_TREES,
            RunPhase.WRITE_METADATA,
            RunPhase.DONE,
        ]
        assert summary.previous_version == "1.0.0"

    def test_modified_file_backed_up_then_overwritten(self, installed, make_context, out) -> None:
        target = installed.target_dir
        (target / "commands/ariadna/help.md").write_text("# My custom help\n")

        summary = _install(make_context("2.0.0"), out)

        assert summary.changes.modified == ["commands/ariadna/help.md"]
        backup = target / "ariadna-local-patches/commands/ariadna/help.md"
        assert backup.read_text() == "# My custom help\n"
        assert (target / "commands/ariadna/help.md").read_text() == "# Ariadna help\n"

        meta = json.loads((target / "ariadna-local-patches/backup-meta.json").read_text())
        assert meta["from_version"] == "1.0.0"
        assert meta["files"] == ["commands/ariadna/help.md"]

        text = out.file.getvalue()
        assert "Found 1 locally modified file(s) - backed up to ariadna-local-patches/" in text
        assert "Run /ariadna:reapply-patches" in text

    def test_only_modified_files_are_backed_up(self, installed, make_context, out) -> None:
        target = installed.target_dir
        (target / "agents/ariadna-planner.md").write_text("# Tuned planner\n")
        (target / "ariadna/templates/project.md").unlink()

        summary = _install(make_context("2.0.0"), out)

        assert summary.backup.files == ["agents/ariadna-planner.md"]
        assert summary.changes.missing == ["ariadna/templates/project.md"]
        backed_up = sorted(
            p.relative_to(target / "ariadna-local-patches").as_posix()
            for p in (target / "ariadna-local-patches").rglob("*")
            if p.is_file()
        )
        assert backed_up == ["agents/ariadna-planner.md", "backup-meta.json"]

    def test_clean_upgrade_creates_no_patches(self, installed, make_context, out) -> None:
        summary = _install(make_context("2.0.0"), out)

        assert summary.backup is None
        assert not (installed.target_dir / "ariadna-local-patches").exists()
        assert "Local patches detected" not in out.file.getvalue()

    def test_orphans_removed_and_user_files_kept(
        self, installed, make_context, release_dir: Path, out
    ) -> None:
        target = installed.target_dir
        (target / "agents/my-reviewer.md").write_text("mine")
        (release_dir / "agents/ariadna-executor.md").unlink()
        (release_dir / "commands/ariadna/new-project.md").unlink()

        summary = _install(make_context("2.0.0"), out)

        assert sorted(summary.orphans_removed) == [
            "agents/ariadna-executor.md",
            "commands/ariadna/new-project.md",
        ]
        assert not (target / "agents/ariadna-executor.md").exists()
        assert (target / "agents/my-reviewer.md").read_text() == "mine"
        manifest = read_manifest(target)
        assert "agents/ariadna-executor.md" not in manifest["files"]
        assert "agents/my-reviewer.md" not in manifest["files"]
        assert "Removed orphaned agents/ariadna-executor.md" in out.file.getvalue()

    def test_modified_orphan_is_backed_up_before_removal(
        self, installed, make_context, release_dir: Path, out
    ) -> None:
        target = installed.target_dir
        (target / "agents/ariadna-executor.md").write_text("# My executor\n")
        (release_dir / "agents/ariadna-executor.md").unlink()

        _install(make_context("2.0.0"), out)

        assert not (target / "agents/ariadna-executor.md").exists()
        backup = target / "ariadna-local-patches/agents/ariadna-executor.md"
        assert backup.read_text() == "# My executor\n"

    def test_emptied_directories_are_pruned(
        self, make_context, release_dir: Path, out
    ) -> None:
        write_tree(release_dir, {"ariadna/legacy/old/flow.md": "old"})
        context = make_context("1.0.0")
        _install(context, out)
        (release_dir / "ariadna/legacy/old/flow.md").unlink()
        (release_dir / "ariadna/legacy/old").rmdir()
        (release_dir / "ariadna/legacy").rmdir()

        _install(make_context("2.0.0"), out)

        assert not (context.target_dir / "ariadna/legacy").exists()
        assert (context.target_dir / "ariadna/workflows").is_dir()

    def test_version_marker_is_never_an_orphan(self, installed, make_context, out) -> None:
        summary = _install(make_context("2.0.0"), out)

        assert "ariadna/VERSION" not in summary.orphans_removed
        assert (installed.target_dir / "ariadna/VERSION").read_text() == "2.0.0"

    def test_stale_patch_record_is_reported_again(self, installed, make_context, out) -> None:
        (installed.target_dir / "commands/ariadna/help.md").write_text("edited")
        _install(make_context("2.0.0"), out)

        summary = _install(make_context("2.1.0"), out)

        assert summary.backup is None
        record = Installer(make_context("2.1.0"), out=out).report_local_patches()
        assert record.from_version == "1.0.0"


class TestIdempotency:
    def test_repeat_install_is_byte_identical(self, context, out) -> None:
        _install(context, out)
        first = context.manifest_path.read_bytes()

        summary = _install(context, out)

        assert context.manifest_path.read_bytes() == first
        assert summary.orphans_removed == []
        assert summary.backup is None

    @pytest.fixture
    def ticking_context(self, target_dir: Path, release_dir: Path) -> InstallContext:
        """Context whose clock moves forward a minute on every reading."""
        moments = (FIXED_NOW + timedelta(minutes=n) for n in itertools.count())
        return InstallContext(
            target_dir=target_dir,
            source_dir=release_dir,
            version="2.0.0",
            clock=lambda: next(moments),
        )

    def test_repeat_install_is_byte_identical_as_time_passes(self, ticking_context, out) -> None:
        _install(ticking_context, out)
        first = ticking_context.manifest_path.read_bytes()

        _install(ticking_context, out)
        _install(ticking_context, out)

        assert ticking_context.manifest_path.read_bytes() == first
        assert read_manifest(ticking_context.target_dir)["timestamp"] == "2026-01-31T09:15:00Z"

    def test_changed_content_gets_new_timestamp(
        self, ticking_context, release_dir: Path, out
    ) -> None:
        _install(ticking_context, out)
        (release_dir / "commands/ariadna/help.md").write_text("# Ariadna help, revised\n")

        _install(ticking_context, out)

        assert read_manifest(ticking_context.target_dir)["timestamp"] == "2026-01-31T09:16:00Z"

    def test_interrupted_run_recovers_on_retry(self, context, out) -> None:
        _install(context, out)
        # Simulate a crash between copying trees and writing the manifest
        context.manifest_path.unlink()
        (context.target_dir / "ariadna/VERSION").unlink()

        summary = _install(context, out)

        assert summary.fresh_install
        assert summary.completed
        assert (context.target_dir / "ariadna/VERSION").exists()


class TestReleaseSource:
    def test_missing_source_leaves_target_untouched(self, make_context, tmp_path: Path, out) -> None:
        context = make_context(source_dir=tmp_path / "no-such-release")

        with pytest.raises(ReleaseSourceError):
            _install(context, out)

        assert not context.target_dir.exists()

    def test_source_without_managed_roots_is_rejected(
        self, make_context, tmp_path: Path, out
    ) -> None:
        empty = write_tree(tmp_path / "empty-release", {"README.md": "nothing"})
        context = make_context(source_dir=empty)
        context.target_dir.mkdir()
        (context.target_dir / "settings.json").write_text("{}")

        with pytest.raises(ReleaseSourceError) as exc_info:
            _install(context, out)

        assert exc_info.value.source_dir == empty
        assert sorted(p.name for p in context.target_dir.iterdir()) == ["settings.json"]


class TestPlan:
    def test_fresh_plan(self, context, out) -> None:
        plan = Installer(context, out=out).plan()

        assert plan.fresh_install
        assert plan.managed_count == 9
        assert not context.target_dir.exists()

    def test_upgrade_plan_has_no_side_effects(
        self, make_context, release_dir: Path, out
    ) -> None:
        context = make_context("1.0.0")
        _install(context, out)
        (context.target_dir / "commands/ariadna/help.md").write_text("edited")
        (release_dir / "agents/ariadna-planner.md").unlink()
        before = context.manifest_path.read_bytes()

        plan = Installer(make_context("2.0.0"), out=out).plan()

        assert not plan.fresh_install
        assert plan.previous_version == "1.0.0"
        assert plan.modified == ["commands/ariadna/help.md"]
        assert plan.orphans == ["agents/ariadna-planner.md"]
        assert (context.target_dir / "agents/ariadna-planner.md").exists()
        assert not context.patches_dir.exists()
        assert context.manifest_path.read_bytes() == before


class TestStatusline:
    def test_installs_when_requested(self, context, out) -> None:
        summary = _install(context, out, statusline=True)

        assert summary.statusline_installed
        settings = json.loads((context.target_dir / "settings.json").read_text())
        assert settings["statusLine"]["type"] == "command"
        assert settings["statusLine"]["command"].endswith("ariadna-statusline.sh")
        assert (context.target_dir / "ariadna-statusline.sh").read_text() == (
            RELEASE_FILES["statusline/ariadna-statusline.sh"]
        )

    def test_not_installed_by_default(self, context, out) -> None:
        summary = _install(context, out)

        assert not summary.statusline_installed
        assert not (context.target_dir / "settings.json").exists()

    def test_custom_statusline_is_respected(self, context, out) -> None:
        context.target_dir.mkdir()
        custom = {"statusLine": {"type": "command", "command": "my-line.sh"}, "theme": "dark"}
        (context.target_dir / "settings.json").write_text(json.dumps(custom))

        summary = _install(context, out, statusline=True)

        assert not summary.statusline_installed
        assert summary.warnings
        assert summary.completed
        assert json.loads((context.target_dir / "settings.json").read_text()) == custom

    def test_force_replaces_custom_statusline(self, context, out) -> None:
        context.target_dir.mkdir()
        custom = {"statusLine": {"type": "command", "command": "my-line.sh"}, "theme": "dark"}
        (context.target_dir / "settings.json").write_text(json.dumps(custom))

        _install(context, out, statusline=True, force_statusline=True)

        settings = json.loads((context.target_dir / "settings.json").read_text())
        assert "ariadna-statusline.sh" in settings["statusLine"]["command"]
        assert settings["theme"] == "dark"
