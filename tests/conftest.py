"""Shared test fixtures for the Ariadna installer test suite.

Provides:
- A small release tree (commands, agents, content, statusline) in tmp_path
- An empty target directory standing in for ~/.claude
- A fixed clock so ledgers are byte-for-byte reproducible
- A captured rich console for asserting on progress output
"""
from __future__ import annotations

import io
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import pytest
from rich.console import Console

from ariadna.setup.layout import InstallContext

FIXED_NOW = datetime(2026, 1, 31, 9, 15, 0, tzinfo=timezone.utc)

RELEASE_FILES = {
    "commands/ariadna/help.md": "# Ariadna help\n",
    "commands/ariadna/new-project.md": "# New project\n",
    "commands/ariadna/execute-phase.md": "# Execute phase\n",
    "agents/ariadna-executor.md": "# Executor agent\n",
    "agents/ariadna-planner.md": "# Planner agent\n",
    # Lives in the source agents/ dir but does not match ariadna-*.md
    "agents/README.md": "Not an Ariadna agent\n",
    "ariadna/workflows/execute-phase.md": "# Execute phase workflow\n",
    "ariadna/templates/project.md": "# Project template\n",
    "ariadna/references/checkpoints.md": "# Checkpoints\n",
    "statusline/ariadna-statusline.sh": "#!/usr/bin/env bash\necho ariadna\n",
}


def write_tree(base: Path, files: dict[str, str]) -> Path:
    for rel_path, content in files.items():
        path = base / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return base


def read_manifest(target_dir: Path) -> dict:
    return json.loads((target_dir / "ariadna-manifest.json").read_text())


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def release_dir(tmp_path: Path) -> Path:
    """A release tree like the one bundled in ariadna/data."""
    return write_tree(tmp_path / "release", RELEASE_FILES)


@pytest.fixture
def target_dir(tmp_path: Path) -> Path:
    """Install target standing in for ~/.claude (does not exist yet)."""
    return tmp_path / "claude"


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def context(target_dir: Path, release_dir: Path, fixed_clock) -> InstallContext:
    return InstallContext(
        target_dir=target_dir,
        source_dir=release_dir,
        version="2.0.0",
        clock=fixed_clock,
    )


@pytest.fixture
def make_context(target_dir: Path, release_dir: Path, fixed_clock):
    """Factory for contexts at a given version (e.g. to simulate upgrades)."""

    def _make(version: str = "2.0.0", source_dir: Path | None = None) -> InstallContext:
        return InstallContext(
            target_dir=target_dir,
            source_dir=source_dir or release_dir,
            version=version,
            clock=fixed_clock,
        )

    return _make


@pytest.fixture
def out() -> Console:
    """Rich console writing to a buffer; read it with out.file.getvalue()."""
    return Console(file=io.StringIO(), width=200, color_system=None)
