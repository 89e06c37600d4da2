"""Ariadna - manifest-based installer for Claude Code commands, agents and workflows."""

from pathlib import Path

__version__ = "1.4.0"
VERSION = __version__


def data_dir() -> Path:
    """Get the bundled release tree shipped inside the package."""
    return Path(__file__).resolve().parent / "data"
