"""Installer configuration.

Provides environment-based configuration using pydantic-settings, and the
target/source directory resolution shared by the install, uninstall and
status commands.
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from ariadna import data_dir

# Subdirectory that holds Claude Code configuration, both globally and per project
CLAUDE_DIR_NAME = ".claude"


class InstallerSettings(BaseSettings):
    """Installer settings.

    Attributes:
        claude_config_dir: Global install target (CLAUDE_CONFIG_DIR)
        ariadna_source_dir: Release tree to install from (ARIADNA_SOURCE_DIR)
        log_level: Structured log level (LOG_LEVEL)
        log_to_file: Also write rotating JSON log files (LOG_TO_FILE)
        log_dir: Directory for log files (LOG_DIR)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    claude_config_dir: Optional[Path] = None
    ariadna_source_dir: Optional[Path] = None
    log_level: str = "WARNING"
    log_to_file: bool = False
    log_dir: Optional[Path] = None


def resolve_target_dir(
    target_dir: Path | str | None = None,
    local: bool = False,
    settings: InstallerSettings | None = None,
) -> Path:
    """Resolve the directory that receives the installed tree.

    Priority:
        1. Explicit target_dir
        2. <cwd>/.claude when local is set
        3. CLAUDE_CONFIG_DIR
        4. ~/.claude

    Returns:
        Absolute path to the target directory (may not exist)
    """
    if target_dir is not None:
        return Path(target_dir).expanduser().resolve()

    if local:
        return Path.cwd() / CLAUDE_DIR_NAME

    settings = settings or InstallerSettings()
    if settings.claude_config_dir:
        return settings.claude_config_dir.expanduser()

    return Path.home() / CLAUDE_DIR_NAME


def resolve_source_dir(
    source_dir: Path | str | None = None,
    settings: InstallerSettings | None = None,
) -> Path:
    """Resolve the release tree, falling back to the bundled package data."""
    if source_dir is not None:
        return Path(source_dir).expanduser().resolve()

    settings = settings or InstallerSettings()
    if settings.ariadna_source_dir:
        return settings.ariadna_source_dir.expanduser()

    return data_dir()
