"""Optional status-line integration in the Claude Code settings.json.

The hook consists of the bundled ``ariadna-statusline.sh`` copied into the
target root and a ``statusLine`` entry in ``settings.json`` pointing at it.
The entry is only ever removed when its command names that script, so a
status line configured by the user or another tool is never touched.
"""

import json
import stat
from pathlib import Path
from typing import Any

from ariadna.core.logging_config import get_logger
from ariadna.setup.fs import copy_file
from ariadna.setup.layout import InstallContext

logger = get_logger("ariadna.statusline")

STATUSLINE_SCRIPT = "ariadna-statusline.sh"
SETTINGS_NAME = "settings.json"


class StatuslineHook:
    """Install or remove the Ariadna status line."""

    def __init__(self, context: InstallContext):
        self.context = context

    @property
    def script_path(self) -> Path:
        return self.context.target_dir / STATUSLINE_SCRIPT

    @property
    def settings_path(self) -> Path:
        return self.context.target_dir / SETTINGS_NAME

    @property
    def source_script(self) -> Path:
        return self.context.source_dir / "statusline" / STATUSLINE_SCRIPT

    @staticmethod
    def is_ours(settings: dict[str, Any]) -> bool:
        """Whether settings.json's statusLine was installed by Ariadna."""
        status_line = settings.get("statusLine")
        if not isinstance(status_line, dict):
            return False
        command = status_line.get("command")
        return isinstance(command, str) and STATUSLINE_SCRIPT in command

    def _load_settings(self) -> dict[str, Any] | None:
        """Read settings.json; {} when absent, None when it is not a JSON object."""
        if not self.settings_path.exists():
            return {}
        try:
            settings = json.loads(self.settings_path.read_bytes())
        except (json.JSONDecodeError, UnicodeDecodeError):
            return None
        return settings if isinstance(settings, dict) else None

    def _write_settings(self, settings: dict[str, Any]) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        self.settings_path.write_text(
            json.dumps(settings, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )

    def install(self, force: bool = False) -> tuple[bool, str]:
        """Copy the script and point settings.json's statusLine at it.

        Args:
            force: Replace a statusLine that Ariadna did not install

        Returns:
            Tuple of (installed, message)
        """
        if not self.source_script.is_file():
            return False, "No bundled statusline script"

        settings = self._load_settings()
        if settings is None:
            logger.warning("settings.json is not valid JSON, statusline skipped", path=self.settings_path)
            return False, "settings.json is not valid JSON - statusline not installed"

        if "statusLine" in settings and not self.is_ours(settings) and not force:
            return False, "A custom statusLine is already configured - left unchanged"

        copy_file(self.source_script, self.script_path)
        mode = self.script_path.stat().st_mode
        self.script_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        settings["statusLine"] = {
            "type": "command",
            "command": f"bash {self.script_path.as_posix()}",
        }
        self._write_settings(settings)
        logger.info("Statusline installed", script_path=self.script_path)
        return True, "Statusline installed"

    def remove(self) -> tuple[bool, str]:
        """Remove the script and, if it identifies as ours, the statusLine entry.

        Returns:
            Tuple of (settings_entry_removed, message)
        """
        script_removed = self.script_path.is_file()
        self.script_path.unlink(missing_ok=True)

        settings = self._load_settings()
        if settings is None:
            logger.warning("settings.json is not valid JSON, left untouched", path=self.settings_path)
            return False, "settings.json is not valid JSON - left untouched"

        if not self.is_ours(settings):
            if script_removed:
                return False, "Removed statusline script"
            return False, "No Ariadna statusline configured"

        del settings["statusLine"]
        self._write_settings(settings)
        logger.info("Statusline removed from settings.json", path=self.settings_path)
        return True, "Removed statusline"
