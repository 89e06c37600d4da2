"""Installed-file ledger persistence.

The ledger (``ariadna-manifest.json`` in the target root) is the only record
of what the installer owns. A missing or unreadable ledger is reported as
absent, which the installer treats as a fresh install.
"""

from pathlib import Path

from pydantic import ValidationError

from ariadna.core.logging_config import get_logger
from ariadna.setup.layout import InstallContext
from ariadna.setup.models import Ledger

logger = get_logger("ariadna.manifest")


class ManifestStore:
    """Load, save and delete the ledger for one target directory."""

    def __init__(self, context: InstallContext):
        self.context = context

    @property
    def path(self) -> Path:
        return self.context.manifest_path

    def load(self) -> Ledger | None:
        """Load the ledger.

        Returns:
            The ledger, or None when it is missing or cannot be parsed.

        Raises:
            OSError: If the file exists but cannot be read (permissions etc.)
        """
        try:
            raw = self.path.read_bytes()
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
            return None

        try:
            return Ledger.model_validate_json(raw)
        except (ValidationError, UnicodeDecodeError) as e:
            logger.warning(
                "Ignoring unparsable ledger, treating as fresh install",
                path=self.path,
                error=str(e).splitlines()[0],
            )
            return None

    def save(self, ledger: Ledger) -> Path:
        """Persist the ledger, replacing any previous one in full."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(ledger.to_json(), encoding="utf-8")
        logger.info("Ledger written", path=self.path, file_count=len(ledger.files))
        return self.path

    def delete(self) -> bool:
        """Remove the ledger. Returns True if a file was removed."""
        if not self.path.exists():
            return False
        self.path.unlink()
        return True
