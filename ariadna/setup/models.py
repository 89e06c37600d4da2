"""Persisted data models for the installer."""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FileStatus(str, Enum):
    """State of a tracked file relative to the ledger."""
    UNMODIFIED = "unmodified"
    MODIFIED = "modified"
    MISSING = "missing"


class Ledger(BaseModel):
    """Installed-file ledger: what the last install wrote and its content digest."""
    version: Optional[str] = None
    timestamp: Optional[str] = None
    files: Dict[str, str] = Field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize with sorted file keys so equal ledgers are byte-identical."""
        doc = {
            "version": self.version,
            "timestamp": self.timestamp,
            "files": dict(sorted(self.files.items())),
        }
        return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


class PatchBackupRecord(BaseModel):
    """Metadata written next to backed-up local modifications."""
    backed_up_at: str
    from_version: Optional[str] = None
    files: List[str] = Field(default_factory=list)

    def to_json(self) -> str:
        return json.dumps(self.model_dump(), indent=2, ensure_ascii=False) + "\n"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_timestamp(moment: datetime) -> str:
    """Format a moment as ISO-8601 UTC with second precision, e.g. 2026-01-31T09:15:00Z."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
