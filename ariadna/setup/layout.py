"""Where the installed tree lives and which parts of it Ariadna owns.

Ownership is decided purely by location:

- An OWNED root (``commands/ariadna``, ``ariadna``) belongs entirely to the
  installer. It is replaced wholesale on every install and deleted on uninstall.
- A SHARED root (``agents``) also holds the user's own files. Only top-level
  files accepted by the root's ``is_managed`` predicate belong to the
  installer; everything else in that directory is never copied over, hashed,
  pruned or deleted.

Every component receives an :class:`InstallContext` at construction instead
of reading process-wide state.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from ariadna import VERSION
from ariadna.setup.models import utc_now

MANIFEST_NAME = "ariadna-manifest.json"
PATCHES_DIR = "ariadna-local-patches"
BACKUP_META_NAME = "backup-meta.json"
VERSION_MARKER = "ariadna/VERSION"

# Managed agent definitions in the shared agents/ directory
AGENT_PREFIX = "ariadna-"
AGENT_SUFFIX = ".md"


def is_managed_agent(name: str) -> bool:
    """Return True for agent files the installer owns (``ariadna-*.md``)."""
    return name.startswith(AGENT_PREFIX) and name.endswith(AGENT_SUFFIX)


class Ownership(str, Enum):
    OWNED = "owned"
    SHARED = "shared"


@dataclass(frozen=True)
class ManagedRoot:
    """A directory, relative to the target root, that the installer manages."""

    rel_path: str
    ownership: Ownership = Ownership.OWNED
    is_managed: Optional[Callable[[str], bool]] = None
    label: str = ""

    def __post_init__(self):
        if self.ownership is Ownership.SHARED and self.is_managed is None:
            raise ValueError(f"Shared root {self.rel_path!r} needs an is_managed predicate")

    @property
    def shared(self) -> bool:
        return self.ownership is Ownership.SHARED

    def owns_name(self, name: str) -> bool:
        """Whether a top-level entry with this name belongs to the installer."""
        if not self.shared:
            return True
        return self.is_managed(name)

    def contains(self, rel_path: str) -> bool:
        """Whether a target-relative POSIX path is owned through this root."""
        path = PurePosixPath(rel_path)
        root = PurePosixPath(self.rel_path)
        if self.shared:
            return path.parent == root and self.owns_name(path.name)
        return root in path.parents


DEFAULT_ROOTS: tuple[ManagedRoot, ...] = (
    ManagedRoot("commands/ariadna", label="commands"),
    ManagedRoot("agents", Ownership.SHARED, is_managed_agent, label="agents"),
    ManagedRoot("ariadna", label="workflows, templates, references"),
)


def is_safe_relative(rel_path: str) -> bool:
    """Reject empty, absolute and parent-escaping ledger paths."""
    if not rel_path:
        return False
    path = PurePosixPath(rel_path)
    return not path.is_absolute() and ".." not in path.parts and "\\" not in rel_path


@dataclass
class InstallContext:
    """Explicit configuration shared by every installer component.

    Attributes:
        target_dir: Directory receiving the install (e.g. ~/.claude)
        source_dir: Release tree to install from (read-only)
        version: Release version recorded in the ledger and VERSION marker
        roots: Managed roots, in install order
        version_marker: Target-relative path of the generated VERSION file
        clock: Source of "now" for ledger and backup timestamps
    """

    target_dir: Path
    source_dir: Path
    version: str = VERSION
    roots: tuple[ManagedRoot, ...] = DEFAULT_ROOTS
    version_marker: str = VERSION_MARKER
    clock: Callable[[], datetime] = field(default=utc_now)

    def __post_init__(self):
        self.target_dir = Path(self.target_dir)
        self.source_dir = Path(self.source_dir)

    def target_path(self, rel_path: str) -> Path:
        return self.target_dir.joinpath(*PurePosixPath(rel_path).parts)

    def source_path(self, rel_path: str) -> Path:
        return self.source_dir.joinpath(*PurePosixPath(rel_path).parts)

    def root_for(self, rel_path: str) -> ManagedRoot | None:
        for root in self.roots:
            if root.contains(rel_path):
                return root
        return None

    def owns_path(self, rel_path: str) -> bool:
        """Whether a ledger path is one the installer may back up or delete."""
        return is_safe_relative(rel_path) and self.root_for(rel_path) is not None

    @property
    def manifest_path(self) -> Path:
        return self.target_dir / MANIFEST_NAME

    @property
    def patches_dir(self) -> Path:
        return self.target_dir / PATCHES_DIR
