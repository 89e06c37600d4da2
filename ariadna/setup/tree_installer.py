"""Copy the release tree into the target and rebuild the ledger from disk."""

import shutil
from pathlib import Path

from ariadna.core.logging_config import get_logger
from ariadna.setup.fs import compute_dir_hash, copy_file, rmtree_robust
from ariadna.setup.layout import InstallContext, ManagedRoot
from ariadna.setup.models import Ledger, utc_timestamp

logger = get_logger("ariadna.tree_installer")


class TreeInstaller:
    """Install managed roots from the release tree.

    Owned roots are deleted and recreated verbatim from the source. Shared
    roots only receive the files their predicate accepts; other files in
    them are left alone.
    """

    def __init__(self, context: InstallContext):
        self.context = context

    def _source_files(self, root: ManagedRoot) -> dict[str, Path]:
        """Map target-relative paths to source files for one root."""
        src_root = self.context.source_path(root.rel_path)
        if not src_root.is_dir():
            return {}

        if root.shared:
            candidates = [f for f in src_root.iterdir() if f.is_file() and root.owns_name(f.name)]
        else:
            candidates = [f for f in src_root.rglob("*") if f.is_file()]

        return {
            f"{root.rel_path}/{f.relative_to(src_root).as_posix()}": f
            for f in candidates
        }

    def managed_paths(self) -> set[str]:
        """Target-relative paths the current release installs.

        Recomputed from the source tree on every call, plus the generated
        version marker.
        """
        paths: set[str] = set()
        for root in self.context.roots:
            paths.update(self._source_files(root))
        paths.add(self.context.version_marker)
        return paths

    def copy_trees(self) -> dict[str, int]:
        """Copy every managed root.

        Returns:
            Number of files installed per root (keyed by root rel_path)
        """
        counts = {}
        for root in self.context.roots:
            if root.shared:
                counts[root.rel_path] = self._copy_shared_root(root)
            else:
                counts[root.rel_path] = self._replace_owned_root(root)
            logger.info(
                "Installed managed root",
                root=root.rel_path,
                file_count=counts[root.rel_path],
            )
        return counts

    def _replace_owned_root(self, root: ManagedRoot) -> int:
        src = self.context.source_path(root.rel_path)
        dst = self.context.target_path(root.rel_path)

        if dst.is_dir() or dst.is_symlink():
            rmtree_robust(dst)
        elif dst.exists():
            dst.unlink()

        if src.is_dir():
            dst.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(src, dst, symlinks=False)
        else:
            dst.mkdir(parents=True, exist_ok=True)

        return len([f for f in dst.rglob("*") if f.is_file()])

    def _copy_shared_root(self, root: ManagedRoot) -> int:
        dst_root = self.context.target_path(root.rel_path)
        dst_root.mkdir(parents=True, exist_ok=True)

        for rel_path, src in self._source_files(root).items():
            copy_file(src, self.context.target_path(rel_path))

        return len([f for f in dst_root.iterdir() if f.is_file() and root.owns_name(f.name)])

    def write_version(self) -> Path:
        """Write the version marker inside the content root."""
        dest = self.context.target_path(self.context.version_marker)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(self.context.version, encoding="utf-8")
        return dest

    def build_ledger(self) -> Ledger:
        """Hash what is on disk under the managed roots now.

        Digests come from the installed files, not the source tree, so the
        ledger always describes literal installed content.
        """
        files: dict[str, str] = {}
        for root in self.context.roots:
            dst_root = self.context.target_path(root.rel_path)
            hashes = compute_dir_hash(
                dst_root,
                predicate=root.owns_name if root.shared else None,
                recursive=not root.shared,
            )
            for rel_path, digest in hashes.items():
                files[f"{root.rel_path}/{rel_path}"] = digest

        return Ledger(
            version=self.context.version,
            timestamp=utc_timestamp(self.context.clock()),
            files=dict(sorted(files.items())),
        )
