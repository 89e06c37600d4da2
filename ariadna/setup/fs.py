"""Filesystem helpers shared by the installer components."""

import hashlib
import os
import shutil
import stat
import sys
from pathlib import Path
from typing import Callable

HASH_CHUNK_SIZE = 8192


def compute_file_hash(file_path: Path) -> str:
    """Digest recorded in the ledger for one installed file.

    Directories, missing paths and other non-files digest to "" so callers
    can treat them as absent without a separate existence check.
    """
    if not file_path.is_file():
        return ""

    digest = hashlib.sha256()
    with file_path.open("rb") as f:
        for block in iter(lambda: f.read(HASH_CHUNK_SIZE), b""):
            digest.update(block)
    return digest.hexdigest()


def compute_dir_hash(
    dir_path: Path,
    predicate: Callable[[str], bool] | None = None,
    recursive: bool = True,
) -> dict[str, str]:
    """Digest every file under dir_path, keyed by POSIX path relative to it.

    predicate filters on the file name; with recursive=False only direct
    children are considered (the layout of a shared root).
    """
    hashes: dict[str, str] = {}

    if not dir_path.is_dir():
        return hashes

    candidates = dir_path.rglob("*") if recursive else dir_path.iterdir()
    for file_path in candidates:
        if not file_path.is_file():
            continue
        if predicate is not None and not predicate(file_path.name):
            continue
        hashes[file_path.relative_to(dir_path).as_posix()] = compute_file_hash(file_path)

    return hashes


def copy_file(src: Path, dst: Path) -> None:
    """Copy file with metadata, creating parent directories as needed."""
    dst.parent.mkdir(parents=True, exist_ok=True)
    shutil.copy2(src, dst)


def _retry_writable(func, path, exc: BaseException) -> None:
    """rmtree hook: make a read-only entry writable and remove it again.

    Anything other than a permission problem on a write-protected entry is
    re-raised unchanged, as is a failure of the second attempt.
    """
    if not isinstance(exc, PermissionError) or os.access(path, os.W_OK):
        raise exc
    try:
        os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)
        func(path)
    except OSError:
        raise exc


def _retry_writable_exc_info(func, path, exc_info) -> None:
    _retry_writable(func, path, exc_info[1] or OSError(f"Cannot remove {path}"))


def rmtree_robust(path: Path) -> None:
    """Delete an installed tree, including files the user made read-only.

    A symlinked root is unlinked; the tree it points at is left alone.

    Raises:
        OSError: If removal fails
    """
    if path.is_symlink():
        path.unlink()
        return

    # onerror is deprecated from 3.12 on
    if sys.version_info >= (3, 12):
        shutil.rmtree(path, onexc=_retry_writable)
    else:
        shutil.rmtree(path, onerror=_retry_writable_exc_info)
