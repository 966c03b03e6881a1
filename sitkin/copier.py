"""Content-addressed copying of project assets.

Files that are not templates or markdown are copied into the output
directory. Unless told otherwise, each copied file gets a content hash
embedded in its name (``assets/css/x.css`` becomes
``assets/css/x.k3JfA09bQz.css``) so it can be cached forever. The mapping from
old to new URL path is what pages use to rewrite their asset links.

Copying happens in two phases. Discovery walks the tree and decides each
file's destination name, hashing its bytes if needed. Materialization writes
the file, atomically, under that name.

Key classes:
- CopyPolicy: Decides which paths are skipped and which are hash-named.
- CopyFile: One file to copy, with its source and destination paths.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from .utils import file_hash, hashed_name

logger = logging.getLogger(__name__)

# Entry points referenced by fixed URLs; never renamed.
UNHASHED_SUFFIXES = ("", ".html")


@dataclass
class CopyPolicy:
    """Decides how a slash-separated relative path is copied.

    Attributes:
        ignore: Compiled globs for paths that are never copied.
        nohash: Compiled globs for paths that keep their name.
        dev_mode: When true, nothing is hash-named.
    """

    ignore: list[re.Pattern[str]] = field(default_factory=list)
    nohash: list[re.Pattern[str]] = field(default_factory=list)
    dev_mode: bool = False

    def is_ignored(self, relpath: str) -> bool:
        return _matches_any(self.ignore, relpath)

    def should_hash(self, relpath: str) -> bool:
        if self.dev_mode:
            return False
        if PurePosixPath(relpath).suffix in UNHASHED_SUFFIXES:
            return False
        return not _matches_any(self.nohash, relpath)


def _matches_any(patterns: Iterable[re.Pattern[str]], relpath: str) -> bool:
    return any(p.match(relpath) for p in patterns)


@dataclass(frozen=True)
class CopyFile:
    """A file to copy from the project into the output directory.

    Attributes:
        src_path: Slash path relative to the source directory.
        dst_path: Slash path relative to the destination directory. Equal to
            src_path unless the file is hash-named.
    """

    src_path: str
    dst_path: str

    @property
    def hashed(self) -> bool:
        return self.src_path != self.dst_path

    def copy(self, src_dir: Path, dst_dir: Path) -> Path:
        """Copy the file, replacing any existing destination atomically.

        The content is written to a temporary file next to the destination
        and renamed into place, so the final name never refers to a partly
        written file.

        Args:
            src_dir: Directory src_path is relative to.
            dst_dir: Directory dst_path is relative to.

        Returns:
            Path of the written destination file.
        """
        src = src_dir / self.src_path
        dst = dst_dir / self.dst_path
        dst.parent.mkdir(parents=True, exist_ok=True)
        with open(src, "rb") as fsrc:
            with tempfile.NamedTemporaryFile(
                dir=dst.parent, prefix=f"{dst.name}.", suffix=".tmp", delete=False
            ) as tmp:
                try:
                    shutil.copyfileobj(fsrc, tmp)
                except BaseException:
                    tmp.close()
                    os.unlink(tmp.name)
                    raise
        try:
            shutil.copymode(src, tmp.name)
            os.replace(tmp.name, dst)
        except BaseException:
            os.unlink(tmp.name)
            raise
        return dst


def discover_copy_files(
    root: Path, name: str, policy: CopyPolicy
) -> tuple[list[CopyFile], dict[str, str]]:
    """Find the files to copy under one top-level project entry.

    Paths are matched against the policy as slash paths relative to root,
    so ``"*.sh"`` only matches at the top level while ``"scripts/*.sh"``
    matches inside ``scripts``. An ignored directory is skipped entirely.

    Args:
        root: Project root directory.
        name: Name of a file or directory directly inside root.
        policy: Copy policy to apply.

    Returns:
        Tuple of (copy files in sorted path order, mapping from original URL
        path to hashed URL path for every renamed file).
    """
    copy_files: list[CopyFile] = []
    hash_assets: dict[str, str] = {}

    def visit(relpath: str) -> None:
        if policy.is_ignored(relpath):
            return
        cf = CopyFile(relpath, relpath)
        if policy.should_hash(relpath):
            token = file_hash(root / relpath)
            cf = CopyFile(relpath, hashed_name(relpath, token))
            hash_assets[f"/{cf.src_path}"] = f"/{cf.dst_path}"
        copy_files.append(cf)

    top = root / name
    if not top.is_dir():
        visit(name)
        return copy_files, hash_assets
    if policy.is_ignored(name):
        return copy_files, hash_assets

    for dirpath, dirnames, filenames in os.walk(top, onerror=_raise):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        dirnames[:] = sorted(
            d for d in dirnames if not policy.is_ignored(f"{rel_dir}/{d}")
        )
        for filename in sorted(filenames):
            visit(f"{rel_dir}/{filename}")
    return copy_files, hash_assets


def _raise(error: OSError) -> None:
    raise error


def copy_tree(dst_root: Path, src_root: Path, policy: CopyPolicy) -> dict[str, str]:
    """Copy every file under src_root into dst_root.

    Args:
        dst_root: Destination directory.
        src_root: Source directory.
        policy: Copy policy to apply.

    Returns:
        Mapping from original URL path to hashed URL path for renamed files.
    """
    copy_files: list[CopyFile] = []
    hash_assets: dict[str, str] = {}
    for name in sorted(os.listdir(src_root)):
        found, hashed = discover_copy_files(src_root, name, policy)
        copy_files.extend(found)
        hash_assets.update(hashed)
    for cf in copy_files:
        cf.copy(src_root, dst_root)
        logger.debug("Copied %s -> %s", cf.src_path, cf.dst_path)
    return hash_assets
