"""Directory listing and file collection.

Blocking `os.scandir` calls run through `asyncio.to_thread` so the event loop
is never blocked on directory I/O. Symlinks are never followed.
"""

from __future__ import annotations

import asyncio
import os
from collections import deque
from collections.abc import AsyncIterator
from pathlib import Path

from dirarchiver.core.errors import DirectoryListError
from dirarchiver.core.logging import get_logger
from dirarchiver.types import DirEntry, EntryKind

_logger = get_logger(__name__)


def _entry_kind(entry: os.DirEntry[str]) -> EntryKind:
    if entry.is_symlink():
        return EntryKind.SYMLINK
    if entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    if entry.is_file(follow_symlinks=False):
        return EntryKind.FILE
    return EntryKind.OTHER


def _next_entry(it: os.ScandirIterator[str]) -> os.DirEntry[str] | None:
    return next(it, None)


async def list_entries(root: Path) -> AsyncIterator[DirEntry]:
    """Yield the immediate children of `root`, one level only.

    The directory is opened before the first entry is produced, so an
    unreadable root fails before any entry is seen. Each call re-reads the
    directory.

    Raises:
        DirectoryListError: If `root` cannot be opened or read.
    """
    try:
        it = await asyncio.to_thread(os.scandir, root)
    except OSError as e:
        raise DirectoryListError(root, e) from e

    try:
        while True:
            try:
                entry = await asyncio.to_thread(_next_entry, it)
            except OSError as e:
                raise DirectoryListError(root, e) from e
            if entry is None:
                return
            yield DirEntry(name=entry.name, path=Path(entry.path), kind=_entry_kind(entry))
    finally:
        it.close()


def _scan_dir(directory: Path) -> tuple[list[Path], list[Path]]:
    """Return (regular files, subdirectories) of one directory, sorted by name."""
    files: list[Path] = []
    dirs: list[Path] = []
    try:
        with os.scandir(directory) as it:
            for entry in sorted(it, key=lambda e: e.name):
                kind = _entry_kind(entry)
                if kind is EntryKind.FILE:
                    files.append(Path(entry.path))
                elif kind is EntryKind.DIRECTORY:
                    dirs.append(Path(entry.path))
                elif kind is EntryKind.SYMLINK:
                    _logger.verbose(f"not following symlink {entry.path}")
    except OSError as e:
        raise DirectoryListError(directory, e) from e
    return files, dirs


def walk_files(directory: Path, *, recursive: bool) -> list[Path]:
    """Collect the regular files under `directory`.

    With `recursive=False` only the files directly inside `directory` are
    returned. With `recursive=True` the whole subtree is traversed breadth
    first; symlinked directories are not descended, so link cycles cannot
    occur.

    Raises:
        DirectoryListError: If a directory in the tree cannot be read.
    """
    files, subdirs = _scan_dir(directory)
    if not recursive:
        return files

    pending = deque(subdirs)
    while pending:
        more_files, more_dirs = _scan_dir(pending.popleft())
        files.extend(more_files)
        pending.extend(more_dirs)
    return files


async def collect_files(directory: Path, *, recursive: bool) -> list[Path]:
    """Async wrapper around `walk_files` that runs in a worker thread."""
    return await asyncio.to_thread(walk_files, directory, recursive=recursive)
