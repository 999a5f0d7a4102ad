"""Archive strategy interface.

All strategies turn one source directory into one sibling archive file. They
differ only in how reading and compression are scheduled.
"""

from __future__ import annotations

import zipfile
from pathlib import Path
from typing import Protocol

from dirarchiver.types import ArchiveResult, StrategyName

COMPRESSION = zipfile.ZIP_DEFLATED


class ArchiveStrategy(Protocol):
    """Turn a directory into an archive.

    Implementations must not touch any directory other than `directory` and
    its archive path, and must propagate failures as DirArchiverError
    subclasses.
    """

    name: StrategyName

    async def archive(self, directory: Path) -> ArchiveResult:
        """Write `<parent>/<directory-name>.<ext>` for `directory`.

        Args:
            directory: Absolute path of the directory to archive

        Returns:
            Result describing the written archive

        Raises:
            DirArchiverError: If the archive cannot be produced
        """
        ...


def arcname_for(directory: Path, path: Path) -> str:
    """Entry name: POSIX path of `path` relative to the archived directory."""
    return path.relative_to(directory).as_posix()


def zip_info_for(directory: Path, path: Path, compression_level: int) -> zipfile.ZipInfo:
    """Build entry metadata (name, mtime, mode, size) for a source file."""
    info = zipfile.ZipInfo.from_file(
        path, arcname_for(directory, path), strict_timestamps=False
    )
    info.compress_type = COMPRESSION
    # ZipFile.open() only applies the archive-wide level to entries it creates
    # from a name; an explicit ZipInfo carries its own.
    if hasattr(info, "compress_level"):
        info.compress_level = compression_level
    else:  # Python < 3.13
        info._compresslevel = compression_level
    return info
