"""Bulk strategy: compress a whole directory in one blocking call.

The compression runs in a worker thread via `asyncio.to_thread` and its
result is awaited, so failures reach the caller.
"""

from __future__ import annotations

import asyncio
import zipfile
from pathlib import Path

from dirarchiver.core.errors import CompressionError
from dirarchiver.core.logging import get_logger
from dirarchiver.listing import walk_files
from dirarchiver.paths import archive_path_for
from dirarchiver.strategies.base import COMPRESSION, arcname_for
from dirarchiver.types import ArchiveResult, StrategyName

_logger = get_logger(__name__)


class BulkCompress:
    """Whole-directory compression in a blocking worker."""

    name = StrategyName.BULK

    def __init__(self, *, extension: str = "zip", compression_level: int = 6) -> None:
        self.extension = extension
        self.compression_level = compression_level

    async def archive(self, directory: Path) -> ArchiveResult:
        return await asyncio.to_thread(self._compress_directory, directory)

    def _compress_directory(self, directory: Path) -> ArchiveResult:
        target = archive_path_for(directory, self.extension)
        result = ArchiveResult(source=directory, archive=target)

        files = walk_files(directory, recursive=False)

        try:
            with zipfile.ZipFile(
                target,
                "w",
                compression=COMPRESSION,
                compresslevel=self.compression_level,
                strict_timestamps=False,
            ) as zf:
                for path in files:
                    zf.write(path, arcname_for(directory, path))
                    result.entries += 1
                    result.bytes_read += path.stat().st_size
                    _logger.verbose(f"bulk: added {path}")
        except (OSError, ValueError, zipfile.BadZipFile, zipfile.LargeZipFile) as e:
            raise CompressionError(
                f"Failed to compress '{directory}' into '{target}': {e}",
                "Check free disk space and permissions next to the directory",
            ) from e

        return result
