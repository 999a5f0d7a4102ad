"""Streaming strategy: produce the archive as a lazy sequence of chunks.

`iter_archive_chunks` drives `zipfile.ZipFile` against an unseekable
in-memory sink. Source files are read in blocks of `chunk_size` and the sink
is drained whenever it holds at least one chunk, so memory stays bounded by
roughly one chunk plus the deflate state regardless of the archive size.

The async side pulls chunks in a worker thread and appends each one to the
destination file as soon as it is available.
"""

from __future__ import annotations

import asyncio
import zipfile
import zlib
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from dirarchiver.core.errors import CompressionError, FileError
from dirarchiver.core.logging import get_logger
from dirarchiver.listing import collect_files
from dirarchiver.paths import archive_path_for
from dirarchiver.strategies.base import COMPRESSION, zip_info_for
from dirarchiver.types import ArchiveResult, StrategyName

_logger = get_logger(__name__)


class _ChunkSink:
    """Write-only, unseekable buffer that zipfile writes the archive into.

    It deliberately has no tell()/seek(): zipfile then switches to data
    descriptors and never rewrites earlier bytes.
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    def write(self, data: bytes) -> int:
        self._buf += data
        return len(data)

    def flush(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._buf)

    def take(self) -> bytes:
        data = bytes(self._buf)
        self._buf.clear()
        return data


def _stream_entry(
    zf: zipfile.ZipFile,
    sink: _ChunkSink,
    directory: Path,
    path: Path,
    chunk_size: int,
    compression_level: int,
) -> Iterator[bytes]:
    info = zip_info_for(directory, path, compression_level)
    with open(path, "rb") as src, zf.open(info, "w") as dest:
        while True:
            block = src.read(chunk_size)
            if not block:
                break
            dest.write(block)
            if len(sink) >= chunk_size:
                yield sink.take()
    if len(sink):
        yield sink.take()


def iter_archive_chunks(
    directory: Path,
    files: list[Path],
    *,
    chunk_size: int = 64 * 1024,
    compression_level: int = 6,
) -> Iterator[bytes]:
    """Yield the bytes of a zip archive of `files`, chunk by chunk.

    Entry names are relative to `directory`. Concatenating every yielded
    chunk gives a complete archive.

    Raises:
        FileError: If a source file cannot be read.
        CompressionError: If the encoder fails.
    """
    sink = _ChunkSink()
    with zipfile.ZipFile(
        sink, "w", compression=COMPRESSION, compresslevel=compression_level
    ) as zf:
        for path in files:
            try:
                yield from _stream_entry(zf, sink, directory, path, chunk_size, compression_level)
            except OSError as e:
                raise FileError(f"Failed to read '{path}': {e}") from e
            except (ValueError, zipfile.LargeZipFile, zlib.error, RuntimeError) as e:
                # ValueError covers entry names that cannot be encoded.
                raise CompressionError(f"Failed to compress '{path}': {e}") from e
    # Central directory is written on close.
    if len(sink):
        yield sink.take()


def _next_chunk(chunks: Iterator[bytes]) -> bytes | None:
    return next(chunks, None)


class StreamingCompress:
    """Incremental compression written chunk by chunk."""

    name = StrategyName.STREAM

    def __init__(
        self,
        *,
        extension: str = "zip",
        compression_level: int = 6,
        chunk_size: int = 64 * 1024,
    ) -> None:
        self.extension = extension
        self.compression_level = compression_level
        self.chunk_size = chunk_size

    async def archive(self, directory: Path) -> ArchiveResult:
        """Stream the archive of `directory` into its sibling file.

        A failed write leaves the partially written archive in place.

        Raises:
            FileError: If the destination cannot be created or written, or a
                source file cannot be read.
            CompressionError: If the encoder fails.
        """
        target = archive_path_for(directory, self.extension)
        files = await collect_files(directory, recursive=False)
        result = ArchiveResult(source=directory, archive=target)

        try:
            out: BinaryIO = await asyncio.to_thread(open, target, "wb")
        except OSError as e:
            raise FileError(
                f"Cannot create archive '{target}': {e}",
                "Check permissions of the parent directory",
            ) from e

        chunks = iter_archive_chunks(
            directory,
            files,
            chunk_size=self.chunk_size,
            compression_level=self.compression_level,
        )
        written = 0
        try:
            while True:
                chunk = await asyncio.to_thread(_next_chunk, chunks)
                if chunk is None:
                    break
                try:
                    await asyncio.to_thread(out.write, chunk)
                except OSError as e:
                    raise FileError(f"Failed to write archive '{target}': {e}") from e
                written += len(chunk)
        finally:
            chunks.close()
            out.close()

        result.entries = len(files)
        result.bytes_read = sum(p.stat().st_size for p in files)
        _logger.verbose(f"stream: wrote {written} bytes to {target}")
        return result
