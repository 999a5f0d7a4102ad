"""Concurrent fan-in strategy.

Pipeline for one directory:

1. Collect every regular file of the subtree (breadth first, no symlinks).
2. A fixed pool of reader tasks pulls paths from a work queue, reads each
   file fully and sends a FilePayload into a bounded PayloadChannel. A full
   channel blocks the sender, which throttles readers against the writer.
3. A single writer task owns the ZipFile and appends payloads in arrival
   order. Entry order is therefore not the traversal order.

Read failures never take the process down: with the `abort` policy the pool
stops taking new work and the directory fails with FileReadError; with `skip`
the file is left out and reported in ArchiveResult.skipped.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path

from dirarchiver.core.errors import (
    ArchiveWriteError,
    ChannelError,
    FileError,
    FileReadError,
)
from dirarchiver.core.logging import get_logger
from dirarchiver.listing import collect_files
from dirarchiver.paths import archive_path_for
from dirarchiver.strategies.base import COMPRESSION, arcname_for, zip_info_for
from dirarchiver.types import ArchiveResult, FilePayload, ReadErrorPolicy, StrategyName

_logger = get_logger(__name__)

DEFAULT_CHANNEL_CAPACITY = 1024
DEFAULT_MAX_READERS = 16


class PayloadChannel:
    """Bounded channel from many reader tasks to one writer task.

    - send() blocks while the channel is full.
    - receive() returns None once the channel is closed and drained.
    - abandon() is called by the receiver when it stops consuming; blocked
      and later senders then fail with ChannelError.
    """

    def __init__(self, capacity: int = DEFAULT_CHANNEL_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self._queue: asyncio.Queue[FilePayload | None] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self._abandoned = False
        self._exhausted = False

    @property
    def closed(self) -> bool:
        return self._closed

    def qsize(self) -> int:
        return self._queue.qsize()

    async def send(self, payload: FilePayload) -> None:
        """Hand `payload` over to the receiver.

        Raises:
            ChannelError: If the channel is closed or the receiver is gone.
        """
        if self._closed:
            raise ChannelError(f"Channel closed; cannot deliver '{payload.arcname}'")
        await self._queue.put(payload)
        if self._abandoned:
            # Pass the wake-up on to the next blocked sender.
            self._discard_pending()
            raise ChannelError(f"Archive writer stopped; '{payload.arcname}' was dropped")

    async def receive(self) -> FilePayload | None:
        if self._exhausted or self._abandoned:
            return None
        item = await self._queue.get()
        if item is None:
            self._exhausted = True
        return item

    async def close(self) -> None:
        """Signal that no more payloads will be sent."""
        if self._closed:
            return
        self._closed = True
        if not self._abandoned:
            await self._queue.put(None)

    def abandon(self) -> None:
        """Stop consuming; pending payloads are discarded."""
        self._abandoned = True
        self._closed = True
        self._discard_pending()

    def _discard_pending(self) -> None:
        # Each removed item wakes one blocked sender.
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break


@dataclass
class _ReadState:
    stop: asyncio.Event = field(default_factory=asyncio.Event)
    failures: list[tuple[Path, BaseException]] = field(default_factory=list)
    bytes_read: int = 0
    # Held while an entry is appended and while a failed archive is discarded.
    zip_lock: threading.Lock = field(default_factory=threading.Lock)


class ConcurrentFanIn:
    """Bounded concurrent readers feeding a single archive writer."""

    name = StrategyName.FANIN

    def __init__(
        self,
        *,
        extension: str = "zip",
        compression_level: int = 6,
        channel_capacity: int = DEFAULT_CHANNEL_CAPACITY,
        max_readers: int = DEFAULT_MAX_READERS,
        on_read_error: ReadErrorPolicy = ReadErrorPolicy.ABORT,
    ) -> None:
        if max_readers < 1:
            raise ValueError("max_readers must be >= 1")
        self.extension = extension
        self.compression_level = compression_level
        self.channel_capacity = channel_capacity
        self.max_readers = max_readers
        self.on_read_error = on_read_error

    async def archive(self, directory: Path) -> ArchiveResult:
        """Archive the whole subtree of `directory`.

        Raises:
            FileError: If the archive file cannot be created.
            FileReadError: If a source file cannot be read (abort policy).
            ArchiveWriteError: If an entry cannot be appended.
        """
        target = archive_path_for(directory, self.extension)
        files = await collect_files(directory, recursive=True)
        _logger.verbose(f"fanin: {len(files)} file(s) under {directory}")

        try:
            zf = await asyncio.to_thread(
                zipfile.ZipFile,
                target,
                "w",
                compression=COMPRESSION,
                compresslevel=self.compression_level,
            )
        except OSError as e:
            raise FileError(
                f"Cannot create archive '{target}': {e}",
                "Check permissions of the parent directory",
            ) from e

        state = _ReadState()
        try:
            entries = await self._run_pipeline(directory, files, zf, state, target)
        except BaseException:
            await asyncio.to_thread(self._discard, zf, target, state.zip_lock)
            raise

        if state.failures and self.on_read_error is ReadErrorPolicy.ABORT:
            await asyncio.to_thread(self._discard, zf, target, state.zip_lock)
            raise FileReadError(directory, state.failures)

        try:
            await asyncio.to_thread(zf.close)
        except (OSError, ValueError, zlib.error) as e:
            raise ArchiveWriteError(f"Failed to finalize archive '{target}': {e}") from e

        return ArchiveResult(
            source=directory,
            archive=target,
            entries=entries,
            bytes_read=state.bytes_read,
            skipped=[(p, f"{type(e).__name__}: {e}") for p, e in state.failures],
        )

    async def _run_pipeline(
        self,
        directory: Path,
        files: list[Path],
        zf: zipfile.ZipFile,
        state: _ReadState,
        target: Path,
    ) -> int:
        work: asyncio.Queue[Path] = asyncio.Queue()
        for path in files:
            work.put_nowait(path)

        channel = PayloadChannel(self.channel_capacity)
        writer = asyncio.create_task(self._drain(channel, zf, target, state.zip_lock))
        readers = [
            asyncio.create_task(self._read_worker(directory, work, channel, state))
            for _ in range(min(self.max_readers, len(files)))
        ]

        try:
            outcomes = await asyncio.gather(*readers, return_exceptions=True)
            await channel.close()
            entries = await writer
        except BaseException:
            for task in (*readers, writer):
                task.cancel()
            await asyncio.gather(*readers, writer, return_exceptions=True)
            raise

        errors = [o for o in outcomes if isinstance(o, BaseException)]
        for err in errors:
            # ChannelError only happens after the writer failed, which
            # `await writer` has already raised.
            if not isinstance(err, ChannelError):
                raise err
        return entries

    async def _read_worker(
        self,
        directory: Path,
        work: asyncio.Queue[Path],
        channel: PayloadChannel,
        state: _ReadState,
    ) -> None:
        while not state.stop.is_set():
            try:
                path = work.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                data = await asyncio.to_thread(path.read_bytes)
                info = await asyncio.to_thread(
                    zip_info_for, directory, path, self.compression_level
                )
            except OSError as e:
                state.failures.append((path, e))
                if self.on_read_error is ReadErrorPolicy.ABORT:
                    _logger.warning(f"fanin: cannot read {path}: {e}; aborting {directory.name}")
                    state.stop.set()
                    return
                _logger.warning(f"fanin: skipping unreadable file {path}: {e}")
                continue

            state.bytes_read += len(data)
            payload = FilePayload(arcname=arcname_for(directory, path), data=data, info=info)
            del data
            _logger.verbose(f"fanin: read {path} ({len(payload.data)} bytes)")
            await channel.send(payload)

    async def _drain(
        self,
        channel: PayloadChannel,
        zf: zipfile.ZipFile,
        target: Path,
        zip_lock: threading.Lock,
    ) -> int:
        """Append every received payload to the archive; single consumer."""
        entries = 0
        try:
            while True:
                payload = await channel.receive()
                if payload is None:
                    return entries
                try:
                    await asyncio.to_thread(_append, zf, zip_lock, payload)
                except (OSError, ValueError, RuntimeError, zipfile.LargeZipFile, zlib.error) as e:
                    raise ArchiveWriteError(
                        f"Failed to append '{payload.arcname}' to '{target}': {e}"
                    ) from e
                entries += 1
        except BaseException:
            channel.abandon()
            raise

    @staticmethod
    def _discard(zf: zipfile.ZipFile, target: Path, zip_lock: threading.Lock) -> None:
        """Close and remove an archive that will not be completed.

        Waits for an append still running in a worker thread; cancelling the
        writer task does not stop that thread.
        """
        with zip_lock, contextlib.suppress(OSError, ValueError, zlib.error):
            zf.close()
        with contextlib.suppress(OSError):
            target.unlink()


def _append(zf: zipfile.ZipFile, zip_lock: threading.Lock, payload: FilePayload) -> None:
    with zip_lock:
        zf.writestr(payload.info or payload.arcname, payload.data)
