"""Archive strategies and the name -> implementation registry."""

from __future__ import annotations

from collections.abc import Callable

from dirarchiver.core.config import ArchiveSettings
from dirarchiver.strategies.base import ArchiveStrategy, arcname_for
from dirarchiver.strategies.bulk import BulkCompress
from dirarchiver.strategies.fanin import ConcurrentFanIn, PayloadChannel
from dirarchiver.strategies.streaming import StreamingCompress, iter_archive_chunks
from dirarchiver.types import StrategyName


def _bulk(settings: ArchiveSettings) -> ArchiveStrategy:
    return BulkCompress(
        extension=settings.extension,
        compression_level=settings.compression_level,
    )


def _stream(settings: ArchiveSettings) -> ArchiveStrategy:
    return StreamingCompress(
        extension=settings.extension,
        compression_level=settings.compression_level,
        chunk_size=settings.chunk_size,
    )


def _fanin(settings: ArchiveSettings) -> ArchiveStrategy:
    return ConcurrentFanIn(
        extension=settings.extension,
        compression_level=settings.compression_level,
        channel_capacity=settings.channel_capacity,
        max_readers=settings.max_readers,
        on_read_error=settings.on_read_error,
    )


_FACTORIES: dict[StrategyName, Callable[[ArchiveSettings], ArchiveStrategy]] = {
    StrategyName.BULK: _bulk,
    StrategyName.STREAM: _stream,
    StrategyName.FANIN: _fanin,
}


def available_strategies() -> list[str]:
    return [name.value for name in StrategyName]


def create_strategy(name: str | StrategyName, settings: ArchiveSettings) -> ArchiveStrategy:
    """Build the strategy selected by `name`.

    Raises:
        ConfigError: If the name is unknown.
    """
    return _FACTORIES[StrategyName.parse(name)](settings)


__all__ = [
    "ArchiveStrategy",
    "BulkCompress",
    "ConcurrentFanIn",
    "PayloadChannel",
    "StreamingCompress",
    "arcname_for",
    "available_strategies",
    "create_strategy",
    "iter_archive_chunks",
]
