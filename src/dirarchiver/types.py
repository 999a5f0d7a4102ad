"""Shared types for the archival engine.

ASCII-only.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from dirarchiver.core.errors import ConfigError


class StrategyName(StrEnum):
    """Named archive strategies, fixed for a whole run."""

    BULK = "bulk"
    STREAM = "stream"
    FANIN = "fanin"

    @classmethod
    def parse(cls, value: str | StrategyName) -> StrategyName:
        """Parse a strategy name, accepting legacy aliases.

        Raises:
            ConfigError: If the name is unknown.
        """
        if isinstance(value, StrategyName):
            return value
        norm = str(value).strip().lower()
        norm = _STRATEGY_ALIASES.get(norm, norm)
        try:
            return cls(norm)
        except ValueError:
            allowed = ", ".join(sorted([m.value for m in cls] + list(_STRATEGY_ALIASES)))
            raise ConfigError(
                f"Unknown archive strategy: {value!r}",
                f"Use one of: {allowed}",
            ) from None


_STRATEGY_ALIASES = {
    "zip": "bulk",
    "zipper": "stream",
    "streaming": "stream",
    "async": "fanin",
}


class ReadErrorPolicy(StrEnum):
    """What the fan-in pipeline does when a source file cannot be read."""

    ABORT = "abort"
    SKIP = "skip"

    @classmethod
    def parse(cls, value: str | ReadErrorPolicy) -> ReadErrorPolicy:
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ConfigError(
                f"Invalid 'archive.on_read_error': {value!r}. Allowed values: abort, skip"
            ) from None


class EntryKind(StrEnum):
    """File type of a directory entry (symlinks are not followed)."""

    DIRECTORY = "directory"
    FILE = "file"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass(frozen=True)
class DirEntry:
    """Immediate child of a listed directory."""

    name: str
    path: Path
    kind: EntryKind

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY


@dataclass(frozen=True)
class FilePayload:
    """File content in flight from a reader task to the archive writer.

    `info` carries the source metadata (mtime, mode); without it the entry is
    stamped with the time it is written.
    """

    arcname: str
    data: bytes
    info: zipfile.ZipInfo | None = None


@dataclass
class ArchiveResult:
    """Outcome of archiving a single directory."""

    source: Path
    archive: Path
    entries: int = 0
    bytes_read: int = 0
    skipped: list[tuple[Path, str]] = field(default_factory=list)


@dataclass
class RunReport:
    """Outcome of one engine run over a root directory."""

    root: Path
    strategy: str
    archived: list[ArchiveResult] = field(default_factory=list)
    skipped: list[tuple[str, str]] = field(default_factory=list)
    failed: list[tuple[Path, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def summary(self) -> str:
        return (
            f"archived={len(self.archived)} skipped={len(self.skipped)} failed={len(self.failed)}"
        )
