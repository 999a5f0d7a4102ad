"""Core infrastructure: errors, configuration and logging.

Only the error hierarchy is re-exported here; `config` and `logging` depend on
`dirarchiver.types` and are imported by their module path.
"""

from dirarchiver.core.errors import (
    ArchiveRunError,
    ArchiveWriteError,
    ChannelError,
    CompressionError,
    ConfigError,
    DirArchiverError,
    DirectoryListError,
    FileError,
    FileReadError,
    PathResolutionError,
)

__all__ = [
    "ArchiveRunError",
    "ArchiveWriteError",
    "ChannelError",
    "CompressionError",
    "ConfigError",
    "DirArchiverError",
    "DirectoryListError",
    "FileError",
    "FileReadError",
    "PathResolutionError",
]
