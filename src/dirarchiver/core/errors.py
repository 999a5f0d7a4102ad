"""Error handling with friendly messages."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dirarchiver.types import RunReport


class DirArchiverError(Exception):
    """Base exception for all dirarchiver errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ConfigError(DirArchiverError):
    """Configuration error."""

    pass


class PathResolutionError(DirArchiverError):
    """An absolute path could not be determined."""

    pass


class FileError(DirArchiverError):
    """File operation error (open, read or write)."""

    pass


class DirectoryListError(FileError):
    """A directory could not be opened or read."""

    def __init__(self, path: Path | str, cause: BaseException | None = None) -> None:
        self.path = Path(path)
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(
            f"Cannot list directory '{path}'{detail}",
            "Check that the directory exists and is readable",
        )


class FileReadError(FileError):
    """One or more source files of a directory could not be read."""

    def __init__(self, directory: Path | str, failures: list[tuple[Path, BaseException]]) -> None:
        self.directory = Path(directory)
        self.failures = list(failures)
        names = ", ".join(f"'{p}' ({type(e).__name__}: {e})" for p, e in self.failures[:5])
        more = f" and {len(self.failures) - 5} more" if len(self.failures) > 5 else ""
        super().__init__(
            f"Failed to read {len(self.failures)} file(s) in '{directory}': {names}{more}",
            "Fix permissions or rerun with --on-read-error skip",
        )


class CompressionError(DirArchiverError):
    """The archive encoder rejected its input or failed mid-stream."""

    pass


class ArchiveWriteError(DirArchiverError):
    """An entry could not be appended to an archive."""

    pass


class ChannelError(DirArchiverError):
    """A payload could not be delivered because the receiving side is gone."""

    pass


class ArchiveRunError(DirArchiverError):
    """One or more top-level directories failed during an isolated run."""

    def __init__(self, report: RunReport) -> None:
        self.report = report
        failed = ", ".join(str(p.name) for p, _e in report.failed)
        super().__init__(
            f"{len(report.failed)} director(y/ies) failed to archive: {failed}",
            "See the error lines above for the cause of each failure",
        )
