"""Archival engine: select candidate directories and archive them one by one.

Concurrency, where it exists, lives inside a single strategy call. The engine
itself never starts directory N+1 before directory N has finished.
"""

from __future__ import annotations

import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from dirarchiver.core.errors import ArchiveRunError, DirArchiverError
from dirarchiver.core.logging import get_logger
from dirarchiver.listing import list_entries
from dirarchiver.paths import ExclusionFilter, PathMatcher
from dirarchiver.strategies.base import ArchiveStrategy
from dirarchiver.types import ArchiveResult, DirEntry, RunReport

_logger = get_logger(__name__)

HIDDEN_PREFIX = "."


@contextmanager
def _observe_directory(name: str, strategy: str) -> Iterator[dict[str, Any]]:
    """Log one summary line per directory, on success or failure."""
    start = time.perf_counter()
    summary: dict[str, Any] = {}
    try:
        yield summary
    except Exception as e:
        duration_ms = int((time.perf_counter() - start) * 1000)
        _logger.warning(
            f"archive status=failed duration_ms={duration_ms} dir={name!r} "
            f"strategy={strategy} error_type={type(e).__name__}"
        )
        raise
    else:
        duration_ms = int((time.perf_counter() - start) * 1000)
        parts = [
            "status=succeeded",
            f"duration_ms={duration_ms}",
            f"dir={name!r}",
            f"strategy={strategy}",
        ]
        for k in ("archive", "entries", "bytes", "skipped"):
            if k in summary:
                parts.append(f"{k}={summary[k]!r}")
        _logger.info("archive " + " ".join(parts))


class ArchivalEngine:
    """Archive every qualifying immediate subdirectory of a root."""

    def __init__(
        self,
        strategy: ArchiveStrategy,
        matcher: PathMatcher | None = None,
        *,
        hidden_prefix: str = HIDDEN_PREFIX,
        continue_on_error: bool = False,
    ) -> None:
        """Initialize engine.

        Args:
            strategy: Archive strategy used for every directory of the run
            matcher: Path normalizer for the root and exclusions
            hidden_prefix: Names starting with this prefix are skipped
            continue_on_error: Keep going after a failed directory and raise
                ArchiveRunError at the end instead of stopping at the first
                failure
        """
        self.strategy = strategy
        self.matcher = matcher or PathMatcher()
        self.hidden_prefix = hidden_prefix
        self.continue_on_error = continue_on_error

    async def run(
        self,
        root: str | Path,
        exclusions: Sequence[str | Path] = (),
        working_dir: str | Path | None = None,
    ) -> RunReport:
        """Archive each non-hidden, non-excluded subdirectory of `root`.

        Args:
            root: Directory whose immediate children are archived
            exclusions: Directories to skip, compared by normalized path
            working_dir: Base for relative root and exclusions

        Returns:
            Report of archived, skipped and failed directories

        Raises:
            DirectoryListError: If `root` cannot be listed.
            DirArchiverError: The first strategy failure (default mode).
            ArchiveRunError: After the run, if any directory failed and
                continue_on_error is set.
        """
        root_path = self.matcher.normalize(root, working_dir)
        exclusion_filter = ExclusionFilter(self.matcher, exclusions, working_dir)
        report = RunReport(root=root_path, strategy=str(self.strategy.name))

        _logger.info(f"archiving subdirectories of {root_path} (strategy={self.strategy.name})")

        async for entry in list_entries(root_path):
            reason = self._skip_reason(entry, exclusion_filter)
            if reason is not None:
                if entry.is_dir:
                    _logger.info(f"skip {entry.name} ({reason})")
                else:
                    _logger.verbose(f"skip {entry.name} ({reason})")
                report.skipped.append((entry.name, reason))
                continue

            try:
                result = await self._archive_one(entry)
            except DirArchiverError as e:
                if not self.continue_on_error:
                    raise
                _logger.error(f"{entry.name}: {e.message}")
                report.failed.append((entry.path, e))
                continue

            report.archived.append(result)

        _logger.info(f"done {report.summary()}")

        if report.failed:
            raise ArchiveRunError(report)
        return report

    def _skip_reason(self, entry: DirEntry, exclusion_filter: ExclusionFilter) -> str | None:
        if entry.name.startswith(self.hidden_prefix):
            return "hidden"
        if not entry.is_dir:
            return f"not a directory: {entry.kind.value}"
        if exclusion_filter.is_excluded(entry.path):
            return "excluded"
        return None

    async def _archive_one(self, entry: DirEntry) -> ArchiveResult:
        with _observe_directory(entry.name, str(self.strategy.name)) as summary:
            result = await self.strategy.archive(entry.path)
            summary.update(
                {
                    "archive": result.archive.name,
                    "entries": result.entries,
                    "bytes": result.bytes_read,
                }
            )
            if result.skipped:
                summary["skipped"] = len(result.skipped)
        return result
