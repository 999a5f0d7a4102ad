"""Centralized logging for dirarchiver.

Four verbosity levels:
- QUIET (0): Warnings + errors
- NORMAL (1): Progress + warnings + errors
- VERBOSE (2): Per-file details
- DEBUG (3): Everything including exclusion decisions

Every emitted line is also published on the process-wide LogBus so callers
(the CLI summary, tests) can observe progress without scraping stdout.

Usage:
    from dirarchiver.core.logging import get_logger, set_verbosity

    log = get_logger(__name__)
    set_verbosity(VerbosityLevel.VERBOSE)

    log.info("archived photos -> photos.zip")
    log.verbose("read photos/a.jpg (1024 bytes)")
"""

from __future__ import annotations

import sys
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress
from dataclasses import dataclass
from enum import IntEnum

from dirarchiver.core.config import LoggingPolicy


class VerbosityLevel(IntEnum):
    """Verbosity levels for dirarchiver."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    plain: str
    logger_name: str


class LogBus:
    """Fan out log records to subscribers; a failing subscriber is ignored."""

    def __init__(self) -> None:
        self._subs: list[Callable[[LogRecord], None]] = []

    def subscribe(self, cb: Callable[[LogRecord], None]) -> None:
        self._subs.append(cb)

    def unsubscribe(self, cb: Callable[[LogRecord], None]) -> None:
        with suppress(ValueError):
            self._subs.remove(cb)

    def publish(self, record: LogRecord) -> None:
        for cb in list(self._subs):
            try:
                cb(record)
            except Exception:
                # Never log through the core logger here (recursion).
                with suppress(Exception):
                    sys.stderr.write(
                        "LogBus subscriber raised; suppressed.\n" + traceback.format_exc()
                    )

    def clear(self) -> None:
        self._subs.clear()

    @contextmanager
    def capture(self) -> Iterator[list[LogRecord]]:
        """Collect every record published inside the block."""
        records: list[LogRecord] = []
        self.subscribe(records.append)
        try:
            yield records
        finally:
            self.unsubscribe(records.append)


_LOG_BUS = LogBus()

_VERBOSITY: VerbosityLevel = VerbosityLevel.NORMAL

_USE_COLORS: bool = True


def get_log_bus() -> LogBus:
    return _LOG_BUS


def set_verbosity(level: int | VerbosityLevel) -> None:
    """Set global verbosity level.

    Args:
        level: Verbosity level (0-3 or VerbosityLevel enum)
    """
    global _VERBOSITY
    _VERBOSITY = VerbosityLevel(level)


def get_verbosity() -> VerbosityLevel:
    return _VERBOSITY


def set_colors(enabled: bool) -> None:
    global _USE_COLORS
    _USE_COLORS = enabled


def apply_logging_policy(policy: LoggingPolicy) -> None:
    """Apply a resolved LoggingPolicy to the global logger state."""
    levels = {
        "quiet": VerbosityLevel.QUIET,
        "normal": VerbosityLevel.NORMAL,
        "verbose": VerbosityLevel.VERBOSE,
        "debug": VerbosityLevel.DEBUG,
    }
    set_verbosity(levels[policy.level_name])
    set_colors(policy.color)


class DirArchiverLogger:
    """Logger with verbosity support."""

    COLORS = {
        "DEBUG": "\033[36m",
        "VERBOSE": "\033[34m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "RESET": "\033[0m",
    }

    def __init__(self, name: str):
        self.name = name

    def _format_message(self, level: str, message: str) -> str:
        if _USE_COLORS and sys.stdout.isatty():
            color = self.COLORS.get(level, "")
            reset = self.COLORS["RESET"]
            return f"{color}[{level.lower()}]{reset} {message}"
        return f"[{level.lower()}] {message}"

    def _log(self, level: VerbosityLevel, level_name: str, message: str) -> None:
        """Publish and print a message if the current verbosity allows it.

        Args:
            level: Minimum verbosity at which the message is shown
            level_name: Level name for display
            message: Message text
        """
        if level > _VERBOSITY:
            return

        # Undecodable file names arrive as lone surrogates; escape them so
        # printing never fails.
        message = message.encode("utf-8", "backslashreplace").decode("utf-8")
        plain = f"[{level_name.lower()}] {message}"
        _LOG_BUS.publish(LogRecord(level_name=level_name, plain=plain, logger_name=self.name))

        stream = sys.stderr if level_name == "ERROR" else sys.stdout
        print(self._format_message(level_name, message), file=stream)

    def debug(self, message: str) -> None:
        self._log(VerbosityLevel.DEBUG, "DEBUG", message)

    def verbose(self, message: str) -> None:
        self._log(VerbosityLevel.VERBOSE, "VERBOSE", message)

    def info(self, message: str) -> None:
        self._log(VerbosityLevel.NORMAL, "INFO", message)

    def warning(self, message: str) -> None:
        self._log(VerbosityLevel.QUIET, "WARNING", message)

    def error(self, message: str) -> None:
        # Errors are shown at every verbosity.
        self._log(VerbosityLevel.QUIET, "ERROR", message)


_LOGGERS: dict[str, DirArchiverLogger] = {}


def get_logger(name: str = "dirarchiver") -> DirArchiverLogger:
    """Get logger instance for module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    if name not in _LOGGERS:
        _LOGGERS[name] = DirArchiverLogger(name)
    return _LOGGERS[name]
