"""Unit tests for the verbosity-aware logger and the log bus."""

from __future__ import annotations

from dirarchiver.core.config import LoggingPolicy
from dirarchiver.core.logging import (
    LogBus,
    LogRecord,
    VerbosityLevel,
    apply_logging_policy,
    get_log_bus,
    get_logger,
    get_verbosity,
    set_verbosity,
)


def test_normal_verbosity_hides_verbose_and_debug(capsys):
    log = get_logger("tests.levels")

    with get_log_bus().capture() as records:
        log.debug("d")
        log.verbose("v")
        log.info("i")
        log.warning("w")

    assert [r.plain for r in records] == ["[info] i", "[warning] w"]
    assert capsys.readouterr().out == "[info] i\n[warning] w\n"


def test_quiet_keeps_warnings_and_errors(capsys):
    set_verbosity(VerbosityLevel.QUIET)
    log = get_logger("tests.quiet")

    log.info("progress")
    log.warning("careful")
    log.error("broken")

    captured = capsys.readouterr()
    assert captured.out == "[warning] careful\n"
    assert captured.err == "[error] broken\n"


def test_debug_shows_everything():
    set_verbosity(3)
    log = get_logger("tests.debug")

    with get_log_bus().capture() as records:
        log.debug("exclusion check")
        log.verbose("per-file")

    assert [(r.level_name, r.logger_name) for r in records] == [
        ("DEBUG", "tests.debug"),
        ("VERBOSE", "tests.debug"),
    ]


def test_get_logger_returns_same_instance():
    assert get_logger("tests.same") is get_logger("tests.same")


def test_apply_logging_policy():
    apply_logging_policy(LoggingPolicy(level_name="verbose", color=False))
    assert get_verbosity() is VerbosityLevel.VERBOSE


def test_failing_subscriber_does_not_break_publishing(capsys):
    bus = LogBus()
    seen: list[str] = []

    def _broken(_record: LogRecord) -> None:
        raise RuntimeError("subscriber bug")

    bus.subscribe(_broken)
    bus.subscribe(lambda r: seen.append(r.plain))
    bus.publish(LogRecord(level_name="INFO", plain="[info] hello", logger_name="x"))

    assert seen == ["[info] hello"]
    assert "subscriber raised" in capsys.readouterr().err


def test_capture_unsubscribes_on_exit():
    bus = LogBus()
    with bus.capture() as records:
        bus.publish(LogRecord("INFO", "[info] inside", "x"))
    bus.publish(LogRecord("INFO", "[info] outside", "x"))

    assert [r.plain for r in records] == ["[info] inside"]


def test_undecodable_names_are_escaped(capsys):
    log = get_logger("tests.names")

    with get_log_bus().capture() as records:
        log.warning("cannot read caf\udce9.txt")

    assert records[0].plain == "[warning] cannot read caf\\udce9.txt"
    assert capsys.readouterr().out == "[warning] cannot read caf\\udce9.txt\n"
