"""Command-line entry point.

    dirarchiver [ROOT] [-s STRATEGY] [-e DIR[,DIR...]] ... [-q|-v|-d]

Flags are folded into nested CLI overrides for ConfigResolver, so every
option can also come from DIRARCHIVER_* variables or the YAML config files.

Exit codes: 0 success, 1 archival/config error, 2 usage error.
"""

from __future__ import annotations

import argparse
import asyncio
import os
from pathlib import Path
from typing import Any

from dirarchiver import __version__
from dirarchiver.core.config import ConfigResolver
from dirarchiver.core.errors import DirArchiverError
from dirarchiver.core.logging import apply_logging_policy, get_logger
from dirarchiver.engine import ArchivalEngine
from dirarchiver.paths import PathMatcher
from dirarchiver.strategies import available_strategies, create_strategy
from dirarchiver.types import RunReport

log = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="dirarchiver",
        description="Archive every immediate subdirectory of ROOT into a sibling zip file.",
    )
    p.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Directory whose subdirectories are archived (default: current directory).",
    )
    p.add_argument(
        "-s",
        "--strategy",
        default=None,
        help=f"Archive strategy: {', '.join(available_strategies())} "
        "(aliases: zip, zipper, async).",
    )
    p.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=None,
        metavar="DIR[,DIR...]",
        help="Directory to skip; repeatable or comma-delimited.",
    )
    p.add_argument("--readers", type=int, default=None, help="Fan-in reader pool size.")
    p.add_argument(
        "--channel-capacity",
        type=int,
        default=None,
        help="Fan-in payload channel capacity.",
    )
    p.add_argument("--level", type=int, default=None, help="Deflate level 0-9.")
    p.add_argument(
        "--on-read-error",
        choices=["abort", "skip"],
        default=None,
        help="Fan-in policy for unreadable files.",
    )
    p.add_argument(
        "--keep-going",
        action="store_true",
        default=False,
        help="Continue with the next directory after a failure.",
    )
    p.add_argument("--config", type=Path, default=None, help="User config file (YAML).")

    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-q", "--quiet", action="store_const", dest="level_name", const="quiet")
    verbosity.add_argument(
        "-v", "--verbose", action="store_const", dest="level_name", const="verbose"
    )
    verbosity.add_argument("-d", "--debug", action="store_const", dest="level_name", const="debug")

    p.add_argument("--no-color", action="store_true", default=False)
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def cli_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate parsed flags into nested ConfigResolver CLI args."""
    cli_args: dict[str, Any] = {}

    def _ensure_dict(key: str) -> dict[str, Any]:
        val = cli_args.get(key)
        if isinstance(val, dict):
            return val
        new: dict[str, Any] = {}
        cli_args[key] = new
        return new

    if args.root is not None:
        cli_args["root"] = args.root
    if args.exclude:
        cli_args["exclude"] = list(args.exclude)
    if args.strategy is not None:
        _ensure_dict("archive")["strategy"] = args.strategy
    if args.readers is not None:
        _ensure_dict("archive")["max_readers"] = args.readers
    if args.channel_capacity is not None:
        _ensure_dict("archive")["channel_capacity"] = args.channel_capacity
    if args.level is not None:
        _ensure_dict("archive")["compression_level"] = args.level
    if args.on_read_error is not None:
        _ensure_dict("archive")["on_read_error"] = args.on_read_error
    if args.keep_going:
        _ensure_dict("archive")["continue_on_error"] = True
    if args.level_name is not None:
        _ensure_dict("logging")["level"] = args.level_name
    if args.no_color:
        _ensure_dict("logging")["color"] = False

    return cli_args


async def run_from_config(resolver: ConfigResolver) -> RunReport:
    """Resolve settings and run the engine once."""
    settings = resolver.resolve_settings()
    working_dir = settings.working_dir or os.getcwd()

    matcher = PathMatcher(home_dir=settings.home_dir, base_dir=working_dir)
    engine = ArchivalEngine(
        create_strategy(settings.strategy, settings),
        matcher,
        continue_on_error=settings.continue_on_error,
    )
    return await engine.run(settings.root, settings.exclude, working_dir)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    resolver = ConfigResolver(cli_args=cli_overrides(args), user_config_path=args.config)

    try:
        apply_logging_policy(resolver.resolve_logging_policy())
        asyncio.run(run_from_config(resolver))
    except DirArchiverError as e:
        log.error(str(e))
        return 1
    except KeyboardInterrupt:
        log.error("interrupted")
        return 130

    return 0
