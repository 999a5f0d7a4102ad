"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path (for 'dirarchiver.*' imports without an install)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))


@pytest.fixture(autouse=True)
def _reset_logging():
    """Keep verbosity/color changes made by one test from leaking into others."""
    from dirarchiver.core.logging import VerbosityLevel, get_log_bus, set_colors, set_verbosity

    set_verbosity(VerbosityLevel.NORMAL)
    set_colors(False)
    yield
    get_log_bus().clear()
    set_verbosity(VerbosityLevel.NORMAL)
    set_colors(True)


@pytest.fixture
def make_tree():
    """Create files from a {relative_path: bytes} mapping under a base directory.

    Keys ending with '/' create empty directories.
    """

    def _make(base: Path, spec: dict[str, bytes]) -> Path:
        base.mkdir(parents=True, exist_ok=True)
        for rel, content in spec.items():
            target = base / rel
            if rel.endswith("/"):
                target.mkdir(parents=True, exist_ok=True)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
        return base

    return _make


@pytest.fixture
def archive_root(tmp_path, make_tree):
    """Root with subdirectories `a` (2 files), `.git` (hidden) and `b` (empty)."""
    root = tmp_path / "R"
    make_tree(
        root,
        {
            "a/one.txt": b"first file",
            "a/two.txt": b"second file" * 50,
            ".git/HEAD": b"ref: refs/heads/main\n",
            "b/": b"",
            "notes.txt": b"root level file",
        },
    )
    return root


@pytest.fixture
def settings_factory():
    """Build ArchiveSettings with defaults overridable per test."""
    from dirarchiver.core.config import ArchiveSettings
    from dirarchiver.types import ReadErrorPolicy, StrategyName

    def _make(**overrides) -> ArchiveSettings:
        values = {
            "root": ".",
            "exclude": (),
            "strategy": StrategyName.STREAM,
            "extension": "zip",
            "compression_level": 6,
            "chunk_size": 64 * 1024,
            "channel_capacity": 1024,
            "max_readers": 4,
            "on_read_error": ReadErrorPolicy.ABORT,
            "continue_on_error": False,
            "working_dir": None,
            "home_dir": None,
        }
        values.update(overrides)
        return ArchiveSettings(**values)

    return _make
