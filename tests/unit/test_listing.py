"""Unit tests for directory listing and file collection."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from dirarchiver.core.errors import DirectoryListError
from dirarchiver.listing import collect_files, list_entries, walk_files
from dirarchiver.types import EntryKind


async def _list(root: Path):
    return [e async for e in list_entries(root)]


def test_list_entries_one_level(archive_root: Path) -> None:
    entries = asyncio.run(_list(archive_root))

    by_name = {e.name: e for e in entries}
    assert set(by_name) == {"a", ".git", "b", "notes.txt"}
    assert by_name["a"].kind is EntryKind.DIRECTORY
    assert by_name["a"].is_dir
    assert by_name["notes.txt"].kind is EntryKind.FILE
    assert by_name["a"].path == archive_root / "a"
    # Nested files are not listed.
    assert "one.txt" not in by_name


def test_list_entries_rereads_directory(tmp_path: Path) -> None:
    (tmp_path / "x").mkdir()
    assert [e.name for e in asyncio.run(_list(tmp_path))] == ["x"]

    (tmp_path / "y").mkdir()
    assert sorted(e.name for e in asyncio.run(_list(tmp_path))) == ["x", "y"]


def test_list_entries_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(DirectoryListError) as excinfo:
        asyncio.run(_list(tmp_path / "nope"))
    assert excinfo.value.path == tmp_path / "nope"


def test_list_entries_does_not_follow_symlinks(tmp_path: Path) -> None:
    (tmp_path / "real").mkdir()
    os.symlink(tmp_path / "real", tmp_path / "link")

    kinds = {e.name: e.kind for e in asyncio.run(_list(tmp_path))}
    assert kinds == {"real": EntryKind.DIRECTORY, "link": EntryKind.SYMLINK}


def test_walk_files_one_level(make_tree, tmp_path: Path) -> None:
    d = make_tree(tmp_path / "d", {"b.txt": b"b", "a.txt": b"a", "sub/c.txt": b"c"})
    assert walk_files(d, recursive=False) == [d / "a.txt", d / "b.txt"]


def test_walk_files_recursive_breadth_first(make_tree, tmp_path: Path) -> None:
    d = make_tree(
        tmp_path / "d",
        {
            "top.txt": b"1",
            "x/deep/leaf.txt": b"2",
            "x/mid.txt": b"3",
            "y/other.txt": b"4",
            "empty/": b"",
        },
    )
    files = walk_files(d, recursive=True)
    assert files == [
        d / "top.txt",
        d / "x" / "mid.txt",
        d / "y" / "other.txt",
        d / "x" / "deep" / "leaf.txt",
    ]


def test_walk_files_never_follows_link_cycles(make_tree, tmp_path: Path) -> None:
    d = make_tree(tmp_path / "d", {"sub/f.txt": b"f"})
    os.symlink(d, d / "sub" / "loop")
    os.symlink(d / "sub" / "f.txt", d / "alias.txt")

    assert walk_files(d, recursive=True) == [d / "sub" / "f.txt"]


def test_collect_files_async(make_tree, tmp_path: Path) -> None:
    d = make_tree(tmp_path / "d", {"a": b"1", "s/b": b"2"})
    assert asyncio.run(collect_files(d, recursive=True)) == [d / "a", d / "s" / "b"]
