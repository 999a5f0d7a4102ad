"""Path normalization and exclusion matching.

Exclusions are compared by path identity: both sides are normalized to an
absolute, lexically collapsed form and compared for equality. Nothing here
touches the filesystem.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from dirarchiver.core.errors import PathResolutionError
from dirarchiver.core.logging import get_logger

_logger = get_logger(__name__)

HOME_MARKER = "~"


class PathMatcher:
    """Normalize paths to a canonical absolute form.

    The default base directory (used when no working directory is given) and
    the home directory are explicit so callers and tests do not depend on the
    process environment.
    """

    def __init__(
        self,
        home_dir: Path | str | None = None,
        base_dir: Path | str | None = None,
    ) -> None:
        """Initialize matcher.

        Args:
            home_dir: Directory substituted for a leading '~'. None means the
                OS-reported home directory.
            base_dir: Directory that relative paths resolve against when no
                working directory is given. None means the home directory.
        """
        self._home_dir = _collapse(Path(home_dir)) if home_dir is not None else None
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def home(self) -> Path:
        """Return the home directory.

        Raises:
            PathResolutionError: If the home directory cannot be determined.
        """
        if self._home_dir is not None:
            return self._home_dir
        try:
            home = Path.home()
        except (RuntimeError, KeyError) as e:
            raise PathResolutionError(
                f"Cannot determine the home directory: {e}",
                "Set HOME or configure paths.home_dir",
            ) from e
        if not home.is_absolute():
            raise PathResolutionError(f"Home directory is not absolute: '{home}'")
        return _collapse(home)

    def default_base(self) -> Path:
        if self._base_dir is None:
            return self.home()
        if self._base_dir.is_absolute():
            return _collapse(self._base_dir)
        return self.normalize(str(self._base_dir), os.getcwd())

    def normalize(self, candidate: str | Path, working_dir: str | Path | None = None) -> Path:
        """Resolve `candidate` to an absolute path without requiring it to exist.

        Resolution order:
        - a leading '~' resolves against the home directory;
        - otherwise against the canonicalized `working_dir` when given;
        - otherwise against the default base directory.

        Normalizing an already normalized path returns it unchanged.

        Raises:
            PathResolutionError: If the home directory is needed but unknown.
        """
        text = os.fspath(candidate)

        if _has_home_marker(text):
            rest = text[len(HOME_MARKER) :].lstrip("/" + os.sep)
            return _collapse(self.home() / rest)

        path = Path(text)
        if path.is_absolute():
            return _collapse(path)

        if working_dir is not None:
            base = self._canonical_working_dir(working_dir)
        else:
            base = self.default_base()
        return _collapse(base / path)

    def _canonical_working_dir(self, working_dir: str | Path) -> Path:
        text = os.fspath(working_dir)
        if _has_home_marker(text):
            return self.normalize(text)
        wd = Path(text)
        if wd.is_absolute():
            return _collapse(wd)
        # A relative working directory is relative to the process cwd.
        return _collapse(Path(os.getcwd()) / wd)


def _has_home_marker(text: str) -> bool:
    return text == HOME_MARKER or text.startswith(HOME_MARKER + "/") or text.startswith(
        HOME_MARKER + os.sep
    )


def _collapse(path: Path) -> Path:
    return Path(os.path.normpath(path))


def is_excluded(
    matcher: PathMatcher,
    working_dir: str | Path | None,
    exclusions: Sequence[str | Path],
    candidate: str | Path,
) -> bool:
    """Return True iff `candidate` is one of the excluded directories.

    An empty exclusion set short-circuits without any normalization. Matching
    is exact equality of normalized paths; no prefix or glob matching.
    """
    if not exclusions:
        return False

    target = matcher.normalize(candidate, working_dir)
    return any(matcher.normalize(item, working_dir) == target for item in exclusions)


class ExclusionFilter:
    """Inclusion decision for candidate directories."""

    def __init__(
        self,
        matcher: PathMatcher,
        exclusions: Sequence[str | Path] = (),
        working_dir: str | Path | None = None,
    ) -> None:
        self.matcher = matcher
        self.exclusions = tuple(exclusions)
        self.working_dir = working_dir

    def is_excluded(self, candidate: str | Path) -> bool:
        excluded = is_excluded(self.matcher, self.working_dir, self.exclusions, candidate)
        if self.exclusions:
            _logger.debug(f"exclusion check candidate={str(candidate)!r} excluded={excluded}")
        return excluded


def archive_path_for(directory: Path, extension: str) -> Path:
    """Return the sibling archive path `<parent>/<name>.<extension>`."""
    return directory.parent / f"{directory.name}.{extension}"
