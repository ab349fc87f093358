"""Ignore-pattern matching shared by every file source.

A single pattern list serves bare file names (`*.log`), directory names
(`__pycache__/*`) and path fragments, so a path is tested against each pattern
in several ways and ignored as soon as one of them matches.
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


def matches(rel: str, basename: str, pattern: str, abs_path: str = "") -> bool:
    """Check one path against one ignore pattern.

    The path matches when any of the following globs succeeds:

    1. the relative path equals `pattern`;
    2. the base name equals `pattern`;
    3. the relative path ends with `pattern`;
    4. the relative path contains `/pattern/` as a directory segment;
    5. the relative path ends with `/pattern`;
    6. the absolute path contains `pattern`.

    Globs are case-sensitive and `*` also matches `/`.

    Args:
        rel (str): the path relative to the scan root (or as given on the command line)
        basename (str): the file name
        pattern (str): the ignore glob
        abs_path (str): the absolute path, empty to skip the last check

    Returns:
        bool: True if the path is matched by `pattern`
    """
    if not pattern:
        return False
    return (
        fnmatchcase(rel, pattern)
        or fnmatchcase(basename, pattern)
        or fnmatchcase(rel, f"*{pattern}")
        or fnmatchcase(rel, f"*/{pattern}/*")
        or fnmatchcase(rel, f"*/{pattern}")
        or (bool(abs_path) and fnmatchcase(abs_path, f"*{pattern}*"))
    )


def first_match(rel: str, basename: str, patterns: Sequence[str], abs_path: str = "") -> str | None:
    """Return the first pattern of `patterns` that matches the path, or None."""
    for pattern in patterns:
        if matches(rel, basename, pattern, abs_path):
            return pattern
    return None


def is_ignored(rel: str, basename: str, patterns: Sequence[str], abs_path: str = "") -> bool:
    return first_match(rel, basename, patterns, abs_path) is not None
