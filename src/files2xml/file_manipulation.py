from __future__ import annotations

import os
import stat
import subprocess  # noqa: S404
from contextlib import chdir
from fnmatch import fnmatchcase
from pathlib import Path
from typing import TYPE_CHECKING

from files2xml.config import DIR_PATTERN_SUFFIX
from files2xml.exceptions import (
    GitCommandError,
    GitDirNotFoundError,
    NoFilesError,
    NotAGitRepositoryError,
    WalkRootError,
)
from files2xml.logging import logger
from files2xml.matching import first_match

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from files2xml.settings import Settings


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return str(path)


def absolute(path: str | Path) -> Path:
    """Make `path` absolute and normalize `..` segments without resolving symlinks."""
    return Path(os.path.abspath(path))


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
    except OSError:
        return False
    return stat.S_ISREG(st.st_mode)


def format_size(size_bytes: int) -> str:
    """Format a byte count in human-readable units.

    Args:
        size_bytes (int): size in bytes

    Returns:
        str: formatted string like "1.5 MiB"
    """
    size = float(size_bytes)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if size < 1024:  # noqa: PLR2004
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} TiB"


def prune_prefixes(patterns: Sequence[str]) -> tuple[str, ...]:
    """Extract the directory part of every directory pattern (`name/*` gives `name`).

    Args:
        patterns (Sequence[str]): the ignore patterns

    Returns:
        tuple[str, ...]: the directory globs whose subtrees are never descended
    """
    return tuple(
        p.removesuffix(DIR_PATTERN_SUFFIX) for p in patterns if p.endswith(DIR_PATTERN_SUFFIX) and p != DIR_PATTERN_SUFFIX
    )


def _log_walk_error(error: OSError) -> None:
    logger.warning("cannot read directory", path=error.filename, error=error.strerror)


def walk_directories(roots: Iterable[Path], patterns: Sequence[str]) -> list[Path]:
    """Recursively collect the regular files under `roots` that no ignore pattern matches.

    Subdirectories named by a directory pattern are pruned and never descended.
    Symlinked directories are not followed; symlinks to files are kept and resolved
    later by the collector.

    Args:
        roots (Iterable[Path]): the directories to walk
        patterns (Sequence[str]): the ignore patterns

    Raises:
        WalkRootError: if one of the roots is not a directory; nothing is returned.

    Returns:
        list[Path]: the absolute paths of the kept files, root by root in sorted walk order
    """
    prefixes = prune_prefixes(patterns)
    results: list[Path] = []
    for root in roots:
        root_path = absolute(root)
        if not root_path.is_dir():
            raise WalkRootError(root=root_path)
        for current, dirs, files in os.walk(root_path, onerror=_log_walk_error):
            current_path = Path(current)
            kept: list[str] = []
            for d in sorted(dirs):
                rel = relpath(current_path / d, root_path)
                prefix = next((p for p in prefixes if fnmatchcase(rel, p) or fnmatchcase(d, p)), None)
                if prefix is not None:
                    logger.debug("pruning directory", path=str(current_path / d), pattern=prefix + DIR_PATTERN_SUFFIX)
                    continue
                kept.append(d)
            dirs[:] = kept
            for f in sorted(files):
                p = current_path / f
                if not p.is_file():
                    continue
                pattern = first_match(relpath(p, root_path), f, patterns, str(p))
                if pattern is not None:
                    logger.debug("skipping ignored file", path=str(p), pattern=pattern)
                    continue
                results.append(p)
    return results


def git_ls_files(repo: Path, patterns: Sequence[str]) -> list[Path]:
    """Get the tracked files of a git working tree using `git ls-files`.

    The command runs from the repository root; the previous working directory is
    restored afterwards, whether the command succeeds or not.

    Args:
        repo (Path): the root of the git working tree to query
        patterns (Sequence[str]): the ignore patterns, matched against repository-relative paths

    Raises:
        GitDirNotFoundError: if `repo` does not exist.
        NotAGitRepositoryError: if `repo` has no `.git` entry.
        GitCommandError: if `git ls-files` exits with a non-zero status.

    Returns:
        list[Path]: the absolute paths of the tracked files no pattern matches
    """
    repo_path = absolute(repo)
    if not repo_path.exists():
        raise GitDirNotFoundError(folder=repo_path)
    if not (repo_path / ".git").exists():
        raise NotAGitRepositoryError(folder=repo_path)
    command = ["git", "ls-files", "-z"]
    with chdir(repo_path):
        out = subprocess.run(  # noqa: S603
            command,
            text=True,
            encoding="utf-8",
            errors="surrogateescape",
            capture_output=True,
            check=False,
        )
    if out.returncode != 0:
        raise GitCommandError(
            command=" ".join(command),
            returncode=out.returncode,
            stdout=out.stdout,
            stderr=out.stderr,
        )
    files: list[Path] = []
    for rel in out.stdout.split("\0"):
        if not rel:
            continue
        p = repo_path / rel
        pattern = first_match(rel, p.name, patterns, str(p))
        if pattern is not None:
            logger.debug("skipping ignored file", path=str(p), pattern=pattern)
            continue
        files.append(p)
    return files


def list_tracked_files(repos: Iterable[Path], patterns: Sequence[str]) -> list[Path]:
    """Union the tracked files of several git working trees.

    A repository that cannot be listed is reported and contributes no files.

    Args:
        repos (Iterable[Path]): the git working trees
        patterns (Sequence[str]): the ignore patterns

    Returns:
        list[Path]: the tracked files, repository by repository
    """
    files: list[Path] = []
    for repo in repos:
        try:
            files.extend(git_ls_files(repo, patterns))
        except (GitDirNotFoundError, NotAGitRepositoryError) as e:
            logger.error(e.message, path=str(e.folder), operation="git ls-files")  # noqa: TRY400
        except GitCommandError as e:
            logger.error("git ls-files failed", path=str(repo), returncode=e.returncode, stderr=e.stderr.strip())  # noqa: TRY400
        except OSError as e:
            logger.error("cannot run git", path=str(repo), error=str(e))  # noqa: TRY400
    return files


def partition_explicit(paths: Iterable[Path]) -> tuple[list[Path], list[Path]]:
    """Split command-line paths into regular files and directories.

    Paths that are neither are reported and dropped.

    Args:
        paths (Iterable[Path]): the paths given on the command line

    Returns:
        tuple[list[Path], list[Path]]: the regular files and the directories, in input order
    """
    files: list[Path] = []
    dirs: list[Path] = []
    for p in paths:
        if is_regular_file(p):
            files.append(p)
        elif p.is_dir():
            dirs.append(p)
        else:
            logger.warning("not a file or directory, skipping", path=str(p))
    return files, dirs


def canonicalize(path: Path) -> Path:
    """Resolve every symlink of `path` and make it absolute.

    Raises:
        OSError: if the path, or the target of one of its symlinks, does not exist.
        RuntimeError: on a symlink loop (older Python versions).
    """
    return path.resolve(strict=True)


def collect(
    explicit_paths: Sequence[Path],
    dir_paths: Sequence[Path],
    git_repos: Sequence[Path],
    patterns: Sequence[str],
) -> list[Path]:
    """Merge every file source into one deduplicated list of canonical paths.

    Sources are taken in order: explicit files, walked directories (explicit ones
    first, then `dir_paths`), tracked files of `git_repos`. The first occurrence of
    a canonical path wins.

    Args:
        explicit_paths (Sequence[Path]): files and directories given on the command line
        dir_paths (Sequence[Path]): additional directories to walk
        git_repos (Sequence[Path]): git working trees to list
        patterns (Sequence[str]): the ignore patterns, applied to every source

    Raises:
        NoFilesError: if nothing is left and no explicit file was given.

    Returns:
        list[Path]: canonical absolute paths in first-seen order
    """
    explicit_files, explicit_dirs = partition_explicit(explicit_paths)

    candidates: list[Path] = []
    for f in explicit_files:
        p = absolute(f)
        pattern = first_match(os.path.normpath(f), p.name, patterns, str(p))
        if pattern is not None:
            logger.debug("skipping ignored file", path=str(p), pattern=pattern)
            continue
        candidates.append(p)

    roots = [*explicit_dirs, *dir_paths]
    if roots:
        try:
            candidates.extend(walk_directories(roots, patterns))
        except WalkRootError as e:
            logger.error(e.message, path=str(e.root), operation="walk")  # noqa: TRY400

    if git_repos:
        candidates.extend(list_tracked_files(git_repos, patterns))

    seen: dict[Path, Path] = {}
    for candidate in candidates:
        try:
            canonical = canonicalize(candidate)
        except (OSError, RuntimeError) as e:
            logger.warning("cannot resolve path, skipping", path=str(candidate), operation="canonicalize", error=str(e))
            continue
        if not is_regular_file(canonical):
            logger.warning("not a regular file, skipping", path=str(candidate))
            continue
        if canonical in seen:
            logger.debug("duplicate file, skipping", path=str(candidate), first=str(seen[canonical]))
            continue
        seen[canonical] = candidate

    if not seen and not explicit_files:
        raise NoFilesError
    return list(seen)


def collect_paths(settings: Settings) -> list[Path]:
    """Collect the files named by `settings` (see `collect`)."""
    return collect(settings.paths, (), settings.gitdirs, settings.ignore_patterns)
