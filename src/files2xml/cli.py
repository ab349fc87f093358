"""
files2xml: pack files and their metadata into a single XML document.

Overview
--------
Every file named on the command line, found under a directory argument, or
tracked by a git working tree given with `--gitdir` becomes one `<file>`
element carrying its canonical path, MIME type, size and modification time.
Its content is embedded as:

- CDATA for text files (CDATA terminators are split),
- base64 for binary files,
- gzip then base64 for every file with `--compress`,

or left out with `--no-content`. Files over `--max-file-size` are skipped.
The document goes to stdout, diagnostics to stderr.

Usage
-----
    files2xml src/ README.md > snapshot.xml
    files2xml --gitdir . --compress --minify > repo.xml
    files2xml --ignore '' --ignore '*.png' assets/ > assets.xml
"""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from files2xml import __version__
from files2xml.config import DEFAULT_IGNORE_PATTERNS, PROGRAM
from files2xml.content import FILE_COMMAND
from files2xml.exceptions import MissingToolError, NoFilesError
from files2xml.file_manipulation import collect_paths
from files2xml.logging import logger, setup_logging
from files2xml.output_construction import build_document
from files2xml.settings import ENV_PREFIX, Settings, build_ignore_patterns, env_default

if TYPE_CHECKING:
    from collections.abc import Sequence

GIT_COMMAND = "git"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog=PROGRAM,
        description="Convert files, directories and git tracked files into one XML document on stdout.",
        epilog="Default ignore patterns: " + " ".join(DEFAULT_IGNORE_PATTERNS),
    )
    verbosity = env_default("VERBOSITY", "1").strip()
    if not verbosity.isdecimal():
        p.error(f"invalid {ENV_PREFIX}VERBOSITY: {verbosity!r} (expected a non-negative integer)")
    p.add_argument("paths", nargs="*", type=Path, metavar="PATH", help="Files or directories to include.")
    p.add_argument(
        "-m",
        "--max-file-size",
        type=str,
        default=env_default("MAX_FILE_SIZE", "1G"),
        help="Skip files larger than SIZE (suffixes K, M, G, T; default 1G).",
    )
    p.add_argument(
        "-g",
        "--gitdir",
        action="append",
        type=Path,
        default=[],
        help="Add the tracked files of this git working tree (repeatable).",
    )
    p.add_argument(
        "-i",
        "--ignore",
        action="append",
        default=[],
        help="Ignore glob (repeatable); an empty pattern clears the defaults.",
    )
    p.add_argument("-c", "--compress", action="store_true", help="gzip then base64 every file content.")
    p.add_argument("-n", "--no-content", action="store_true", help="Emit metadata only.")
    p.add_argument("-M", "--minify", action="store_true", help="No whitespace between elements.")
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        dest="verbosity",
        default=int(verbosity),
        help="More diagnostics (repeatable).",
    )
    p.add_argument(
        "-q",
        "--quiet",
        action="store_const",
        const=0,
        dest="verbosity",
        help="Errors only.",
    )
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    p.add_argument("-V", "--version", action="version", version=f"{PROGRAM} {__version__}")
    return p


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        return Settings(
            paths=tuple(args.paths),
            gitdirs=tuple(args.gitdir),
            max_file_size=args.max_file_size,
            ignore_patterns=build_ignore_patterns(args.ignore),
            compress=args.compress,
            no_content=args.no_content,
            minify=args.minify,
            verbosity=args.verbosity,
            log_file=args.log_file,
        )
    except ValidationError as e:
        p.error("; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()))


def check_required_tools(settings: Settings) -> None:
    """Make sure the external programs the run depends on are on PATH.

    Raises:
        MissingToolError: naming the first missing program.
    """
    required = [FILE_COMMAND]
    if settings.gitdirs:
        required.append(GIT_COMMAND)
    for tool in required:
        if shutil.which(tool) is None:
            raise MissingToolError(tool=tool)


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    setup_logging(settings.verbosity, settings.log_file or None)

    try:
        check_required_tools(settings)
        paths = collect_paths(settings)
    except MissingToolError as e:
        logger.error(e.message, tool=e.tool)  # noqa: TRY400
        return 1
    except NoFilesError as e:
        logger.error(e.message)  # noqa: TRY400
        return 1

    build_document(paths, settings, sys.stdout.buffer)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
