from __future__ import annotations

import os
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from files2xml.config import DEFAULT_IGNORE_PATTERNS, DEFAULT_MAX_FILE_SIZE, DIR_PATTERN_SUFFIX

if TYPE_CHECKING:
    from collections.abc import Iterable

ENV_FILE = find_dotenv(usecwd=True)

ENV_PREFIX = "FILES2XML_"

_SIZE_PATTERN = re.compile(r"^\s*(?P<number>\d+(?:\.\d+)?)\s*(?P<unit>[KMGT]?)(?:I?B)?\s*$", re.IGNORECASE)
_SIZE_UNITS = "KMGT"


def parse_size(text: str) -> int:
    """Parse a human-readable size such as `500K`, `2M` or `1G` into bytes.

    Suffixes are case-insensitive powers of 1024 and may be followed by `B` or `iB`.
    A bare number is a byte count.

    Args:
        text (str): the size to parse

    Raises:
        ValueError: if `text` is not a valid size

    Returns:
        int: the size in bytes
    """
    match = _SIZE_PATTERN.match(text or "")
    if match is None:
        msg = f"invalid size: {text!r}"
        raise ValueError(msg)
    unit = match.group("unit").upper()
    factor = 1024 ** (_SIZE_UNITS.index(unit) + 1) if unit else 1
    return int(float(match.group("number")) * factor)


def build_ignore_patterns(values: Iterable[str] | None, defaults: Iterable[str] = DEFAULT_IGNORE_PATTERNS) -> tuple[str, ...]:
    """Accumulate `--ignore` values on top of the default patterns.

    An empty value clears everything accumulated so far, defaults included.
    The result keeps first-seen order without duplicates.

    Args:
        values (Iterable[str] | None): the `--ignore` values, in command-line order
        defaults (Iterable[str]): the patterns active before any `--ignore`

    Returns:
        tuple[str, ...]: the ordered ignore patterns
    """
    patterns: list[str] = list(defaults)
    for value in values or ():
        if value == "":
            patterns.clear()
        else:
            patterns.append(value)
    return tuple(dict.fromkeys(patterns))


def env_default(name: str, fallback: str) -> str:
    """Look up a `FILES2XML_*` default in the environment, then in the `.env` file.

    Args:
        name (str): the variable name without the `FILES2XML_` prefix
        fallback (str): the value used when the variable is set nowhere

    Returns:
        str: the configured value
    """
    key = ENV_PREFIX + name
    if key in os.environ:
        return os.environ[key]
    if ENV_FILE:
        value = dotenv_values(ENV_FILE).get(key)
        if value is not None:
            return value
    return fallback


class Settings(BaseModel):
    """Configuration for one files2xml run, read-only once built."""

    model_config = ConfigDict(frozen=True)

    paths: tuple[Path, ...] = Field(default=(), description="Files and directories to process.")
    gitdirs: tuple[Path, ...] = Field(default=(), description="Git working trees whose tracked files are added.")
    max_file_size: int = Field(
        default=DEFAULT_MAX_FILE_SIZE,
        ge=0,
        description="Files larger than this many bytes are skipped.",
    )
    ignore_patterns: tuple[str, ...] = Field(
        default=DEFAULT_IGNORE_PATTERNS,
        description="Ordered ignore globs; entries ending in '/*' are directory patterns.",
    )
    compress: bool = Field(default=False, description="gzip then base64 every payload.")
    no_content: bool = Field(default=False, description="Emit metadata only.")
    minify: bool = Field(default=False, description="No whitespace between elements.")
    verbosity: int = Field(default=1, ge=0, description="0 quiet, 1 normal, 2+ debug.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("max_file_size", mode="before")
    @classmethod
    def _parse_max_file_size(cls, value: Any) -> Any:  # noqa: ANN401
        if isinstance(value, str):
            return parse_size(value)
        return value

    @computed_field
    @property
    def dir_patterns(self) -> tuple[str, ...]:
        """Ignore patterns that name a directory (trailing `/*`)."""
        return tuple(p for p in self.ignore_patterns if p.endswith(DIR_PATTERN_SUFFIX))

    @computed_field
    @property
    def file_patterns(self) -> tuple[str, ...]:
        """Ignore patterns that are not directory patterns."""
        return tuple(p for p in self.ignore_patterns if not p.endswith(DIR_PATTERN_SUFFIX))
