from __future__ import annotations

from datetime import datetime
from enum import StrEnum, auto
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

_ = Path()

PROGRAM = "files2xml"

DEFAULT_MAX_FILE_SIZE = 1024**3

DEFAULT_FILE_PATTERNS: tuple[str, ...] = (
    "*.mp*",
    "~*",
    "*~",
    "*.bak",
    "*.log",
    "*.old",
    "*LI*",
)

DEFAULT_DIR_PATTERNS: tuple[str, ...] = (
    "__pycache__/*",
    ".cache/*",
    ".venv/*",
    "venv/*",
    ".gudang/*",
    "gudang/*",
)

DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = DEFAULT_FILE_PATTERNS + DEFAULT_DIR_PATTERNS

DIR_PATTERN_SUFFIX = "/*"

ROOT_ELEMENT = "Files"
FILE_ELEMENT = "file"
CONTENT_ELEMENT = "content"

CDATA_START = "<![CDATA["
CDATA_END = "]]>"
CDATA_END_ESCAPED = "]]]]><![CDATA[>"

BINARY_CHARSET = "binary"


class MimeEncoding(StrEnum):
    """Text/binary classification that selects the encoder branch.

    Every charset other than `binary` (us-ascii, utf-8, iso-8859-1, ...) is text-like.
    """

    TEXT = auto()
    BINARY = auto()


class ContentEncoding(StrEnum):
    """How an included payload is stored inside its content element."""

    CDATA = auto()
    BASE64 = auto()


class ContentError(StrEnum):
    """Error markers written in the `error` attribute of a content element."""

    FAILED_TO_ENCODE = auto()
    FAILED_TO_PROCESS_CDATA = auto()


class FileEntry(BaseModel):
    """Metadata for one file that reaches the encoding pipeline.

    Attributes:
        path: Canonical absolute path (symlinks resolved); the dedup identity.
        mime_type: MIME type reported by the content sniffer, e.g. `text/plain`.
        charset: MIME encoding reported by the content sniffer, e.g. `us-ascii` or `binary`.
        size: File size in bytes.
        mtime: POSIX mtime (float seconds since epoch).
    """

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Canonical absolute file path")
    mime_type: str = Field(..., description="MIME type, informational only")
    charset: str = Field(..., description="MIME encoding as reported by the sniffer")
    size: int = Field(..., ge=0, description="File size in bytes")
    mtime: float = Field(..., description="POSIX modification time (seconds)")

    @computed_field
    @property
    def name(self) -> str:
        """Base name of the file."""
        return self.path.name

    @computed_field
    @property
    def mime_encoding(self) -> MimeEncoding:
        """Binary when the sniffer says so, text-like for every other charset."""
        return MimeEncoding.BINARY if self.charset == BINARY_CHARSET else MimeEncoding.TEXT

    @computed_field
    @property
    def modified(self) -> str:
        """Local modification time, ISO-8601 with seconds precision."""
        return datetime.fromtimestamp(self.mtime).isoformat(timespec="seconds")  # noqa: DTZ006


class IncludedContent(BaseModel):
    """File content embedded in the document."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["included"] = "included"
    payload: str = Field(..., description="CDATA-safe text or single-line base64")
    encoding: ContentEncoding
    compression: Literal["gzip"] | None = None


class MetadataOnly(BaseModel):
    """Content deliberately left out (`--no-content`)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["metadata_only"] = "metadata_only"


class EncodingFailed(BaseModel):
    """Content that could not be read or transformed; the element carries the marker only."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    error: ContentError


ContentResult = IncludedContent | MetadataOnly | EncodingFailed
