"""Content classification and encoding.

The text/binary decision comes from the MIME encoding reported by the external
`file` utility (libmagic), never from the file extension. Compression is
independent of that decision: once gzipped, text and binary content both go
through base64. Only uncompressed content differs, CDATA for text and base64
for binary.
"""

from __future__ import annotations

import base64
import gzip
import re
import subprocess  # noqa: S404
from typing import TYPE_CHECKING

from files2xml.config import (
    CDATA_END,
    CDATA_END_ESCAPED,
    ContentEncoding,
    ContentError,
    EncodingFailed,
    FileEntry,
    IncludedContent,
    MetadataOnly,
    MimeEncoding,
)
from files2xml.exceptions import ClassificationError
from files2xml.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

    from files2xml.config import ContentResult
    from files2xml.settings import Settings

FILE_COMMAND = "file"

# libmagic only sniffs the head of a file: us-ascii may hide UTF-8 further down,
# unknown-8bit is usually a Windows code page.
_CHARSET_CODECS: dict[str, tuple[str, ...]] = {
    "us-ascii": ("utf-8",),
    "unknown-8bit": ("cp1252", "latin-1"),
}

_MIME_PATTERN = re.compile(r"^(?P<type>[\w.+-]+/[\w.+-]+);\s*charset=(?P<charset>[\w.+-]+)$")


def detect_mime(path: Path) -> tuple[str, str]:
    """Ask `file --brief --mime` for the MIME type and MIME encoding of `path`.

    Args:
        path (Path): the file to sniff

    Raises:
        ClassificationError: if `file` cannot run, fails, or prints something that is
            not `type/subtype; charset=encoding` (e.g. an unreadable file).

    Returns:
        tuple[str, str]: the MIME type (`text/plain`) and encoding (`us-ascii`, `binary`, ...)
    """
    command = [FILE_COMMAND, "--brief", "--mime", "--", str(path)]
    try:
        out = subprocess.run(  # noqa: S603
            command,
            text=True,
            capture_output=True,
            check=False,
        )
    except OSError as e:
        raise ClassificationError(path=path, operation="mime detection", reason=str(e)) from e
    answer = out.stdout.strip()
    match = _MIME_PATTERN.match(answer)
    if out.returncode != 0 or match is None:
        reason = out.stderr.strip() or answer or f"exit status {out.returncode}"
        raise ClassificationError(path=path, operation="mime detection", reason=reason)
    return match.group("type"), match.group("charset").lower()


def classify(path: Path) -> FileEntry:
    """Gather the metadata of `path`: size, modification time, MIME type and encoding.

    Args:
        path (Path): canonical path of a regular file

    Raises:
        ClassificationError: if any of the attributes cannot be obtained.

    Returns:
        FileEntry: the classified file
    """
    try:
        st = path.stat()
    except OSError as e:
        raise ClassificationError(path=path, operation="stat", reason=e.strerror or str(e)) from e
    mime_type, charset = detect_mime(path)
    return FileEntry(path=path, mime_type=mime_type, charset=charset, size=st.st_size, mtime=st.st_mtime)


def exceeds_size_limit(entry: FileEntry, max_file_size: int) -> bool:
    return entry.size > max_file_size


def escape_cdata(text: str) -> str:
    """Split every CDATA terminator so `text` can sit inside a CDATA section.

    `]]>` becomes `]]]]><![CDATA[>`: the first section ends after `]]`, a new one
    starts with `>`. An XML parser joins the sections back into the original text.

    Args:
        text (str): the raw text

    Returns:
        str: the text with no unescaped terminator
    """
    return text.replace(CDATA_END, CDATA_END_ESCAPED)


def b64(data: bytes) -> str:
    """Single-line base64 (no embedded newlines)."""
    return base64.b64encode(data).decode("ascii")


def gzip_b64(data: bytes) -> str:
    """gzip `data` with a fixed header timestamp, then base64 the compressed stream."""
    return b64(gzip.compress(data, mtime=0))


def _encode_base64(entry: FileEntry, *, compress: bool) -> ContentResult:
    try:
        data = entry.path.read_bytes()
        payload = gzip_b64(data) if compress else b64(data)
    except (OSError, ValueError) as e:
        logger.warning(
            "cannot encode file",
            path=str(entry.path),
            operation="gzip+base64" if compress else "base64",
            error=str(e),
        )
        return EncodingFailed(error=ContentError.FAILED_TO_ENCODE)
    return IncludedContent(
        payload=payload,
        encoding=ContentEncoding.BASE64,
        compression="gzip" if compress else None,
    )


def decode_text(data: bytes, charset: str) -> str:
    """Decode text content with the charset reported for it.

    `us-ascii` is read as UTF-8 and `unknown-8bit` as cp1252, then latin-1. Any
    other charset falls back to UTF-8 when it is unknown to Python or does not fit
    the bytes.

    Args:
        data (bytes): the raw file content
        charset (str): the lowercased charset reported by `file`

    Raises:
        LookupError | UnicodeDecodeError: from the last codec tried, when none fits.

    Returns:
        str: the decoded text
    """
    codecs = _CHARSET_CODECS.get(charset) or tuple(dict.fromkeys((charset, "utf-8")))
    for codec in codecs[:-1]:
        try:
            return data.decode(codec)
        except (LookupError, UnicodeDecodeError):
            logger.debug("charset does not fit, trying the next one", charset=codec)
    return data.decode(codecs[-1])


def _encode_cdata(entry: FileEntry) -> ContentResult:
    try:
        text = decode_text(entry.path.read_bytes(), entry.charset)
    except (OSError, LookupError, UnicodeDecodeError) as e:
        logger.warning("cannot process text as CDATA", path=str(entry.path), charset=entry.charset, error=str(e))
        return EncodingFailed(error=ContentError.FAILED_TO_PROCESS_CDATA)
    return IncludedContent(payload=escape_cdata(text), encoding=ContentEncoding.CDATA)


def encode(entry: FileEntry, settings: Settings) -> ContentResult:
    """Produce the content payload of a classified file.

    The size limit is checked by the caller (see `exceeds_size_limit`) before this
    is called.

    Decision order:

    1. `no_content`: metadata only, the file is not read;
    2. `compress`: gzip then base64, whatever the MIME encoding;
    3. binary: base64 of the raw bytes;
    4. text: the text decoded with its charset, CDATA terminators split.

    Args:
        entry (FileEntry): the classified file
        settings (Settings): the run configuration

    Returns:
        ContentResult: the payload, the metadata-only marker or an error marker
    """
    if settings.no_content:
        return MetadataOnly()
    if settings.compress:
        return _encode_base64(entry, compress=True)
    if entry.mime_encoding is MimeEncoding.BINARY:
        return _encode_base64(entry, compress=False)
    return _encode_cdata(entry)
