from __future__ import annotations

import os
import re
from enum import StrEnum, auto
from typing import TYPE_CHECKING, BinaryIO, Self
from xml.sax.saxutils import escape

from files2xml.config import (
    CDATA_END,
    CDATA_START,
    CONTENT_ELEMENT,
    FILE_ELEMENT,
    ROOT_ELEMENT,
    ContentEncoding,
    EncodingFailed,
    IncludedContent,
    MetadataOnly,
)
from files2xml.exceptions import WriterStateError

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

    from files2xml.config import ContentResult, FileEntry

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>'

INDENT = "  "

_ATTRIBUTE_ENTITIES = {'"': "&quot;", "'": "&apos;"}

# Everything outside the XML 1.0 Char production, lone surrogates included.
_INVALID_XML_CHARS = re.compile("[^\t\n\r\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]")

REPLACEMENT_CHARACTER = "\ufffd"


def xml_safe(text: str) -> str:
    """Replace every character XML 1.0 cannot carry (control codes such as ESC) with U+FFFD."""
    return _INVALID_XML_CHARS.sub(REPLACEMENT_CHARACTER, text)


def escape_attribute(value: str) -> str:
    """Escape `&`, `<`, `>`, `"` and `'` for use inside a double-quoted attribute."""
    return escape(xml_safe(value), _ATTRIBUTE_ENTITIES)


def display_path(path: Path) -> str:
    """Text form of `path`; bytes of the file name that are not UTF-8 become U+FFFD."""
    return os.fsencode(path).decode("utf-8", errors="replace")


def format_attributes(attributes: dict[str, str]) -> str:
    return "".join(f' {name}="{escape_attribute(value)}"' for name, value in attributes.items())


def file_attributes(entry: FileEntry) -> dict[str, str]:
    """Attributes of a file element, in output order."""
    return {
        "fqfn": display_path(entry.path),
        "type": entry.mime_type,
        "size": str(entry.size),
        "modified": entry.modified,
    }


def render_content(result: ContentResult) -> str:
    """Render the content element of one file.

    Args:
        result (ContentResult): the encoder outcome

    Returns:
        str: a single content element, with no surrounding whitespace
    """
    if isinstance(result, IncludedContent):
        if result.encoding is ContentEncoding.CDATA:
            return f"<{CONTENT_ELEMENT}>{CDATA_START}{xml_safe(result.payload)}{CDATA_END}</{CONTENT_ELEMENT}>"
        attributes = {"encoding": "base64"}
        if result.compression:
            attributes["compression"] = result.compression
        return f"<{CONTENT_ELEMENT}{format_attributes(attributes)}>{result.payload}</{CONTENT_ELEMENT}>"
    if isinstance(result, MetadataOnly):
        return f'<{CONTENT_ELEMENT} excluded="metadata_only"/>'
    if isinstance(result, EncodingFailed):
        return f"<{CONTENT_ELEMENT}{format_attributes({'error': result.error.value})}/>"
    msg = f"unsupported content result: {result!r}"
    raise TypeError(msg)


class WriterState(StrEnum):
    """Progress of an `XmlDocumentWriter` through its document."""

    START = auto()
    DECLARED = auto()
    ROOT_OPEN = auto()
    ROOT_CLOSED = auto()


class XmlDocumentWriter:
    """Stream a files2xml document to a binary stream, one file element at a time.

    The writer moves START -> DECLARED -> ROOT_OPEN -> ROOT_CLOSED. Each file element
    is rendered completely before it is written, so a file whose content could not
    be encoded still produces a closed element carrying an error marker. Pretty and
    minified layouts differ only in the whitespace between elements.

    Use it as a context manager to open the document on entry and close the root
    element on exit.
    """

    def __init__(self, stream: BinaryIO, *, minify: bool = False) -> None:
        self.stream = stream
        self.minify = minify
        self.state = WriterState.START
        self.files_written = 0

    def _expect(self, state: WriterState, operation: str) -> None:
        if self.state is not state:
            raise WriterStateError(state=self.state.value, operation=operation)

    def _write(self, text: str) -> None:
        self.stream.write(text.encode("utf-8"))

    def _line(self, text: str, depth: int = 0) -> str:
        if self.minify:
            return text
        return f"{INDENT * depth}{text}\n"

    def declare(self) -> None:
        self._expect(WriterState.START, "declare")
        self._write(self._line(XML_DECLARATION))
        self.state = WriterState.DECLARED

    def open_root(self) -> None:
        self._expect(WriterState.DECLARED, "open root")
        self._write(self._line(f"<{ROOT_ELEMENT}>"))
        self.state = WriterState.ROOT_OPEN

    def start(self) -> None:
        """Emit the XML declaration and open the root element."""
        self.declare()
        self.open_root()

    def write_file(self, entry: FileEntry, result: ContentResult) -> None:
        """Emit one complete file element.

        Args:
            entry (FileEntry): the file metadata, written as attributes
            result (ContentResult): the content, written as the single child element

        Raises:
            WriterStateError: if the root element is not open.
        """
        self._expect(WriterState.ROOT_OPEN, "write file")
        element = (
            self._line(f"<{FILE_ELEMENT}{format_attributes(file_attributes(entry))}>", 1)
            + self._line(render_content(result), 2)
            + self._line(f"</{FILE_ELEMENT}>", 1)
        )
        self._write(element)
        self.files_written += 1

    def close(self) -> None:
        """Close the root element and flush the stream."""
        self._expect(WriterState.ROOT_OPEN, "close root")
        self._write(self._line(f"</{ROOT_ELEMENT}>"))
        self.state = WriterState.ROOT_CLOSED
        self.stream.flush()

    def __enter__(self) -> Self:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self.state is WriterState.ROOT_OPEN:
            self.close()
