from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, BinaryIO

from files2xml.content import classify, encode, exceeds_size_limit
from files2xml.exceptions import ClassificationError
from files2xml.file_manipulation import format_size
from files2xml.logging import logger
from files2xml.xml_writer import XmlDocumentWriter

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from files2xml.config import ContentResult, FileEntry
    from files2xml.settings import Settings


@dataclass
class DocumentStats:
    """Counts reported once a document has been written."""

    written: int = 0
    skipped: int = 0


def process_file(path: Path, settings: Settings) -> tuple[FileEntry, ContentResult] | None:
    """Classify and encode one file.

    Per-file failures never propagate: a file that cannot be classified or is over
    the size limit is reported and skipped (None), a file whose content cannot be
    encoded keeps its element with an error marker.

    Args:
        path (Path): canonical path of the file
        settings (Settings): the run configuration

    Returns:
        tuple[FileEntry, ContentResult] | None: what to write for the file, or None to skip it
    """
    try:
        entry = classify(path)
    except ClassificationError as e:
        logger.warning("cannot classify file, skipping", path=str(e.path), operation=e.operation, error=e.reason)
        return None
    if exceeds_size_limit(entry, settings.max_file_size):
        logger.info(
            "file exceeds size limit, skipping",
            path=str(path),
            size=format_size(entry.size),
            limit=format_size(settings.max_file_size),
        )
        return None
    logger.debug("adding file", path=str(path), type=entry.mime_type, charset=entry.charset)
    return entry, encode(entry, settings)


def build_document(paths: Iterable[Path], settings: Settings, stream: BinaryIO) -> DocumentStats:
    """Write the XML document for `paths` to `stream`, one file element at a time.

    Args:
        paths (Iterable[Path]): canonical, deduplicated file paths in output order
        settings (Settings): the run configuration (layout, compression, content, size limit)
        stream (BinaryIO): where the UTF-8 document is written

    Returns:
        DocumentStats: how many files were written and skipped
    """
    stats = DocumentStats()
    with XmlDocumentWriter(stream, minify=settings.minify) as writer:
        for path in paths:
            processed = process_file(path, settings)
            if processed is None:
                stats.skipped += 1
                continue
            writer.write_file(*processed)
            stats.written += 1
    logger.info("document written", files=stats.written, skipped=stats.skipped)
    return stats
