from __future__ import annotations

from collections.abc import Iterator

import pytest

from files2xml import logging as files2xml_logging


def _reset_logging(verbosity: int = 1) -> None:
    files2xml_logging._CONFIGURED_WITH = None  # noqa: SLF001
    files2xml_logging.setup_logging(verbosity)


@pytest.fixture(autouse=True)
def _fresh_logging() -> Iterator[None]:
    # Forget the last configuration so the CLI binds its handler to the sys.stderr of this test.
    files2xml_logging._CONFIGURED_WITH = None  # noqa: SLF001
    yield
    _reset_logging()
    files2xml_logging._CONFIGURED_WITH = None  # noqa: SLF001


@pytest.fixture
def debug_logging() -> Iterator[None]:
    _reset_logging(verbosity=2)
    yield
    _reset_logging()
