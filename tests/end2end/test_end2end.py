from __future__ import annotations

import base64
import gzip
import os
import shutil
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

import pytest

from files2xml import cli

pytestmark = pytest.mark.skipif(shutil.which("file") is None, reason="file(1) is not installed")

BINARY = bytes(range(256)) * 4


def run(argv: list[str], capsysbinary: pytest.CaptureFixture[bytes]) -> tuple[int, bytes]:
    code = cli.main(argv)
    return code, capsysbinary.readouterr().out


def test_text_file_is_embedded_as_cdata(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    hello = tmp_path / "hello.txt"
    hello.write_text("hello\nworld\n", encoding="utf-8")

    code, out = run([str(hello)], capsysbinary)

    assert code == 0
    assert out.startswith(b'<?xml version="1.0" encoding="UTF-8"?>\n<Files>\n')
    assert b"<content><![CDATA[hello\nworld\n]]></content>" in out
    element = ET.fromstring(out)[0]
    assert element.tag == "file"
    assert element.attrib["fqfn"] == str(hello.resolve())
    assert element.attrib["type"] == "text/plain"
    assert element.attrib["size"] == "12"
    assert element.attrib["modified"] == datetime.fromtimestamp(hello.stat().st_mtime).isoformat(timespec="seconds")


def test_cdata_terminator_is_split(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    tricky = tmp_path / "tricky.txt"
    tricky.write_text("]]>", encoding="utf-8")

    code, out = run([str(tricky)], capsysbinary)

    assert code == 0
    assert b"<![CDATA[]]]]><![CDATA[>]]>" in out
    assert ET.fromstring(out)[0][0].text == "]]>"


def test_no_content_keeps_metadata_only(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    hello = tmp_path / "hello.txt"
    hello.write_text("hello\n", encoding="utf-8")

    code, out = run(["--no-content", str(hello)], capsysbinary)

    assert code == 0
    content = ET.fromstring(out)[0][0]
    assert content.attrib == {"excluded": "metadata_only"}
    assert content.text is None
    assert b"hello\n" not in out


def test_binary_file_is_base64(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    blob = tmp_path / "blob.bin"
    blob.write_bytes(BINARY)

    code, out = run([str(blob)], capsysbinary)

    assert code == 0
    content = ET.fromstring(out)[0][0]
    assert content.attrib == {"encoding": "base64"}
    assert "\n" not in content.text
    assert base64.b64decode(content.text) == BINARY


@pytest.mark.parametrize(("name", "data"), [("hello.txt", b"hello\nworld\n" * 50), ("blob.bin", BINARY)])
def test_compressed_content_round_trips(
    name: str,
    data: bytes,
    tmp_path: Path,
    capsysbinary: pytest.CaptureFixture[bytes],
) -> None:
    path = tmp_path / name
    path.write_bytes(data)

    code, out = run(["--compress", str(path)], capsysbinary)

    assert code == 0
    content = ET.fromstring(out)[0][0]
    assert content.attrib == {"encoding": "base64", "compression": "gzip"}
    assert gzip.decompress(base64.b64decode(content.text)) == data


def test_symlinks_are_deduplicated(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    target = tmp_path / "data" / "real.txt"
    target.parent.mkdir()
    target.write_text("real\n", encoding="utf-8")
    link = tmp_path / "data" / "alias.txt"
    os.symlink(target, link)

    code, out = run([str(link), str(tmp_path / "data"), str(target)], capsysbinary)

    assert code == 0
    assert [e.attrib["fqfn"] for e in ET.fromstring(out)] == [str(target.resolve())]


def test_directory_walk_honours_ignore_patterns(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    tree = tmp_path / "tree"
    for rel in ("a.txt", "b.log", "__pycache__/c.txt", "sub/d.txt", "sub/e.bak"):
        path = tree / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")

    code, out = run([str(tree), "--ignore", "sub/*"], capsysbinary)

    assert code == 0
    assert [e.attrib["fqfn"] for e in ET.fromstring(out)] == [str((tree / "a.txt").resolve())]


def test_minified_document_carries_the_same_data(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    for name in ("one.txt", "two.txt"):
        (tmp_path / name).write_text(f"{name}\n", encoding="utf-8")
    argv = [str(tmp_path / "one.txt"), str(tmp_path / "two.txt")]

    _, pretty = run(argv, capsysbinary)
    code, minified = run(["--minify", *argv], capsysbinary)

    assert code == 0
    assert b"\n<" not in minified
    assert len(minified) < len(pretty)
    assert [(e.attrib, e[0].text) for e in ET.fromstring(minified)] == [(e.attrib, e[0].text) for e in ET.fromstring(pretty)]


def test_oversized_files_are_skipped(tmp_path: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    small = tmp_path / "small.txt"
    small.write_text("x" * 10, encoding="utf-8")
    big = tmp_path / "big.txt"
    big.write_text("x" * 11, encoding="utf-8")

    code, out = run(["-m", "10", str(small), str(big)], capsysbinary)

    assert code == 0
    assert [e.attrib["fqfn"] for e in ET.fromstring(out)] == [str(small.resolve())]


def test_no_input_is_fatal_and_writes_nothing(capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    code, out = run([], capsysbinary)

    assert code == 1
    assert out == b""
