"""Tests for ammogen/reader.py"""

import gzip
import io
import os
import sys
import tempfile
import unittest

import pytest

from ammogen.errors import ProcIOError
from ammogen.reader import (
    GZIP_SNIFF_SIZE,
    Chained,
    FactoryReader,
    FileLinesReader,
    GenericReader,
    StdinReader,
    iter_stream_lines,
    looks_like_gzip,
)

# "line one\nline two\nline three\n" compressed by gzip(1)
GZ_THREE_LINES = bytes([
    0x1f, 0x8b, 0x8, 0x8, 0xa3, 0x9b, 0x6e, 0x58, 0x0, 0x3, 0x31, 0x2e,
    0x74, 0x78, 0x74, 0x0, 0xcb, 0xc9, 0xcc, 0x4b, 0x55, 0xc8, 0xcf, 0x4b, 0xe5, 0xca, 0x1,
    0x31, 0x4a, 0xca, 0xf3, 0xa1, 0x8c, 0x8c, 0xa2, 0xd4, 0x54, 0x2e, 0x0, 0x2e, 0x18, 0x8f,
    0x57, 0x1d, 0x0, 0x0, 0x0,
])


def _lines(data: bytes) -> list[bytes]:
    return list(GenericReader(io.BytesIO(data)).lines())


class TestIterStreamLines(unittest.TestCase):
    """Plain text streams."""

    def test_reads_all_lines(self):
        buf = io.BytesIO(b"line one\nline two\nline three\n")
        res = list(iter_stream_lines(buf))
        self.assertEqual(res, [b"line one", b"line two", b"line three"])

    def test_last_line_without_newline(self):
        self.assertEqual(_lines(b"one\ntwo"), [b"one", b"two"])

    def test_empty_stream(self):
        self.assertEqual(_lines(b""), [])

    def test_consecutive_newlines_leave_no_newline_bytes(self):
        res = _lines(b"a\n\n\nb\n")
        self.assertEqual(res, [b"a", b"", b"", b"b"])
        self.assertFalse(any(line.endswith(b"\n") for line in res))

    def test_carriage_return_is_kept(self):
        self.assertEqual(_lines(b"a\r\nb\r\n"), [b"a\r", b"b\r"])

    def test_does_not_close_stream(self):
        buf = io.BytesIO(b"x\n")
        list(iter_stream_lines(buf))
        self.assertFalse(buf.closed)


class TestGzipSniffing:
    def test_known_gzip_file(self):
        assert _lines(GZ_THREE_LINES) == [b"line one", b"line two", b"line three"]

    def test_looks_like_gzip(self):
        assert looks_like_gzip(GZ_THREE_LINES[:GZIP_SNIFF_SIZE])
        assert not looks_like_gzip(b"http://example.com/search?text=1\n")
        assert not looks_like_gzip(b"")

    @pytest.mark.parametrize("size", [1, GZIP_SNIFF_SIZE - 1, GZIP_SNIFF_SIZE, GZIP_SNIFF_SIZE + 1, 5000])
    def test_plain_bytes_around_sniff_window_are_kept(self, size):
        data = bytes(ord("a") + i % 26 for i in range(size))
        assert _lines(data) == [data]

    def test_gzip_and_plain_give_same_lines(self):
        text = b"".join(b"http://example.com/search?n=%d\n" % i for i in range(2000))
        assert _lines(gzip.compress(text)) == _lines(text)
        assert len(_lines(text)) == 2000

    def test_concatenated_gzip_members(self):
        data = gzip.compress(b"a\nb\n") + gzip.compress(b"c\n")
        assert _lines(data) == [b"a", b"b", b"c"]

    def test_truncated_gzip_raises(self):
        text = b"".join(b"line %d\n" % i for i in range(5000))
        data = gzip.compress(text)
        with pytest.raises(ProcIOError):
            _lines(data[: len(data) // 2])


class TestFileLinesReader:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "access.log"
        path.write_bytes(b"one\ntwo\n")
        assert list(FileLinesReader(path).lines()) == [b"one", b"two"]

    def test_reads_gzipped_file(self, tmp_path):
        path = tmp_path / "access.log.gz"
        path.write_bytes(gzip.compress(b"one\ntwo\n"))
        assert list(FileLinesReader(path).lines()) == [b"one", b"two"]

    def test_can_be_read_twice(self, tmp_path):
        path = tmp_path / "access.log"
        path.write_bytes(b"one\ntwo\n")
        reader = FileLinesReader(path)
        assert reader.rereadable
        assert list(reader.lines()) == list(reader.lines())

    def test_missing_file(self, tmp_path):
        reader = FileLinesReader(tmp_path / "nope.log")
        with pytest.raises(ProcIOError):
            list(reader.lines())

    def test_process_lines_calls_back_per_line(self, tmp_path):
        path = tmp_path / "access.log"
        path.write_bytes(b"one\ntwo\nthree")
        seen = []
        FileLinesReader(path).process_lines(seen.append)
        assert seen == [b"one", b"two", b"three"]


class TestSingleUseSources:
    def test_generic_reader_is_not_rereadable(self):
        assert GenericReader(io.BytesIO(b"")).rereadable is False

    def test_stdin_reader(self, monkeypatch):
        fake_stdin = io.TextIOWrapper(io.BytesIO(b"from stdin\nsecond\n"))
        monkeypatch.setattr(sys, "stdin", fake_stdin)
        reader = StdinReader()
        assert reader.rereadable is False
        assert list(reader.lines()) == [b"from stdin", b"second"]

    def test_factory_reader_builds_fresh_source(self):
        reader = FactoryReader(lambda: GenericReader(io.BytesIO(b"a\nb\n")))
        assert reader.rereadable
        assert list(reader.lines()) == [b"a", b"b"]
        assert list(reader.lines()) == [b"a", b"b"]


class TestChained(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def _write(self, name: str, data: bytes) -> str:
        path = os.path.join(self.tmpdir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def test_preserves_source_order(self):
        a = self._write("a.log", b"a1\na2\n")
        b = self._write("b.log.gz", gzip.compress(b"b1\n"))
        chained = Chained([FileLinesReader(a), FileLinesReader(b)])
        self.assertEqual(list(chained.lines()), [b"a1", b"a2", b"b1"])

    def test_rereadable_only_if_all_sources_are(self):
        a = self._write("a.log", b"a\n")
        self.assertTrue(Chained([FileLinesReader(a)]).rereadable)
        mixed = Chained([FileLinesReader(a), GenericReader(io.BytesIO(b"x"))])
        self.assertFalse(mixed.rereadable)

    def test_failure_aborts_chain(self):
        a = self._write("a.log", b"a\n")
        missing = os.path.join(self.tmpdir, "missing.log")
        c = self._write("c.log", b"c\n")
        chained = Chained([FileLinesReader(a), FileLinesReader(missing), FileLinesReader(c)])
        seen = []
        with self.assertRaises(ProcIOError):
            chained.process_lines(seen.append)
        self.assertEqual(seen, [b"a"])

    def test_empty_chain(self):
        self.assertEqual(list(Chained([]).lines()), [])
