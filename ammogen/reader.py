"""Line sources: plain or gzip-compressed byte streams, read line by line.

Every source yields raw byte lines with the trailing newline stripped.
Compression is detected by sniffing the first bytes of the stream, so the
same source type handles ``access.log`` and ``access.log.gz`` alike.
"""

import gzip
import io
import logging
import os
import sys
import zlib
from typing import BinaryIO, Callable, Iterator

from ammogen.errors import ProcIOError

logger = logging.getLogger(__name__)

GZIP_SNIFF_SIZE = 128
GZIP_MAGIC = b"\x1f\x8b"


class _PrefixedStream(io.RawIOBase):
    """Replays bytes already taken from *stream* before reading on from it."""

    def __init__(self, prefix: bytes, stream: BinaryIO):
        self._prefix = memoryview(prefix)
        self._stream = stream

    def readable(self) -> bool:
        return True

    def readinto(self, b) -> int:
        if self._prefix:
            n = min(len(b), len(self._prefix))
            b[:n] = self._prefix[:n]
            self._prefix = self._prefix[n:]
            return n
        data = self._stream.read(len(b))
        n = len(data)
        b[:n] = data
        return n


def looks_like_gzip(prefetched: bytes) -> bool:
    """True if a gzip decoder accepts the given leading bytes of a stream."""
    # zlib waits for two bytes before checking the magic
    if not prefetched.startswith(GZIP_MAGIC):
        return False
    try:
        zlib.decompressobj(wbits=16 + zlib.MAX_WBITS).decompress(prefetched)
    except zlib.error:
        return False
    return True


def iter_stream_lines(raw: BinaryIO) -> Iterator[bytes]:
    """Yield lines of *raw*, decompressing it first if it is gzip data.

    Up to GZIP_SNIFF_SIZE bytes are read ahead for detection and then
    replayed, so no input byte is lost or duplicated. *raw* is not closed.
    """
    prefetched = raw.read(GZIP_SNIFF_SIZE) or b""
    stream = io.BufferedReader(_PrefixedStream(prefetched, raw))
    if looks_like_gzip(prefetched):
        logger.debug("gzip stream detected")
        stream = gzip.GzipFile(fileobj=stream, mode="rb")

    with stream:
        for line in stream:
            yield line.rstrip(b"\n")


class LineSource:
    """A finite sequence of log lines.

    ``rereadable`` tells whether ``lines()`` may be called more than once
    and yield the same data each time (required for two-pass sampling).
    """

    rereadable = False

    def lines(self) -> Iterator[bytes]:
        raise NotImplementedError

    def process_lines(self, feed_to: Callable[[bytes], None]) -> None:
        """Call *feed_to* once per line until the source is exhausted."""
        for line in self.lines():
            feed_to(line)


def _read_guarded(raw: BinaryIO, name: str) -> Iterator[bytes]:
    """Line iterator that turns read/decompression failures into ProcIOError."""
    lines = iter_stream_lines(raw)
    while True:
        try:
            line = next(lines)
        except StopIteration:
            return
        except (OSError, EOFError) as exc:
            raise ProcIOError(f"failed to read {name}: {exc}") from exc
        yield line


class GenericReader(LineSource):
    """Lines from an already opened binary stream (single use)."""

    def __init__(self, stream: BinaryIO, name: str = "<stream>"):
        self.stream = stream
        self.name = name

    def lines(self) -> Iterator[bytes]:
        return _read_guarded(self.stream, self.name)


class FileLinesReader(LineSource):
    """Lines from a file on disk; the file is reopened on every pass."""

    rereadable = True

    def __init__(self, filename: str | os.PathLike):
        self.filename = filename

    def lines(self) -> Iterator[bytes]:
        try:
            f = open(self.filename, "rb")
        except OSError as exc:
            raise ProcIOError(f"cannot open {self.filename}: {exc}") from exc
        logger.debug("Reading %s", self.filename)
        with f:
            yield from _read_guarded(f, str(self.filename))


class StdinReader(LineSource):
    """Lines from the process standard input (single use)."""

    def lines(self) -> Iterator[bytes]:
        return _read_guarded(sys.stdin.buffer, "<stdin>")


class FactoryReader(LineSource):
    """Builds a fresh source from *factory* on every pass.

    Used to feed in-memory data where a re-readable source is needed.
    """

    rereadable = True

    def __init__(self, factory: Callable[[], LineSource]):
        self.factory = factory

    def lines(self) -> Iterator[bytes]:
        return self.factory().lines()


class Chained(LineSource):
    """Lines of several sources, one source after another."""

    def __init__(self, sources: list[LineSource]):
        self.sources = list(sources)

    @property
    def rereadable(self) -> bool:
        return all(source.rereadable for source in self.sources)

    def lines(self) -> Iterator[bytes]:
        for source in self.sources:
            yield from source.lines()
