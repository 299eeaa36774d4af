"""Line filters: drop sub-requests and other auxiliary traffic before parsing."""

from typing import Callable, Iterable, Iterator

from ammogen.reader import LineSource

# Markers of requests that were not issued by a real client.
DEFAULT_EXCLUDE_PATTERNS = (b"rep-outgoing=1", b"subrequest=1")


def has_marker(line: bytes, pattern: bytes) -> bool:
    """True if *pattern* occurs anywhere in the raw line."""
    return pattern in line


def build_filter_chain(exclude_patterns: Iterable[bytes]) -> Callable[[bytes], bool]:
    """Return a predicate that accepts a line only if it has none of the markers."""
    patterns = tuple(exclude_patterns)

    if not patterns:
        return lambda line: True

    def accept(line: bytes) -> bool:
        return not any(has_marker(line, p) for p in patterns)

    return accept


class FilteringReader(LineSource):
    """Passes through the lines of *source* accepted by *check*."""

    def __init__(self, source: LineSource, check: Callable[[bytes], bool]):
        self.source = source
        self.check = check

    @property
    def rereadable(self) -> bool:
        return self.source.rereadable

    def lines(self) -> Iterator[bytes]:
        return (line for line in self.source.lines() if self.check(line))
