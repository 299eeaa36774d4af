"""Byte sinks for ammo output: plain file, stdout, or an external compressor."""

import logging
import os
import subprocess
import sys
from pathlib import Path

from ammogen.errors import ProcIOError

logger = logging.getLogger(__name__)

DEFAULT_COMPRESSOR = ("gzip", "-c")
GZIP_EXTENSION = ".gz"


class StdoutWriter:
    """Writes to the process stdout, looking it up again on every call."""

    def write(self, data: bytes) -> int:
        return sys.stdout.buffer.write(data)

    def flush(self):
        sys.stdout.buffer.flush()

    def close(self):
        # stdout belongs to the process, only flush it
        self.flush()


class ProcWriter:
    """Pipes everything written into an external compressor's stdin.

    The compressor's stdout goes to *path*. Closing the writer waits for
    the process and fails if it exited with a non-zero status.
    """

    def __init__(self, path: str | os.PathLike, command=DEFAULT_COMPRESSOR):
        self.path = path
        self.command = list(command)
        self._out = open(path, "wb")
        try:
            self._proc = subprocess.Popen(
                self.command, stdin=subprocess.PIPE, stdout=self._out,
            )
        except OSError:
            self._out.close()
            raise
        logger.debug("Started %s (pid=%d) for %s", self.command[0], self._proc.pid, path)

    def write(self, data: bytes) -> int:
        return self._proc.stdin.write(data)

    def flush(self):
        self._proc.stdin.flush()

    def close(self):
        if self._proc.stdin.closed:
            return
        try:
            self._proc.stdin.close()
        finally:
            returncode = self._proc.wait()
            self._out.close()
        if returncode != 0:
            raise ProcIOError(
                f"compressor {self.command[0]!r} exited with status {returncode} "
                f"while writing {self.path}"
            )


def is_gzip_path(path: str | os.PathLike) -> bool:
    return Path(path).suffix == GZIP_EXTENSION


def open_file_sink(path: str | os.PathLike):
    """Buffered binary file for writing, truncating any existing file."""
    return open(path, "wb")

