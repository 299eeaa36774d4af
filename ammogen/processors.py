"""Sampling, round-robin fan-out and ammo writing stages.

Every stage consumes bullets one at a time through ``process`` and is told
that the input is over through ``finish``, which it passes on downstream.
"""

import io
import logging
import os
import random

from ammogen.ammo import BulletData, StoredBullet, write_bullet
from ammogen.errors import LogicError, ProcError, ProcIOError
from ammogen.sinks import DEFAULT_COMPRESSOR, ProcWriter, StdoutWriter, is_gzip_path, open_file_sink

logger = logging.getLogger(__name__)


class AmmoProcessor:
    def process(self, bullet: BulletData) -> None:
        raise NotImplementedError

    def finish(self) -> None:
        pass


class ReservoirSampling(AmmoProcessor):
    """Uniform sample of fixed size from a stream of unknown length.

    Keeps up to *set_size* bullets in memory; the sample is sent downstream
    only on ``finish``.
    """

    def __init__(self, set_size: int, subprocessor: AmmoProcessor, rng: random.Random | None = None):
        self.target_set_size = set_size
        self.subprocessor = subprocessor
        self.selected: list[StoredBullet] = []
        self.index = 0
        self._rng = rng or random.Random()

    def process(self, bullet: BulletData) -> None:
        if self.index < self.target_set_size:
            self.selected.append(StoredBullet.from_data(bullet))
        else:
            r = self._rng.randint(0, self.index)
            if r < self.target_set_size:
                self.selected[r] = StoredBullet.from_data(bullet)
        self.index += 1

    def finish(self) -> None:
        if len(self.selected) < self.target_set_size:
            raise LogicError(
                f"Not enough input lines: have seen {self.index} "
                f"but at least {self.target_set_size} were expected"
            )
        for stored in self.selected:
            self.subprocessor.process(stored.get_data())
        self.subprocessor.finish()


class MethodS(AmmoProcessor):
    """Selection sampling (Knuth's Algorithm S) over a stream of known length.

    Selected bullets are forwarded immediately, keeping the input order.
    """

    def __init__(
        self,
        input_lines_count: int,
        target_set_size: int,
        subprocessor: AmmoProcessor,
        rng: random.Random | None = None,
    ):
        if input_lines_count < target_set_size:
            raise LogicError(
                f"Not enough input lines: have {input_lines_count} "
                f"but at least {target_set_size} is needed"
            )
        self.input_lines_count = input_lines_count
        self.target_set_size = target_set_size
        self.subprocessor = subprocessor
        self.already_processed = 0
        self.already_selected = 0
        self._rng = rng or random.Random()

    def process(self, bullet: BulletData) -> None:
        need = self.target_set_size - self.already_selected
        not_seen = self.input_lines_count - self.already_processed
        if not_seen <= 0:
            raise LogicError(
                f"Input has more than the {self.input_lines_count} lines counted before sampling"
            )
        rnd = self._rng.randint(1, not_seen)
        if need >= rnd:
            self.already_selected += 1
            self.subprocessor.process(bullet)
        self.already_processed += 1

    def finish(self) -> None:
        self.subprocessor.finish()


class RoundRobin(AmmoProcessor):
    """Deals bullets to the subprocessors in turn, starting with the first."""

    def __init__(self, subprocessors: list[AmmoProcessor]):
        if not subprocessors:
            raise ValueError("RoundRobin needs at least one subprocessor")
        self.subprocessors = list(subprocessors)
        self.current = 0

    def process(self, bullet: BulletData) -> None:
        self.subprocessors[self.current].process(bullet)
        self.current += 1
        if self.current >= len(self.subprocessors):
            self.current = 0

    def finish(self) -> None:
        for consumer in self.subprocessors:
            consumer.finish()


class WriteAmmo(AmmoProcessor):
    """Serializes bullets into a byte sink."""

    def __init__(self, writer, name: str, owns_writer: bool = True):
        self.writer = writer
        self.name = name
        self.owns_writer = owns_writer
        self.written = 0
        self._buff = io.BytesIO()

    @classmethod
    def to_stdout(cls) -> "WriteAmmo":
        return cls(StdoutWriter(), "<stdout>")

    @classmethod
    def to_file(cls, filename: str | os.PathLike) -> "WriteAmmo":
        try:
            f = open_file_sink(filename)
        except OSError as exc:
            raise ProcIOError(f"cannot open {filename} for writing: {exc}") from exc
        return cls(f, str(filename))

    @classmethod
    def to_gzip(cls, filename: str | os.PathLike, compressor=DEFAULT_COMPRESSOR) -> "WriteAmmo":
        try:
            writer = ProcWriter(filename, compressor)
        except OSError as exc:
            raise ProcIOError(f"cannot start compressor for {filename}: {exc}") from exc
        return cls(writer, str(filename))

    @classmethod
    def to_path(cls, filename: str | os.PathLike, compressor=DEFAULT_COMPRESSOR) -> "WriteAmmo":
        """Plain file or compressor pipe, depending on the file extension."""
        if is_gzip_path(filename):
            logger.info("Writing %s through %s", filename, " ".join(compressor))
            return cls.to_gzip(filename, compressor)
        logger.info("Writing %s", filename)
        return cls.to_file(filename)

    @classmethod
    def to_stream(cls, stream, name: str = "<stream>") -> "WriteAmmo":
        """Write into a caller-owned stream; ``finish`` flushes but does not close it."""
        return cls(stream, name, owns_writer=False)

    def _reader_went_away(self, exc: OSError) -> bool:
        # stdout closed by its reader, e.g. `gen-ammo ... | head`
        return isinstance(exc, BrokenPipeError) and isinstance(self.writer, StdoutWriter)

    def process(self, bullet: BulletData) -> None:
        try:
            write_bullet(bullet, self._buff, self.writer)
        except OSError as exc:
            if self._reader_went_away(exc):
                raise
            raise ProcIOError(f"failed to write ammo to {self.name}: {exc}") from exc
        self.written += 1

    def finish(self) -> None:
        try:
            try:
                self.writer.flush()
            finally:
                if self.owns_writer:
                    self.writer.close()
        except OSError as exc:
            if self._reader_went_away(exc):
                raise
            raise ProcIOError(f"failed to finish {self.name}: {exc}") from exc
        logger.debug("%d bullets written to %s", self.written, self.name)

    def discard(self) -> None:
        """Close an owned sink after a failed run, ignoring errors from closing it."""
        if not self.owns_writer:
            return
        try:
            self.writer.close()
        except (OSError, ProcError) as exc:
            logger.debug("Ignoring error while closing %s: %s", self.name, exc)
