"""Assembles reader → parser → sampler → round-robin writers and runs them."""

import logging
import os
from dataclasses import dataclass
from typing import Callable

from ammogen.ammo import make_bullet_data_from_log_record
from ammogen.config import Algo, RunConf
from ammogen.errors import LogicError, ProcError, ProcIOError
from ammogen.filters import FilteringReader, build_filter_chain
from ammogen.parser import parse_log_line
from ammogen.processors import AmmoProcessor, MethodS, ReservoirSampling, RoundRobin, WriteAmmo
from ammogen.reader import Chained, FactoryReader, FileLinesReader, LineSource, StdinReader

logger = logging.getLogger(__name__)


@dataclass
class RunStats:
    lines_read: int = 0
    bullets_written: int = 0


def make_writer(conf: RunConf) -> RoundRobin:
    """One WriteAmmo per output file (or stdout), fed in round-robin order."""
    if not conf.out_files:
        return RoundRobin([WriteAmmo.to_stdout()])
    writers = []
    try:
        for path in conf.out_files:
            writers.append(WriteAmmo.to_path(path, conf.compressor))
    except ProcError:
        for opened in writers:
            opened.discard()
        raise
    return RoundRobin(writers)


def _make_source(source) -> LineSource:
    if callable(source):
        return FactoryReader(source)
    if not os.path.isfile(source):
        raise ProcIOError(f"Path {str(source)!r} does not exist or is not a file")
    return FileLinesReader(source)


def make_reader(conf: RunConf) -> LineSource:
    """Chain all inputs (stdin if none) and drop auxiliary requests."""
    if not conf.in_files:
        source = StdinReader()
    else:
        source = Chained([_make_source(s) for s in conf.in_files])
    return FilteringReader(source, build_filter_chain(conf.exclude_patterns))


def get_lines_count(reader: LineSource) -> int:
    count = 0
    for _ in reader.lines():
        count += 1
    return count


def _target_set_size(conf: RunConf) -> int:
    if conf.target_set_size is None:
        raise LogicError(f"sampling method {conf.algo.value!r} needs a target set size")
    return conf.target_set_size


def count_input_lines(conf: RunConf, reader: LineSource) -> int:
    """First pass of stream sampling: count the lines *reader* yields."""
    target_set_size = _target_set_size(conf)
    if not reader.rereadable:
        raise LogicError("stream sampling reads the input twice, but the input can be read only once")
    lines_count = get_lines_count(reader)
    logger.info("Counted %d input lines, selecting %d", lines_count, target_set_size)
    if lines_count < target_set_size:
        raise LogicError(
            f"Not enough input lines: have {lines_count} "
            f"but at least {target_set_size} is needed"
        )
    return lines_count


def make_processor(
    conf: RunConf,
    writer: AmmoProcessor,
    reader: LineSource,
    lines_count: int | None = None,
) -> AmmoProcessor:
    """Put the configured sampling stage in front of *writer*.

    Method S needs the total number of lines; unless *lines_count* is
    given, *reader* is read once here before the main pass.
    """
    if conf.algo is Algo.DO_NOT_RANDOMIZE:
        return writer
    target_set_size = _target_set_size(conf)
    if conf.algo is Algo.RESERVOIR_SAMPLING:
        return ReservoirSampling(target_set_size, writer)

    if lines_count is None:
        lines_count = count_input_lines(conf, reader)
    return MethodS(lines_count, target_set_size, writer)


def make_log_line_process_func(processor: AmmoProcessor, stats: RunStats) -> Callable[[bytes], None]:
    def process_log_line(line: bytes) -> None:
        stats.lines_read += 1
        rec = parse_log_line(line)
        processor.process(make_bullet_data_from_log_record(rec))

    return process_log_line


def run(conf: RunConf) -> RunStats:
    """Run the whole pipeline once; raises ProcError on the first failure."""
    logger.info(
        "Generating ammo: inputs=%s outputs=%s method=%s count=%s",
        list(map(str, conf.in_files)) or "<stdin>",
        list(map(str, conf.out_files)) or "<stdout>",
        conf.algo.name,
        conf.target_set_size,
    )
    reader = make_reader(conf)
    # the count happens before outputs are opened and truncated
    lines_count = count_input_lines(conf, reader) if conf.algo is Algo.METHOD_S else None
    writer = make_writer(conf)

    stats = RunStats()
    try:
        mixer = make_processor(conf, writer, reader, lines_count)
        reader.process_lines(make_log_line_process_func(mixer, stats))
        mixer.finish()
    except BaseException:
        for consumer in writer.subprocessors:
            consumer.discard()
        raise

    stats.bullets_written = sum(w.written for w in writer.subprocessors)
    return stats
