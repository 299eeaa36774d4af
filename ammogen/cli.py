"""Command-line entry point for gen-ammo."""

import logging
import os
import sys

from ammogen.config import ConfigError, load_config
from ammogen.errors import ProcError
from ammogen.pipeline import run

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO"):
    # stdout may carry ammo, keep diagnostics on stderr
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def main(argv=None) -> int:
    try:
        conf = load_config(argv)
    except ConfigError as exc:
        setup_logging()
        logger.error("%s", exc)
        return 1

    setup_logging(conf.log_level)

    try:
        stats = run(conf)
    except BrokenPipeError:
        # nothing left to write to; keep the interpreter's final flush quiet
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        os.close(devnull)
        logger.debug("stdout closed by reader, stopping")
        return 0
    except ProcError as exc:
        logger.error("%s", exc)
        return 1

    logger.info("Done — %d lines read, %d bullets written", stats.lines_read, stats.bullets_written)
    return 0
