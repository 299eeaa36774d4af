"""Run configuration from CLI args, environment variables and an optional YAML file."""

import argparse
import logging
import os
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Union

import yaml

from ammogen.filters import DEFAULT_EXCLUDE_PATTERNS
from ammogen.reader import LineSource
from ammogen.sinks import DEFAULT_COMPRESSOR

logger = logging.getLogger(__name__)


class Algo(Enum):
    DO_NOT_RANDOMIZE = "none"
    RESERVOIR_SAMPLING = "inmem"
    METHOD_S = "stream"


# An input is a path on disk or a factory producing a fresh LineSource
LinesSource = Union[str, os.PathLike, Callable[[], LineSource]]


class ConfigError(ValueError):
    """Raised for option combinations that cannot produce a run."""


@dataclass(frozen=True)
class RunConf:
    in_files: tuple[LinesSource, ...] = ()
    out_files: tuple[str, ...] = ()
    algo: Algo = Algo.DO_NOT_RANDOMIZE
    target_set_size: int | None = None
    exclude_patterns: tuple[bytes, ...] = DEFAULT_EXCLUDE_PATTERNS
    compressor: tuple[str, ...] = DEFAULT_COMPRESSOR
    log_level: str = "INFO"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gen-ammo",
        description="Make load-testing ammo from web server access logs.",
    )
    parser.add_argument(
        "-m", "--method",
        choices=["stream", "inmem"],
        help="Mixing method: 'stream' reads the input twice, 'inmem' keeps the sample in memory",
    )
    parser.add_argument(
        "-i", "--in",
        dest="in_files",
        nargs="+",
        action="extend",
        default=[],
        metavar="FILE",
        help="Use these files as input (you may specify more than one)",
    )
    parser.add_argument(
        "-o", "--out",
        dest="out_files",
        nargs="+",
        action="extend",
        default=[],
        metavar="FILE",
        help="Write ammo in these files",
    )
    parser.add_argument(
        "-p", "--ammo-prefix",
        help="Create output files with this prefix, e.g. '-p ammo/20170103 -n 2' "
             "creates ammo/20170103-00.txt and ammo/20170103-01.txt",
    )
    parser.add_argument(
        "-g", "--gzip",
        action="store_true",
        help="Gzip output files (and use .gz extension for them)",
    )
    parser.add_argument(
        "-n", "--nfiles",
        type=int,
        help="Count of output files",
    )
    parser.add_argument(
        "-c", "--count",
        type=int,
        help="Write COUNT bullets to each output file",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML file with exclude_patterns and compressor settings",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (default: INFO)",
    )
    return parser


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file {path} not found") from None
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file {path} is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def make_output_names(prefix: str, nfiles: int, gzip_output: bool) -> list[str]:
    """'prefix-00.txt', 'prefix-01.txt', ... ('.gz' when gzip_output)."""
    ext = "gz" if gzip_output else "txt"
    return [f"{prefix}-{i:02d}.{ext}" for i in range(nfiles)]


def _parse_compressor(value) -> tuple[str, ...]:
    if isinstance(value, str):
        command = tuple(shlex.split(value))
    elif isinstance(value, list):
        command = tuple(str(v) for v in value)
    else:
        raise ConfigError(f"compressor must be a string or a list, got {type(value).__name__}")
    if not command:
        raise ConfigError("compressor command must not be empty")
    return command


def _parse_exclude_patterns(value) -> tuple[bytes, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigError(f"exclude_patterns must be a list, got {type(value).__name__}")
    return tuple(str(p).encode() for p in value)


def _validate_args(args) -> None:
    if args.out_files and (args.ammo_prefix or args.nfiles is not None):
        raise ConfigError("--out cannot be combined with --ammo-prefix/--nfiles")
    if args.nfiles is not None and not args.ammo_prefix:
        raise ConfigError("--nfiles requires --ammo-prefix")
    if args.ammo_prefix and args.nfiles is None:
        raise ConfigError("--ammo-prefix requires --nfiles")
    if args.gzip and not args.ammo_prefix:
        raise ConfigError("--gzip requires --ammo-prefix")
    if args.nfiles is not None and args.nfiles <= 0:
        raise ConfigError("--nfiles must be greater than zero")
    if args.count is not None and args.count < 0:
        raise ConfigError("--count must not be negative")
    if args.method and args.count is None:
        raise ConfigError("--method requires --count")
    if args.method and args.count == 0:
        raise ConfigError("--count must be greater than zero when --method is given")
    if args.method == "stream" and not args.in_files:
        raise ConfigError("--method stream reads the input twice and cannot be used with stdin")


def load_config(argv=None) -> RunConf:
    """Build RunConf from CLI args, falling back to env vars and YAML settings."""
    args = build_parser().parse_args(argv)
    _validate_args(args)

    yaml_data = load_yaml_config(args.config or os.environ.get("AMMOGEN_CONFIG"))

    if args.ammo_prefix:
        out_files = make_output_names(args.ammo_prefix, args.nfiles, args.gzip)
    else:
        out_files = list(args.out_files)

    # stdout counts as a single output
    target_set_size = None
    if args.count is not None:
        target_set_size = args.count * max(1, len(out_files))

    algo = Algo(args.method) if args.method else Algo.DO_NOT_RANDOMIZE

    exclude_patterns = DEFAULT_EXCLUDE_PATTERNS
    if "exclude_patterns" in yaml_data:
        exclude_patterns = _parse_exclude_patterns(yaml_data["exclude_patterns"])

    compressor = DEFAULT_COMPRESSOR
    env_compressor = os.environ.get("AMMOGEN_COMPRESSOR")
    if env_compressor:
        compressor = _parse_compressor(env_compressor)
    elif "compressor" in yaml_data:
        compressor = _parse_compressor(yaml_data["compressor"])

    log_level = (args.log_level or os.environ.get("AMMOGEN_LOG_LEVEL", RunConf.log_level)).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ConfigError(f"Unknown log level {log_level!r}")

    return RunConf(
        in_files=tuple(args.in_files),
        out_files=tuple(out_files),
        algo=algo,
        target_set_size=target_set_size,
        exclude_patterns=exclude_patterns,
        compressor=compressor,
        log_level=log_level,
    )
