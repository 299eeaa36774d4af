"""Access log line parsers: plain URL, tab-separated and tskv formats.

Auto-detect order:
  1. Starts with neither 'tskv' nor '[' → plain (the whole line is the URL)
  2. First tab field is exactly 'tskv' → tskv key=value pairs
  3. Otherwise ('[timestamp]\\t...') → tab-separated
"""

import re
from dataclasses import dataclass

# Positions of the URL and wizards columns in tab-separated logs
TAB_URL_FIELD = 1
TAB_TAGS_FIELD = 12

_CGI_SEPARATOR_RE = re.compile(rb"[?&]")


@dataclass(frozen=True)
class LogRecord:
    url: bytes
    tags: bytes  # comma-separated wizard names


# ---------------------------------------------------------------------------
# Format-specific parsers
# ---------------------------------------------------------------------------


def make_record_from_plain_line(line: bytes) -> LogRecord:
    return LogRecord(url=line, tags=b"")


def parse_tab_separated_log_line(line: bytes) -> LogRecord:
    """Take the URL from column 1 and the wizards from column 12.

    Missing columns give empty values; columns after 12 are not split.
    """
    fields = line.split(b"\t", TAB_TAGS_FIELD + 1)
    url = fields[TAB_URL_FIELD] if len(fields) > TAB_URL_FIELD else b""
    tags = fields[TAB_TAGS_FIELD] if len(fields) > TAB_TAGS_FIELD else b""
    return LogRecord(url=url, tags=tags)


def parse_tskv_log_line(line: bytes) -> LogRecord:
    """Take the ``url`` and ``wizards`` keys of a tskv line, ignoring the rest."""
    url = b""
    tags = b""
    for item in line.split(b"\t"):
        key, _, value = item.partition(b"=")
        if key == b"url":
            url = value
        elif key == b"wizards":
            tags = value
    return LogRecord(url=url, tags=tags)


# ---------------------------------------------------------------------------
# Auto-detect entry point
# ---------------------------------------------------------------------------


def parse_log_line(line: bytes) -> LogRecord:
    """Parse a line of any supported format into a LogRecord."""
    if not line.startswith((b"tskv", b"[")):
        return make_record_from_plain_line(line)
    if line.split(b"\t", 1)[0] == b"tskv":
        return parse_tskv_log_line(line)
    return parse_tab_separated_log_line(line)


# ---------------------------------------------------------------------------
# URL helpers
# ---------------------------------------------------------------------------


def get_cgi_param_value_naive(url: bytes, param: bytes) -> bytes | None:
    """Return the value of query parameter *param*, or None if it is absent.

    Naive but fast: no percent-decoding, and '?' and '&' are both treated
    as separators wherever they occur.
    """
    n = len(param)
    for part in _CGI_SEPARATOR_RE.split(url):
        if part.startswith(param) and part[n:n + 1] == b"=":
            return part[n + 1:]
    return None


def get_host_port_resource_from_url(url: bytes) -> tuple[bytes, bytes, bytes]:
    """Split 'http://host:port/resource' → (host, port, resource).

    The resource keeps its query string and loses the leading '/'.
    """
    if url.startswith(b"http://"):
        url = url[len(b"http://"):]
    host_port, _, resource = url.partition(b"/")
    host, _, port = host_port.partition(b":")
    return host, port, resource
