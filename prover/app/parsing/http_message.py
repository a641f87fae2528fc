"""
HTTP message splitting over raw transcript buffers.

The splitter locates the header/body delimiter and returns both sections
as raw bytes, so that offsets computed against either section can be
mapped back into the undivided buffer by adding len(header).

MISSING DELIMITER POLICY:
A buffer without a delimiter is absorbed by exactly one side. The side is
chosen by the caller and must not be unified into a default:

- AS_BODY:   header is empty, the whole buffer is body. Used by the
             field-range resolver, which still wants to scan everything.
- AS_HEADER: the whole buffer is header, body is empty. Used where
             header-relative offsets must stay meaningful (response
             inspection).
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import List, NamedTuple, Optional

from prover.app.errors import ChunkedDecodingError
from prover.app.parsing.chunked import chunked_length
from prover.app.parsing.patterns import HOST_HEADER_NAME, host_header_regex
from prover.app.schemas.transcript import HeaderRange

logger = logging.getLogger(__name__)


# Leftmost match wins, so "\n\n" before a later "\r\n\r\n" is the delimiter.
_DELIMITER = re.compile(rb"\r\n\r\n|\n\n")

_STATUS_LINE = re.compile(rb"HTTP/1\.[01] (\d{3})")
_CONTENT_LENGTH = re.compile(rb"^content-length:\s*(\d+)\s*$", re.IGNORECASE)
_CHUNKED_HEADER = re.compile(
    rb"^transfer-encoding:\s*.*\bchunked\b",
    re.IGNORECASE,
)


class MissingDelimiter(str, Enum):
    """Which section absorbs a buffer that has no header/body delimiter."""

    AS_HEADER = "as_header"
    AS_BODY = "as_body"


class MessageSections(NamedTuple):
    header: bytes
    body: bytes


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


def split_message(raw: bytes, *, missing: MissingDelimiter) -> MessageSections:
    """
    Split a raw HTTP message into (header section, body section).

    The header section includes the delimiter itself; the body section is
    everything after it.
    """
    match = _DELIMITER.search(raw)

    if match is None:
        if missing is MissingDelimiter.AS_HEADER:
            return MessageSections(header=raw, body=b"")
        return MessageSections(header=b"", body=raw)

    return MessageSections(header=raw[: match.end()], body=raw[match.end() :])


def header_lines(header: bytes) -> List[bytes]:
    """Return non-empty header lines, status line first."""
    return [
        line
        for line in re.split(rb"\r?\n", header)
        if line
    ]


# ---------------------------------------------------------------------------
# Host binding
# ---------------------------------------------------------------------------


def find_host_header_range(sent: bytes) -> Optional[HeaderRange]:
    """
    Locate the `host: <value>` line in the sent buffer.

    The whole buffer is scanned, not only the header section. Matching is
    case-sensitive. Returns None if no such line exists.
    """
    match = host_header_regex().search(sent)
    if match is None:
        return None

    host_range = HeaderRange(
        start=match.start(),
        end=match.end(),
        name=HOST_HEADER_NAME,
    )

    logger.info(
        "Host header found at %d..%d", host_range.start, host_range.end
    )
    return host_range


# ---------------------------------------------------------------------------
# Multi-response buffers
# ---------------------------------------------------------------------------


def declares_chunked(header: bytes) -> bool:
    return any(_CHUNKED_HEADER.match(line) for line in header_lines(header))


def _content_length(header: bytes) -> Optional[int]:
    for line in header_lines(header):
        match = _CONTENT_LENGTH.match(line)
        if match is not None:
            return int(match.group(1))
    return None


def _response_end(received: bytes, start: int) -> Optional[int]:
    """
    Offset just past the response starting at `start`, derived from its
    framing. None when the framing does not delimit the response
    (read-until-close bodies, truncated or malformed framing).
    """
    message = received[start:]
    if _DELIMITER.search(message) is None:
        return None

    header, body = split_message(message, missing=MissingDelimiter.AS_HEADER)
    body_start = start + len(header)

    code = status_code(message)
    if code is not None and (100 <= code < 200 or code in (204, 304)):
        return body_start

    if declares_chunked(header):
        try:
            return body_start + chunked_length(body)
        except ChunkedDecodingError:
            return None

    length = _content_length(header)
    if length is None or length > len(body):
        return None
    return body_start + length


def response_offsets(received: bytes) -> List[int]:
    """
    Start offsets of every HTTP/1.x response in a received buffer.

    Responses are delimited by their own framing (content-length or
    chunked encoding), never by searching for status-line text: a body
    is not newline-terminated, so the next status line follows it
    directly. Scanning stops at the first response whose framing does
    not delimit it. A buffer that does not open with a status line is a
    single response starting at offset 0.
    """
    offsets: List[int] = []
    position = 0

    while position < len(received):
        if _STATUS_LINE.match(received, position) is None:
            break
        offsets.append(position)

        end = _response_end(received, position)
        if end is None:
            break
        position = end

    return offsets or [0]


def last_response_offset(received: bytes) -> int:
    return response_offsets(received)[-1]


def response_segments(received: bytes) -> List[tuple[int, bytes]]:
    """Split a received buffer into (offset, raw response) pairs."""
    offsets = response_offsets(received)
    bounds = offsets[1:] + [len(received)]
    return [
        (start, received[start:end])
        for start, end in zip(offsets, bounds)
    ]


def status_code(response: bytes) -> Optional[int]:
    match = _STATUS_LINE.match(response)
    if match is None:
        return None
    return int(match.group(1))
