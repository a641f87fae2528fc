"""
Diagnostics for chunk-framed responses.

Field ranges are resolved against raw wire bytes. When a provider answers
with `Transfer-Encoding: chunked`, chunk-size lines may be interleaved into
the body text and split a field across two chunks. Such a field either
does not match the raw framed body at all, or matches it truncated (a
chunk boundary inside a numeric value). In both cases the raw match text
differs from the match over the decoded logical body, and the field must
not be committed.

This module reports those fields. It never alters ranges and never raises
on malformed framing: decoding failures are recorded on the inspection
result.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from prover.app.domain.providers import Provider
from prover.app.errors import ChunkedDecodingError
from prover.app.parsing.chunked import decode_chunked
from prover.app.parsing.http_message import (
    MissingDelimiter,
    declares_chunked,
    response_segments,
    split_message,
)
from prover.app.schemas.transcript import ResponseBody

logger = logging.getLogger(__name__)


def inspect_response_bodies(received: bytes) -> List[ResponseBody]:
    """Describe every HTTP response in a received buffer."""
    bodies: List[ResponseBody] = []

    for offset, segment in response_segments(received):
        header, body = split_message(
            segment, missing=MissingDelimiter.AS_HEADER
        )
        chunked = declares_chunked(header)

        logical_body = body
        decode_error = None

        if chunked:
            try:
                logical_body = decode_chunked(body)
            except ChunkedDecodingError as exc:
                logical_body = None
                decode_error = str(exc)
                logger.warning(
                    "Chunked body at offset %d could not be decoded: %s",
                    offset,
                    exc,
                )

        bodies.append(
            ResponseBody(
                offset=offset,
                body_offset=offset + len(header),
                chunked=chunked,
                raw_body=body,
                logical_body=logical_body,
                decode_error=decode_error,
            )
        )

    return bodies


def _first_match(regex, buffer: bytes) -> Optional[bytes]:
    match = regex.search(buffer)
    return None if match is None else match.group(0)


def find_split_fields(received: bytes, provider: Provider) -> List[str]:
    """
    Names of fields whose literal text in the decoded chunked body is not
    reproduced by the raw framing. Only the last response is considered.

    A field is split when it matches the logical body and either has no
    raw match or a raw match with different text.
    """
    bodies = inspect_response_bodies(received)
    if not bodies:
        return []

    last = bodies[-1]
    if not last.chunked or last.logical_body is None:
        return []

    split: List[str] = []
    for field_pattern in provider.field_patterns():
        regex = field_pattern.compile()
        logical = _first_match(regex, last.logical_body)
        if logical is None:
            continue
        if _first_match(regex, last.raw_body) != logical:
            split.append(field_pattern.name)

    return split
