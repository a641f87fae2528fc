"""
Field-range resolution over raw received buffers.

Ranges are addresses into the ORIGINAL, undivided buffer: a match found in
the body section is shifted by the header section length. Each registry
pattern is evaluated independently, first match only, in registry order.
A pattern without a match is simply omitted.
"""

from __future__ import annotations

import logging
from typing import List

from prover.app.domain.providers import Provider
from prover.app.parsing.http_message import (
    MissingDelimiter,
    last_response_offset,
    split_message,
)
from prover.app.schemas.transcript import FieldRange

logger = logging.getLogger(__name__)


def find_field_ranges(received: bytes, provider: Provider) -> List[FieldRange]:
    header, body = split_message(received, missing=MissingDelimiter.AS_BODY)
    offset = len(header)

    ranges: List[FieldRange] = []

    for field_pattern in provider.field_patterns():
        match = field_pattern.compile().search(body)
        if match is None:
            continue

        field_range = FieldRange(
            start=offset + match.start(),
            end=offset + match.end(),
            name=field_pattern.name,
        )
        ranges.append(field_range)

        logger.info(
            "Found field %s at %d..%d",
            field_range.name,
            field_range.start,
            field_range.end,
        )

    return ranges


def find_last_response_field_ranges(
    received: bytes, provider: Provider
) -> List[FieldRange]:
    """
    Resolve field ranges over the last HTTP response in the buffer.

    In dual-phase sessions the received buffer holds the list response
    followed by the detail response; only the detail response is a
    disclosure target. Ranges are returned in whole-buffer coordinates.
    """
    start = last_response_offset(received)
    if start == 0:
        return find_field_ranges(received, provider)

    return [
        r.shifted(start)
        for r in find_field_ranges(received[start:], provider)
    ]
