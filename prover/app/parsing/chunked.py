"""
HTTP/1.1 chunked transfer decoding.

Used for body validation and diagnostics only. Field ranges are never
computed against decoded bodies: the attestation backend commits and
reveals literal transcript bytes.

Wire format:

    <hex-size>[;extension]\\r\\n
    <size bytes>\\r\\n
    ...
    0\\r\\n
    [trailers]\\r\\n
"""

from __future__ import annotations

from typing import Tuple

from prover.app.errors import ChunkedDecodingError

MAX_CHUNKS = 1000

_CRLF = b"\r\n"


def _parse_size(token: bytes, position: int) -> int:
    size_text = token.split(b";", 1)[0].strip()

    if not size_text:
        raise ChunkedDecodingError(
            f"Empty chunk size token at offset {position}"
        )

    try:
        return int(size_text.decode("ascii"), 16)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ChunkedDecodingError(
            f"Invalid chunk size {size_text!r} at offset {position}"
        ) from exc


def _walk_chunks(raw: bytes) -> Tuple[bytes, int]:
    """
    Return the logical content and the offset just past the zero-size
    chunk line.
    """
    decoded = bytearray()
    position = 0

    for _ in range(MAX_CHUNKS):
        line_end = raw.find(_CRLF, position)
        if line_end == -1:
            raise ChunkedDecodingError(
                f"Missing chunk size line at offset {position}"
            )

        size = _parse_size(raw[position:line_end], position)
        position = line_end + len(_CRLF)

        if size == 0:
            return bytes(decoded), position

        remaining = len(raw) - position
        if size > remaining:
            raise ChunkedDecodingError(
                f"Chunk size {size} exceeds remaining {remaining} bytes"
            )

        decoded += raw[position : position + size]
        position += size

        if raw[position : position + len(_CRLF)] != _CRLF:
            raise ChunkedDecodingError(
                f"Missing CRLF after chunk data at offset {position}"
            )
        position += len(_CRLF)

    raise ChunkedDecodingError(
        f"Chunked body exceeds {MAX_CHUNKS} chunks"
    )


def decode_chunked(raw: bytes) -> bytes:
    """
    Reassemble a chunk-framed body into its logical content.

    Stops at the zero-size chunk; trailers after it are ignored.
    Raises ChunkedDecodingError on malformed framing, on a buffer that
    ends before the zero-size chunk, or after MAX_CHUNKS chunks.
    """
    decoded, _ = _walk_chunks(raw)
    return decoded


def chunked_length(raw: bytes) -> int:
    """
    Number of wire bytes the chunked body at the start of `raw` occupies,
    trailer section and terminating CRLF included.

    Raises ChunkedDecodingError where `decode_chunked` would, and when the
    trailer section is not terminated.
    """
    _, position = _walk_chunks(raw)

    if raw[position : position + len(_CRLF)] == _CRLF:
        return position + len(_CRLF)

    trailers_end = raw.find(_CRLF + _CRLF, position)
    if trailers_end == -1:
        raise ChunkedDecodingError(
            f"Unterminated trailer section at offset {position}"
        )
    return trailers_end + 2 * len(_CRLF)
