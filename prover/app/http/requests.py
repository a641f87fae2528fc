"""
Construction of provider API requests sent through the MPC-TLS transport.

Header names are written in lowercase, as HTTP/1.1 stacks such as hyper do
on the wire. The sent transcript must contain a literal `host:` line for
the disclosure plan to bind the server identity.

`accept-encoding: identity` is mandatory: the transcript is committed
byte-for-byte and compressed bodies cannot be matched against field
patterns.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import httpx

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"

_SENSITIVE_HEADERS = {"cookie", "x-access-token", "authorization"}


def build_request(
    uri: str,
    server_name: str,
    extra_headers: Sequence[Tuple[str, str]],
    description: str,
    user_agent: str,
    *,
    keep_alive: bool,
) -> httpx.Request:
    """
    Build a GET request for `uri` on `server_name`.

    `keep_alive` must be True for every request but the last one issued
    over a session, so the connection survives until the final response.
    """
    headers: List[Tuple[str, str]] = [
        ("host", server_name),
        ("accept", "*/*"),
        ("accept-encoding", "identity"),
        ("connection", "keep-alive" if keep_alive else "close"),
        ("user-agent", user_agent),
    ]
    headers.extend((name.lower(), value) for name, value in extra_headers)

    request = httpx.Request(
        "GET",
        f"https://{server_name}{uri}",
        headers=headers,
    )

    logger.info("Building %s request", description)
    logger.debug("Request URI: %s", uri)
    for name, value in redact_headers(headers):
        logger.debug("Request header %s: %s", name, value)

    return request


def redact_headers(
    headers: Sequence[Tuple[str, str]],
) -> List[Tuple[str, str]]:
    return [
        (name, REDACTED if name.lower() in _SENSITIVE_HEADERS else value)
        for name, value in headers
    ]
