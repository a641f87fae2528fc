"""
Provider field pattern registry.

Each supported provider maps to an ordered, immutable sequence of
(pattern, field name) pairs. Verifiers rely on the field names, so the
registry is an external contract and MUST stay stable across prove and
verify tooling.

Patterns match the literal key-value text (e.g. `"id":12345`), never the
bare value, so that a committed span carries its own field name.
"""

from __future__ import annotations

import re
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Tuple

from pydantic import BaseModel, ConfigDict, Field

from prover.app.domain.providers import Provider


class FieldPattern(BaseModel):
    """A textual matcher bound to a semantic field name."""

    pattern: str = Field(
        ...,
        description="Regular expression matched against the raw response body",
    )

    name: str = Field(
        ...,
        description="Semantic field name exposed to verifiers",
    )

    model_config = ConfigDict(frozen=True)

    def compile(self) -> re.Pattern[bytes]:
        return _compiled(self.pattern)


@lru_cache(maxsize=None)
def _compiled(pattern: str) -> re.Pattern[bytes]:
    # Byte patterns keep match offsets identical to raw transcript offsets.
    return re.compile(pattern.encode("utf-8"))


# ---------------------------------------------------------------------------
# Registry (FROZEN CONTRACT)
# ---------------------------------------------------------------------------

WISE_FIELD_PATTERNS: Tuple[FieldPattern, ...] = (
    FieldPattern(pattern=r'"id":([0-9]+)', name="paymentId"),
    FieldPattern(pattern=r'"state":"([^"]+)"', name="state"),
    FieldPattern(
        pattern=r'"state":"OUTGOING_PAYMENT_SENT","date":([0-9]+)',
        name="timestamp",
    ),
    FieldPattern(pattern=r'"targetAmount":([0-9\.]+)', name="targetAmount"),
    FieldPattern(pattern=r'"targetCurrency":"([^"]+)"', name="targetCurrency"),
    FieldPattern(
        pattern=r'"targetRecipientId":([0-9]+)',
        name="targetRecipientId",
    ),
)

# PayPal has no defined field taxonomy yet.
PAYPAL_FIELD_PATTERNS: Tuple[FieldPattern, ...] = ()

FIELD_PATTERN_REGISTRY: Mapping[Provider, Tuple[FieldPattern, ...]] = (
    MappingProxyType(
        {
            Provider.WISE: WISE_FIELD_PATTERNS,
            Provider.PAYPAL: PAYPAL_FIELD_PATTERNS,
        }
    )
)

HOST_HEADER_PATTERN: str = r"host: [^\r\n]+"
HOST_HEADER_NAME: str = "host"


def get_field_patterns(provider: Provider) -> Tuple[FieldPattern, ...]:
    """Return the ordered field patterns registered for a provider."""
    return FIELD_PATTERN_REGISTRY[provider]


def host_header_regex() -> re.Pattern[bytes]:
    return _compiled(HOST_HEADER_PATTERN)
