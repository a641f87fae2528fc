"""
Transcript and disclosure value types.

All types here are immutable value objects. None of them reference each
other cyclically; ownership of a Transcript moves between processes via
serialization (persisted secrets), never via shared mutable state.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


class Transcript(BaseModel):
    """
    The complete sent / received byte streams of one TLS session.

    Produced by the attestation backend once the background protocol task
    has completed. Read-only to the prover.
    """

    sent: bytes = Field(..., description="Bytes written to the server")
    received: bytes = Field(..., description="Bytes read from the server")

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Ranges
# ---------------------------------------------------------------------------


class FieldRange(BaseModel):
    """
    Half-open byte span [start, end) into one transcript buffer.
    """

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    name: str

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def enforce_ordering(self):
        if self.start > self.end:
            raise ValueError(
                f"Range start {self.start} exceeds end {self.end}"
            )
        return self

    def __len__(self) -> int:
        return self.end - self.start

    def shifted(self, offset: int) -> "FieldRange":
        return self.model_copy(
            update={"start": self.start + offset, "end": self.end + offset}
        )

    def extract(self, buffer: bytes) -> bytes:
        if self.end > len(buffer):
            raise ValueError(
                f"Range {self.start}..{self.end} exceeds buffer length "
                f"{len(buffer)}"
            )
        return buffer[self.start : self.end]


# The Host header locator has exactly the FieldRange shape.
HeaderRange = FieldRange


class DisclosurePlan(BaseModel):
    """
    The ranges committed at proving time and revealed at presentation time.

    Recomputed from the transcript on both occasions; two plans derived
    from the same transcript and registry compare equal.
    """

    host_range: HeaderRange = Field(
        ...,
        description="Span of the `host:` header line in the sent buffer",
    )

    field_ranges: List[FieldRange] = Field(
        default_factory=list,
        description="Spans of located fields in the received buffer",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def field_names(self) -> List[str]:
        return [r.name for r in self.field_ranges]


# ---------------------------------------------------------------------------
# Ownership / display projections
# ---------------------------------------------------------------------------


class OwnershipResult(BaseModel):
    """Outcome of the phase-1 membership check."""

    target_id: str
    owned: bool
    records_scanned: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True)


class TransactionMetadata(BaseModel):
    """
    Display-only projection of a transaction detail document.

    Has no effect on ranges or commitments.
    """

    id: str = "unknown"
    amount: str = "unknown"
    currency: str = "unknown"
    status: str = "unknown"
    date: str = "unknown"

    model_config = ConfigDict(frozen=True)


class ResponseBody(BaseModel):
    """Diagnostic view of one HTTP response inside a received buffer."""

    offset: int = Field(..., ge=0, description="Start of the status line")
    body_offset: int = Field(..., ge=0, description="Start of the raw body")
    chunked: bool = False
    raw_body: bytes = b""
    logical_body: Optional[bytes] = Field(
        None,
        description="Decoded body, None if chunk decoding failed",
    )
    decode_error: Optional[str] = None

    model_config = ConfigDict(frozen=True)
