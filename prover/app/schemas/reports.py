"""
Reports returned by the prove, present and verify drivers.

Reports never carry secrets: no session credentials, no undisclosed
transcript bytes, no `secrets` artifact contents.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from prover.app.domain.providers import Provider
from prover.app.schemas.transcript import (
    DisclosurePlan,
    OwnershipResult,
    TransactionMetadata,
)


class ProveMode(str, Enum):
    """
    PROVE:            run the session, notarize, persist attestation + secrets
    PRESENT:          load persisted artifacts, build the presentation
    PROVE_TO_PRESENT: both, in one invocation
    """

    PROVE = "prove"
    PRESENT = "present"
    PROVE_TO_PRESENT = "prove_to_present"

    @property
    def opens_session(self) -> bool:
        return self is not ProveMode.PRESENT

    @property
    def builds_presentation(self) -> bool:
        return self is not ProveMode.PROVE


class ArtifactPaths(BaseModel):
    attestation: Optional[str] = None
    secrets: Optional[str] = None
    presentation: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ProofReport(BaseModel):
    """Outcome of one prove / present invocation."""

    proof_id: str = Field(..., description="Identifier of this invocation")
    provider: Provider
    transaction_id: str
    mode: ProveMode

    phases_executed: List[str] = Field(
        default_factory=list,
        description="Requests issued over the session, in order",
    )

    ownership: Optional[OwnershipResult] = Field(
        None,
        description="Phase-1 membership check; None in single-phase mode",
    )

    transaction: Optional[TransactionMetadata] = Field(
        None,
        description="Display-only projection of the detail response",
    )

    plan: DisclosurePlan

    split_fields: List[str] = Field(
        default_factory=list,
        description="Fields split by chunk framing and absent from the plan",
    )

    artifacts: ArtifactPaths = Field(default_factory=ArtifactPaths)

    model_config = ConfigDict(frozen=True)


class PresentationVerificationReport(BaseModel):
    """What a verifier learns from a presentation."""

    provider: Provider
    transaction_id: Optional[str] = None

    server_name: Optional[str] = None
    session_time: Optional[datetime] = None

    notary_key_alg: str
    notary_key_hex: str

    host_header: Optional[str] = Field(
        None,
        description="Disclosed `host:` line of the sent transcript",
    )

    revealed_fields: Dict[str, str] = Field(
        default_factory=dict,
        description="Field name to disclosed key-value text",
    )

    verified: bool = Field(
        ...,
        description="True when the presentation verified and discloses fields",
    )

    model_config = ConfigDict(frozen=True)
