from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class ProofEventType(str, Enum):
    """
    Progression events emitted while proving or presenting.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Global lifecycle
    # ------------------------------------------------------------------
    PROOF_STARTED = "proof_started"
    PROOF_COMPLETED = "proof_completed"
    PROOF_FAILED = "proof_failed"

    # ------------------------------------------------------------------
    # Live session
    # ------------------------------------------------------------------
    SESSION_ESTABLISHED = "session_established"
    OWNERSHIP_VERIFIED = "ownership_verified"
    DETAILS_RETRIEVED = "details_retrieved"
    TRANSCRIPT_FINALIZED = "transcript_finalized"

    # ------------------------------------------------------------------
    # Commitment / notarization
    # ------------------------------------------------------------------
    COMMITMENTS_PLANNED = "commitments_planned"
    NOTARIZATION_COMPLETED = "notarization_completed"
    ARTIFACTS_SAVED = "artifacts_saved"

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------
    PRESENTATION_BUILT = "presentation_built"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class ProofEvent(BaseModel):
    """
    An immutable observation of a phase transition within a proof.

    Events are:
    - strictly observational
    - transport-agnostic
    - free of credentials and undisclosed transcript bytes
    """

    event_id: UUID = Field(default_factory=uuid4)
    proof_id: str = Field(..., description="The invocation identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: ProofEventType

    # Optional contextual metadata (counts, phase names, paths)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_sse_payload(self) -> str:
        data = json.dumps(self.model_dump(mode="json"), separators=(",", ":"))
        return f"event: {self.event_type.value}\ndata: {data}\n\n"
