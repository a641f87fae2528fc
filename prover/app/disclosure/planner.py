"""
Selective disclosure planning.

COMMIT MODE (right after a live session):
    plan = plan(transcript, provider)
    commit(prover, plan)      -> commitment set bound into the attestation

REVEAL MODE (later, possibly another process, from persisted secrets):
    plan = plan(secrets.transcript, provider)
    reveal(secrets, plan)     -> transcript proof

INVARIANT:
Both modes derive the plan from the same pure functions over the same
immutable transcript. No state is carried between commit and reveal beyond
the transcript and the secrets themselves. A reveal range that is not
covered by a commitment is refused by the backend, and that refusal is
surfaced as DisclosureMismatchError. Nothing is ever revealed partially.
"""

from __future__ import annotations

import logging
from typing import Any, List

from prover.app.attestation.backend import CommittedProver, Secrets
from prover.app.domain.providers import Provider
from prover.app.errors import DisclosureMismatchError, HostBindingError
from prover.app.parsing.body_inspection import find_split_fields
from prover.app.parsing.field_ranges import find_last_response_field_ranges
from prover.app.parsing.http_message import find_host_header_range
from prover.app.schemas.transcript import DisclosurePlan, Transcript

logger = logging.getLogger(__name__)


class SelectiveDisclosurePlanner:
    """
    Derives commit and reveal ranges from a transcript.

    Stateless; a single instance may be shared across sessions.
    """

    # ------------------------------------------------------------------
    # Derivation (shared by both modes)
    # ------------------------------------------------------------------

    def plan(self, transcript: Transcript, provider: Provider) -> DisclosurePlan:
        host_range = find_host_header_range(transcript.sent)
        if host_range is None:
            raise HostBindingError(
                "Sent transcript has no 'host:' header; cannot bind server "
                "identity"
            )

        field_ranges = find_last_response_field_ranges(
            transcript.received, provider
        )

        split = self.split_fields(transcript, provider)
        for name in split:
            logger.warning(
                "Field %s is split by chunk framing and cannot be disclosed",
                name,
            )
        field_ranges = [r for r in field_ranges if r.name not in split]

        return DisclosurePlan(host_range=host_range, field_ranges=field_ranges)

    @staticmethod
    def split_fields(transcript: Transcript, provider: Provider) -> List[str]:
        return find_split_fields(transcript.received, provider)

    # ------------------------------------------------------------------
    # Commit mode
    # ------------------------------------------------------------------

    def commit(self, prover: CommittedProver, plan: DisclosurePlan) -> Any:
        builder = prover.commit_builder()

        builder.commit_sent(plan.host_range.start, plan.host_range.end)
        for field_range in plan.field_ranges:
            builder.commit_recv(field_range.start, field_range.end)

        logger.debug(
            "Committed 1 sent range and %d received ranges",
            len(plan.field_ranges),
        )
        return builder.build()

    # ------------------------------------------------------------------
    # Reveal mode
    # ------------------------------------------------------------------

    def reveal(self, secrets: Secrets, plan: DisclosurePlan) -> Any:
        try:
            builder = secrets.reveal_builder()

            builder.reveal_sent(plan.host_range.start, plan.host_range.end)
            for field_range in plan.field_ranges:
                builder.reveal_recv(field_range.start, field_range.end)

            proof = builder.build()
        except Exception as exc:
            raise DisclosureMismatchError(
                f"Attestation backend refused reveal ranges: {exc}"
            ) from exc

        logger.debug(
            "Revealed 1 sent range and %d received ranges",
            len(plan.field_ranges),
        )
        return proof
