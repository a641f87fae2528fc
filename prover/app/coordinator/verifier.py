"""
Presentation verification.

Loads a persisted presentation, verifies it against the configured trust
anchors and re-runs the host-header and field-range resolvers over the
partially disclosed transcript. Undisclosed bytes are filled with the
configured `unauthed_bytes` character before scanning.

A presentation that verifies but discloses no registered field is
reported with verified=False. Absence is not an error.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Tuple

import anyio

from prover.app.attestation.artifacts import ArtifactKind, ArtifactStore
from prover.app.attestation.backend import AttestationBackend
from prover.app.config import Settings
from prover.app.domain.providers import Provider
from prover.app.errors import PresentationVerificationError
from prover.app.parsing.field_ranges import find_last_response_field_ranges
from prover.app.parsing.http_message import find_host_header_range
from prover.app.schemas.reports import PresentationVerificationReport
from prover.app.schemas.transcript import FieldRange

logger = logging.getLogger(__name__)


def clip_to_authed(
    field_range: FieldRange, authed: Sequence[Tuple[int, int]]
) -> Optional[FieldRange]:
    """
    Restrict a match over a partial transcript to the disclosed range that
    contains its start. Greedy patterns otherwise run on into the fill
    bytes. A match that starts in undisclosed bytes is discarded.
    """
    for start, end in authed:
        if start <= field_range.start < end:
            return FieldRange(
                start=field_range.start,
                end=min(field_range.end, end),
                name=field_range.name,
            )
    return None


class PresentationVerifier:
    def __init__(
        self,
        settings: Settings,
        backend: AttestationBackend,
        store: Optional[ArtifactStore] = None,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._store = store or ArtifactStore(settings.artifact_dir)

    async def _trust_anchors(self) -> Optional[bytes]:
        path = self._settings.trust_anchor_path
        if path is None:
            return None
        return await anyio.Path(path).read_bytes()

    async def verify(
        self,
        provider: Provider,
        transaction_id: Optional[str] = None,
    ) -> PresentationVerificationReport:
        logger.info("Verifying %s transaction presentation", provider.value)

        data = await self._store.load(
            provider, ArtifactKind.PRESENTATION, transaction_id
        )
        presentation = self._backend.load_presentation(data)

        key = presentation.verifying_key()
        logger.info("Notary key algorithm: %s, key: %s", key.alg, key.hex)
        logger.warning(
            "Only proceed if you trust the notary that generated this key"
        )

        try:
            output = presentation.verify(await self._trust_anchors())
        except Exception as exc:
            raise PresentationVerificationError(
                f"Cryptographic verification failed: {exc}"
            ) from exc

        if output.transcript is None:
            raise PresentationVerificationError(
                "Presentation does not disclose any transcript data"
            )

        partial = output.transcript
        partial.set_unauthed(self._settings.unauthed_fill)
        sent = partial.sent_unsafe()
        received = partial.received_unsafe()

        logger.info(
            "Verified connection: %s at %s",
            output.server_name,
            output.connection_time,
        )

        host_range = find_host_header_range(sent)
        if host_range is not None:
            host_range = clip_to_authed(host_range, partial.sent_authed())
        host_header = (
            host_range.extract(sent).decode("utf-8", errors="replace")
            if host_range is not None
            else None
        )

        authed_received = partial.received_authed()
        field_ranges: List[FieldRange] = []
        for field_range in find_last_response_field_ranges(received, provider):
            clipped = clip_to_authed(field_range, authed_received)
            if clipped is not None:
                field_ranges.append(clipped)

        revealed: Dict[str, str] = {
            r.name: r.extract(received).decode("utf-8", errors="replace")
            for r in field_ranges
        }

        if revealed:
            logger.info(
                "Payment verification successful: %d fields verified",
                len(revealed),
            )
        else:
            logger.warning("No payment fields found in revealed data")
            logger.info(
                "Request: %s", sent.decode("utf-8", errors="replace")
            )
            logger.info(
                "Response: %s", received.decode("utf-8", errors="replace")
            )

        return PresentationVerificationReport(
            provider=provider,
            transaction_id=transaction_id,
            server_name=output.server_name,
            session_time=output.connection_time,
            notary_key_alg=key.alg,
            notary_key_hex=key.hex,
            host_header=host_header,
            revealed_fields=revealed,
            verified=bool(revealed),
        )
