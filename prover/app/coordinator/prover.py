"""
Prove / present coordinator.

Execution order:
    1. Live session (PROVE, PROVE_TO_PRESENT)
       a. begin the notarized session
       b. open the raw TCP connection to the provider
       c. MPC-TLS handshake, yielding the HTTP transport + background task
       d. dual-phase requests (ownership gate, then detail)
       e. join the background task under a timeout
       f. plan, commit, notarize
    2. Artifact load (PRESENT)
       attestation + secrets from disk, plan recomputed from the secrets'
       transcript
    3. Persist (PROVE): attestation + secrets, then stop
    4. Presentation (PRESENT, PROVE_TO_PRESENT): reveal the plan, build and
       persist the presentation

HARD STOPS:
Any ProverError aborts the run. No artifact is written once a transport,
response, ownership or host-binding failure has occurred.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, NamedTuple, Optional
from uuid import uuid4

import anyio
import httpx
from anyio.abc import ByteStream

from prover.app.attestation.artifacts import ArtifactKind, ArtifactStore
from prover.app.attestation.backend import (
    Attestation,
    AttestationBackend,
    Secrets,
    SessionLimits,
)
from prover.app.config import Settings
from prover.app.coordinator.dual_phase import RequestOutcome, execute_dual_phase
from prover.app.disclosure.planner import SelectiveDisclosurePlanner
from prover.app.domain.providers import ProviderCredentials
from prover.app.errors import ProverError, TransportError
from prover.app.events import (
    NullEventEmitter,
    ProofEvent,
    ProofEventEmitter,
    ProofEventType,
)
from prover.app.schemas.reports import ArtifactPaths, ProofReport, ProveMode
from prover.app.schemas.requests import ProveRequest
from prover.app.schemas.transcript import DisclosurePlan

logger = logging.getLogger(__name__)

Connector = Callable[[str, int], Awaitable[ByteStream]]


class _SessionResult(NamedTuple):
    outcome: RequestOutcome
    plan: DisclosurePlan
    attestation: Attestation
    secrets: Secrets


class ProverCoordinator:
    """
    Drives prove and present invocations.

    The coordinator enforces ordering and hard stops only. Range derivation
    belongs to the planner, cryptography to the attestation backend.
    """

    def __init__(
        self,
        settings: Settings,
        backend: AttestationBackend,
        store: Optional[ArtifactStore] = None,
        planner: Optional[SelectiveDisclosurePlanner] = None,
        connector: Optional[Connector] = None,
    ) -> None:
        self._settings = settings
        self._backend = backend
        self._store = store or ArtifactStore(settings.artifact_dir)
        self._planner = planner or SelectiveDisclosurePlanner()
        self._connector = connector or anyio.connect_tcp

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def prove(
        self,
        request: ProveRequest,
        *,
        proof_id: Optional[str] = None,
        emitter: Optional[ProofEventEmitter] = None,
    ) -> ProofReport:
        emitter = emitter or NullEventEmitter()
        proof_id = proof_id or str(uuid4())
        provider = request.provider

        logger.info(
            "Starting attestation for %s transaction %s (mode %s)",
            provider.value,
            request.transaction_id,
            request.mode.value,
        )

        await self._emit(
            emitter,
            proof_id,
            ProofEventType.PROOF_STARTED,
            {"provider": provider.value, "mode": request.mode.value},
        )

        try:
            outcome = RequestOutcome()

            if request.mode.opens_session:
                session = await self._run_session(
                    request.credentials(), proof_id, emitter
                )
                outcome = session.outcome
                plan = session.plan
                attestation = session.attestation
                secrets = session.secrets
            else:
                attestation, secrets = await self._load_artifacts(request)
                plan = self._planner.plan(secrets.transcript, provider)

            split_fields = self._planner.split_fields(
                secrets.transcript, provider
            )

            if request.mode is ProveMode.PROVE:
                artifacts = await self._persist_attestation(
                    request, attestation, secrets
                )
                await self._emit(
                    emitter,
                    proof_id,
                    ProofEventType.ARTIFACTS_SAVED,
                    artifacts.model_dump(exclude_none=True),
                )
            else:
                artifacts = await self._present(
                    request, attestation, secrets, plan
                )
                await self._emit(
                    emitter,
                    proof_id,
                    ProofEventType.PRESENTATION_BUILT,
                    artifacts.model_dump(exclude_none=True),
                )

            report = ProofReport(
                proof_id=proof_id,
                provider=provider,
                transaction_id=request.transaction_id,
                mode=request.mode,
                phases_executed=outcome.phases_executed,
                ownership=outcome.ownership,
                transaction=outcome.transaction,
                plan=plan,
                split_fields=split_fields,
                artifacts=artifacts,
            )

            await self._emit(
                emitter,
                proof_id,
                ProofEventType.PROOF_COMPLETED,
                {"report": report.model_dump(mode="json")},
            )
            return report

        except Exception as exc:
            await self._emit(
                emitter,
                proof_id,
                ProofEventType.PROOF_FAILED,
                {
                    "error": str(exc),
                    "exception_type": type(exc).__name__,
                },
            )
            raise

    # ------------------------------------------------------------------
    # Live session
    # ------------------------------------------------------------------

    async def _run_session(
        self,
        credentials: ProviderCredentials,
        proof_id: str,
        emitter: ProofEventEmitter,
    ) -> _SessionResult:
        settings = self._settings
        server = settings.server_config(credentials.provider)
        limits = SessionLimits(
            max_sent_data=settings.max_sent_data,
            max_recv_data=settings.max_recv_data,
        )

        logger.info(
            "Requesting notarization from %s:%d",
            settings.notary.host,
            settings.notary.port,
        )
        try:
            prover_session = await self._backend.begin_session(
                server.host, limits
            )
        except ProverError:
            raise
        except Exception as exc:
            raise TransportError(
                f"Notary session could not be established: {exc}"
            ) from exc

        try:
            stream = await self._connector(server.host, server.port)
        except OSError as exc:
            raise TransportError(
                f"Cannot connect to {server.host}:{server.port}: {exc}"
            ) from exc

        logger.debug("Connected to %s:%d", server.host, server.port)

        try:
            try:
                transport, task = await prover_session.connect(stream)
            except ProverError:
                raise
            except Exception as exc:
                raise TransportError(
                    f"MPC-TLS handshake with {server.host} failed: {exc}"
                ) from exc

            try:
                outcome = await self._exchange(
                    transport, credentials, server.host, proof_id, emitter
                )
                committed = await self._join(task)
            except BaseException:
                # The background unit never outlives a failed session.
                task.cancel()
                raise
        finally:
            await stream.aclose()

        await self._emit(
            emitter,
            proof_id,
            ProofEventType.TRANSCRIPT_FINALIZED,
            {
                "sent_bytes": len(committed.transcript.sent),
                "received_bytes": len(committed.transcript.received),
            },
        )

        plan = self._planner.plan(committed.transcript, credentials.provider)
        commitments = self._planner.commit(committed, plan)

        await self._emit(
            emitter,
            proof_id,
            ProofEventType.COMMITMENTS_PLANNED,
            {"fields": plan.field_names},
        )

        attestation, secrets = await committed.notarize(commitments)
        logger.info("Notarization completed successfully")

        await self._emit(
            emitter, proof_id, ProofEventType.NOTARIZATION_COMPLETED
        )

        return _SessionResult(
            outcome=outcome,
            plan=plan,
            attestation=attestation,
            secrets=secrets,
        )

    async def _exchange(
        self,
        transport: httpx.AsyncBaseTransport,
        credentials: ProviderCredentials,
        server_name: str,
        proof_id: str,
        emitter: ProofEventEmitter,
    ) -> RequestOutcome:
        await self._emit(
            emitter,
            proof_id,
            ProofEventType.SESSION_ESTABLISHED,
            {"server_name": server_name},
        )

        async with httpx.AsyncClient(transport=transport) as client:
            outcome = await execute_dual_phase(
                client,
                credentials,
                server_name,
                self._settings.user_agent,
            )

        if outcome.ownership is not None:
            await self._emit(
                emitter,
                proof_id,
                ProofEventType.OWNERSHIP_VERIFIED,
                {"records_scanned": outcome.ownership.records_scanned},
            )
        await self._emit(
            emitter,
            proof_id,
            ProofEventType.DETAILS_RETRIEVED,
            {"phases": outcome.phases_executed},
        )
        return outcome

    async def _join(self, task: Any):
        timeout = self._settings.session_timeout_seconds
        try:
            with anyio.fail_after(timeout):
                return await task.join()
        except TimeoutError as exc:
            raise TransportError(
                f"Background protocol task did not finish within {timeout}s"
            ) from exc
        except ProverError:
            raise
        except Exception as exc:
            raise TransportError(
                f"Background protocol task failed: {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------

    async def _load_artifacts(self, request: ProveRequest):
        logger.info("Loading existing attestation for presentation")

        attestation_bytes = await self._store.load(
            request.provider, ArtifactKind.ATTESTATION, request.transaction_id
        )
        secrets_bytes = await self._store.load(
            request.provider, ArtifactKind.SECRETS, request.transaction_id
        )

        attestation = self._backend.load_attestation(attestation_bytes)
        secrets = self._backend.load_secrets(secrets_bytes)
        logger.debug("Loaded attestation and secrets from disk")

        return attestation, secrets

    async def _persist_attestation(
        self,
        request: ProveRequest,
        attestation: Attestation,
        secrets: Secrets,
    ) -> ArtifactPaths:
        attestation_path = await self._store.save(
            request.provider,
            ArtifactKind.ATTESTATION,
            attestation.to_bytes(),
            request.transaction_id,
        )
        secrets_path = await self._store.save(
            request.provider,
            ArtifactKind.SECRETS,
            secrets.to_bytes(),
            request.transaction_id,
        )

        logger.info("Attestation completed and saved")
        return ArtifactPaths(
            attestation=attestation_path,
            secrets=secrets_path,
        )

    async def _present(
        self,
        request: ProveRequest,
        attestation: Attestation,
        secrets: Secrets,
        plan: DisclosurePlan,
    ) -> ArtifactPaths:
        logger.info("Building selective disclosure presentation")

        transcript_proof = self._planner.reveal(secrets, plan)
        presentation = self._backend.build_presentation(
            attestation,
            secrets.identity_proof(),
            transcript_proof,
        )

        presentation_path = await self._store.save(
            request.provider,
            ArtifactKind.PRESENTATION,
            presentation.to_bytes(),
            request.transaction_id,
        )

        logger.info("Presentation completed and saved")
        return ArtifactPaths(presentation=presentation_path)

    # ------------------------------------------------------------------
    # Events (observational only)
    # ------------------------------------------------------------------

    @staticmethod
    async def _emit(
        emitter: ProofEventEmitter,
        proof_id: str,
        event_type: ProofEventType,
        details: Optional[dict] = None,
    ) -> None:
        await emitter.emit(
            ProofEvent(
                proof_id=proof_id,
                event_type=event_type,
                details=details,
            )
        )
