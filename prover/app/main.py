"""
FastAPI entrypoint for the prover.

Exposes the prove / present and verify drivers over HTTP. Session
credentials arrive in the request body and never leave the process: they
are not logged, not echoed in reports and not persisted. The `secrets`
artifact is never served.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Set
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse

from prover.app.attestation.artifacts import ArtifactStore
from prover.app.attestation.backend import AttestationBackend, load_backend
from prover.app.config import Settings, configure_logging, get_settings
from prover.app.coordinator.prover import Connector, ProverCoordinator
from prover.app.coordinator.verifier import PresentationVerifier
from prover.app.errors import (
    ArtifactNotFoundError,
    ConfigurationError,
    DisclosureMismatchError,
    HostBindingError,
    MalformedResponseError,
    OwnershipError,
    PresentationVerificationError,
    ProverError,
    TransportError,
)
from prover.app.events import MemoryQueueEventEmitter
from prover.app.schemas.reports import (
    PresentationVerificationReport,
    ProofReport,
)
from prover.app.schemas.requests import ProveRequest, VerifyRequest

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

# Ordered most specific first; subclasses inherit their parent's status.
ERROR_STATUS = (
    (OwnershipError, 403),
    (ArtifactNotFoundError, 404),
    (DisclosureMismatchError, 409),
    (HostBindingError, 422),
    (PresentationVerificationError, 422),
    (MalformedResponseError, 502),
    (TransportError, 504),
    (ConfigurationError, 500),
)


def status_for(exc: ProverError) -> int:
    for error_type, status in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status
    return 500


async def prover_error_handler(request: Request, exc: ProverError) -> JSONResponse:
    status = status_for(exc)
    logger.error("%s: %s", type(exc).__name__, exc)
    return JSONResponse(
        status_code=status,
        content={
            "error": type(exc).__name__,
            "detail": str(exc),
        },
    )


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(
    settings: Optional[Settings] = None,
    backend: Optional[AttestationBackend] = None,
    connector: Optional[Connector] = None,
) -> FastAPI:
    """
    Build the prover application.

    `settings`, `backend` and `connector` may be injected for tests and
    explicit wiring; otherwise they are loaded from the environment at
    startup and sessions dial the server over plain TCP.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        configure_logging(resolved)

        resolved_backend = backend or load_backend(
            resolved.attestation_backend, resolved
        )
        store = ArtifactStore(resolved.artifact_dir)

        app.state.settings = resolved
        app.state.prover_coordinator = ProverCoordinator(
            settings=resolved,
            backend=resolved_backend,
            store=store,
            connector=connector,
        )
        app.state.presentation_verifier = PresentationVerifier(
            settings=resolved,
            backend=resolved_backend,
            store=store,
        )
        app.state.background_tasks = set()

        logger.info(
            "Prover service started (artifacts in %s)", resolved.artifact_dir
        )
        yield

        tasks: Set[asyncio.Task] = app.state.background_tasks
        for task in tasks:
            task.cancel()

    app = FastAPI(
        title="ZKP2P Prover",
        description=(
            "Notarized, selectively disclosed payment transaction proofs"
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_exception_handler(ProverError, prover_error_handler)

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------

    @app.post(
        "/prove",
        response_model=ProofReport,
        summary="Prove and/or present a payment transaction",
    )
    async def prove(body: ProveRequest, request: Request) -> ProofReport:
        coordinator: ProverCoordinator = request.app.state.prover_coordinator
        return await coordinator.prove(body)

    @app.post(
        "/prove/stream",
        summary="Prove a payment transaction (streaming progress)",
    )
    async def prove_stream(body: ProveRequest, request: Request):
        """
        Run a proof while streaming progress events.

        Client disconnects do NOT cancel the proof. The final
        proof_completed event carries the ProofReport.
        """
        coordinator: ProverCoordinator = request.app.state.prover_coordinator
        emitter = MemoryQueueEventEmitter()
        proof_id = str(uuid4())

        async def run_proof_task() -> None:
            try:
                await coordinator.prove(
                    body, proof_id=proof_id, emitter=emitter
                )
            except ProverError as exc:
                # Already reported to the stream as proof_failed.
                logger.error("Streaming proof %s failed: %s", proof_id, exc)

        task = asyncio.create_task(run_proof_task())
        tasks: Set[asyncio.Task] = request.app.state.background_tasks
        tasks.add(task)
        task.add_done_callback(tasks.discard)

        async def event_stream():
            async for event in emitter.stream():
                yield event.to_sse_payload()

        return StreamingResponse(
            event_stream(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "X-Accel-Buffering": "no",
            },
        )

    @app.post(
        "/verify",
        response_model=PresentationVerificationReport,
        summary="Verify a persisted presentation",
    )
    async def verify(
        body: VerifyRequest, request: Request
    ) -> PresentationVerificationReport:
        verifier: PresentationVerifier = request.app.state.presentation_verifier
        return await verifier.verify(body.provider, body.transaction_id)

    @app.get(
        "/health",
        summary="Service health check",
    )
    def health_check() -> JSONResponse:
        """Simple health check endpoint."""
        return JSONResponse(
            content={
                "status": "ok",
                "service": "prover",
            }
        )

    return app


app = create_app()
