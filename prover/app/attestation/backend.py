"""
Interfaces of the external attestation collaborator.

The MPC-TLS protocol, the notary signature scheme and the identity /
transcript proofs are produced by an external library. The prover only
depends on the narrow surface below, declared as typing.Protocol so that
any binding (native extension, remote notary client, in-memory fake) can
be wired in through configuration.

LIFECYCLE (prove):
    begin_session(server_name, limits)       -> ProverSession
    ProverSession.connect(stream)            -> (transport, ProverTask)
    ... HTTP requests over transport ...
    ProverTask.join()                        -> CommittedProver
    CommittedProver.commit_builder()         -> CommitBuilder
    CommittedProver.notarize(commitments)    -> (Attestation, Secrets)

LIFECYCLE (present):
    Secrets.reveal_builder()                 -> RevealBuilder
    build_presentation(attestation, identity_proof, transcript_proof)

LIFECYCLE (verify):
    Presentation.verify(trust_anchors)       -> PresentationOutput
"""

from __future__ import annotations

import importlib
import logging
from datetime import datetime
from typing import Any, Callable, Optional, Protocol, Sequence, Tuple

import httpx
from anyio.abc import ByteStream
from pydantic import BaseModel, ConfigDict, Field

from prover.app.errors import ConfigurationError
from prover.app.schemas.transcript import Transcript

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Value types
# ---------------------------------------------------------------------------


class SessionLimits(BaseModel):
    """Upper bounds on transcript sizes negotiated with the notary."""

    max_sent_data: int = Field(..., ge=1)
    max_recv_data: int = Field(..., ge=1)

    model_config = ConfigDict(frozen=True)


class VerifyingKey(BaseModel):
    """The notary's attestation verifying key."""

    alg: str
    data: bytes

    model_config = ConfigDict(frozen=True)

    @property
    def hex(self) -> str:
        return self.data.hex()


# ---------------------------------------------------------------------------
# Commit / reveal builders
# ---------------------------------------------------------------------------


class CommitBuilder(Protocol):
    def commit_sent(self, start: int, end: int) -> None:
        ...

    def commit_recv(self, start: int, end: int) -> None:
        ...

    def build(self) -> Any:
        """Return the opaque commitment set."""
        ...


class RevealBuilder(Protocol):
    """
    Reveal requests for ranges not covered by a commitment MUST fail
    (raise) rather than reveal anything.
    """

    def reveal_sent(self, start: int, end: int) -> None:
        ...

    def reveal_recv(self, start: int, end: int) -> None:
        ...

    def build(self) -> Any:
        """Return the opaque transcript proof."""
        ...


# ---------------------------------------------------------------------------
# Proving session
# ---------------------------------------------------------------------------


class Attestation(Protocol):
    def to_bytes(self) -> bytes:
        ...


class Secrets(Protocol):
    """Privacy-sensitive material. Never transmitted."""

    @property
    def transcript(self) -> Transcript:
        ...

    def identity_proof(self) -> Any:
        ...

    def reveal_builder(self) -> RevealBuilder:
        ...

    def to_bytes(self) -> bytes:
        ...


class CommittedProver(Protocol):
    """A prover whose background protocol task has completed."""

    @property
    def transcript(self) -> Transcript:
        ...

    def commit_builder(self) -> CommitBuilder:
        ...

    async def notarize(self, commitments: Any) -> Tuple[Attestation, Secrets]:
        ...


class ProverTask(Protocol):
    async def join(self) -> CommittedProver:
        """
        Wait for the background protocol unit to finish.

        The transcript is only final once this returns.
        """
        ...

    def cancel(self) -> None:
        """Abort the background protocol unit; the session is abandoned."""
        ...


class ProverSession(Protocol):
    async def connect(
        self, stream: ByteStream
    ) -> Tuple[httpx.AsyncBaseTransport, ProverTask]:
        """
        Run the MPC-TLS handshake over a raw byte stream.

        Returns an httpx transport for the application requests and the
        background task that finalizes the transcript.
        """
        ...


# ---------------------------------------------------------------------------
# Presentation / verification
# ---------------------------------------------------------------------------


class PartialTranscript(Protocol):
    def set_unauthed(self, fill: int) -> None:
        """Fill every undisclosed byte with `fill`."""
        ...

    def sent_unsafe(self) -> bytes:
        ...

    def received_unsafe(self) -> bytes:
        ...

    def sent_authed(self) -> Sequence[Tuple[int, int]]:
        """Disclosed (start, end) ranges of the sent transcript."""
        ...

    def received_authed(self) -> Sequence[Tuple[int, int]]:
        ...


class PresentationOutput(Protocol):
    server_name: Optional[str]
    connection_time: Optional[datetime]
    transcript: Optional[PartialTranscript]


class Presentation(Protocol):
    def verifying_key(self) -> VerifyingKey:
        ...

    def verify(self, trust_anchors: Optional[bytes]) -> PresentationOutput:
        ...

    def to_bytes(self) -> bytes:
        ...


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class AttestationBackend(Protocol):
    async def begin_session(
        self, server_name: str, limits: SessionLimits
    ) -> ProverSession:
        """Connect to the notary and prepare a proving session."""
        ...

    def build_presentation(
        self,
        attestation: Attestation,
        identity_proof: Any,
        transcript_proof: Any,
    ) -> Presentation:
        ...

    def load_attestation(self, data: bytes) -> Attestation:
        ...

    def load_secrets(self, data: bytes) -> Secrets:
        ...

    def load_presentation(self, data: bytes) -> Presentation:
        ...


BackendFactory = Callable[[Any], AttestationBackend]


def load_backend(import_path: str, settings: Any) -> AttestationBackend:
    """
    Build the attestation backend from a "module:factory" import path.

    The factory is called with the process settings.
    """
    module_name, sep, attr = import_path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            f"Attestation backend must be 'module:factory', got {import_path!r}"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigurationError(
            f"Attestation backend module {module_name!r} cannot be imported"
        ) from exc

    factory = getattr(module, attr, None)
    if not callable(factory):
        raise ConfigurationError(
            f"Attestation backend factory {import_path!r} is not callable"
        )

    logger.info("Loading attestation backend %s", import_path)
    return factory(settings)
