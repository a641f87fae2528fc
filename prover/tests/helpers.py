"""
Shared wiring for coordinator, verifier, API and CLI tests.
"""

from __future__ import annotations

from pathlib import Path

from prover.app.attestation.artifacts import ArtifactStore
from prover.app.config import Settings
from prover.app.coordinator.prover import ProverCoordinator
from prover.app.coordinator.verifier import PresentationVerifier
from prover.app.domain.providers import Provider
from prover.app.schemas.reports import ProveMode
from prover.app.schemas.requests import ProveRequest
from prover.tests.fixtures.fake_backend import (
    FakeAttestationBackend,
    RecordingConnector,
    wise_handler,
)
from prover.tests.fixtures.transcripts import WISE_DETAIL_BODY, transaction_list

FAKE_BACKEND_PATH = "prover.tests.fixtures.fake_backend:create_backend"


def make_settings(artifact_dir: Path, **overrides) -> Settings:
    values = {
        "artifact_dir": artifact_dir,
        "attestation_backend": FAKE_BACKEND_PATH,
        "session_timeout_seconds": 5,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def wise_backend(owned_ids=(999, 12345), **kwargs) -> FakeAttestationBackend:
    return FakeAttestationBackend(
        wise_handler(transaction_list(list(owned_ids)), WISE_DETAIL_BODY),
        **kwargs,
    )


def wise_request(mode: ProveMode, **overrides) -> ProveRequest:
    values = {
        "mode": mode,
        "provider": Provider.WISE,
        "transaction_id": "12345",
        "profile_id": "42",
        "cookie": "session=abc",
        "access_token": "tok-secret",
    }
    values.update(overrides)
    return ProveRequest(**values)


def make_coordinator(settings, backend, connector=None):
    connector = connector or RecordingConnector()
    coordinator = ProverCoordinator(
        settings=settings,
        backend=backend,
        store=ArtifactStore(settings.artifact_dir),
        connector=connector,
    )
    return coordinator, connector


def make_verifier(settings, backend) -> PresentationVerifier:
    return PresentationVerifier(
        settings=settings,
        backend=backend,
        store=ArtifactStore(settings.artifact_dir),
    )
