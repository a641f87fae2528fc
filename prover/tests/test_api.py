import json

import pytest
from fastapi.testclient import TestClient

from prover.app.main import create_app, status_for
from prover.app.errors import (
    ConfigurationError,
    MalformedTransactionListError,
    OwnershipError,
)
from prover.tests.fixtures.fake_backend import RecordingConnector
from prover.tests.helpers import make_settings, wise_backend

PROVE_BODY = {
    "mode": "prove_to_present",
    "provider": "wise",
    "transaction_id": "12345",
    "profile_id": "42",
    "cookie": "session=abc",
    "access_token": "tok-secret",
}


@pytest.fixture
def client_factory(tmp_path):
    def build(backend=None):
        app = create_app(
            settings=make_settings(tmp_path),
            backend=backend or wise_backend(),
            connector=RecordingConnector(),
        )
        return TestClient(app)

    return build


def _sse_events(text: str):
    events = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        events.append((lines["event"], json.loads(lines["data"])))
    return events


def test_health(client_factory):
    with client_factory() as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "prover"}


def test_prove_then_verify(client_factory):
    with client_factory() as client:
        proved = client.post("/prove", json=PROVE_BODY)
        verified = client.post(
            "/verify", json={"provider": "wise", "transaction_id": "12345"}
        )

    assert proved.status_code == 200
    report = proved.json()
    assert report["phases_executed"] == ["list", "detail"]
    assert report["artifacts"]["presentation"].endswith(
        "wise.12345.presentation.tlsn"
    )
    assert "session=abc" not in proved.text

    assert verified.status_code == 200
    assert verified.json()["verified"] is True
    assert verified.json()["revealed_fields"]["paymentId"] == '"id":12345'


def test_unowned_transaction_is_forbidden(client_factory):
    with client_factory(wise_backend(owned_ids=(1, 2))) as client:
        response = client.post("/prove", json=PROVE_BODY)

    assert response.status_code == 403
    assert response.json()["error"] == "OwnershipError"


def test_verify_without_presentation_is_not_found(client_factory):
    with client_factory() as client:
        response = client.post(
            "/verify", json={"provider": "wise", "transaction_id": "404"}
        )

    assert response.status_code == 404


def test_missing_credentials_are_rejected(client_factory):
    body = dict(PROVE_BODY, cookie="")

    with client_factory() as client:
        response = client.post("/prove", json=body)

    assert response.status_code == 422


def test_stream_ends_with_completed_report(client_factory):
    with client_factory() as client:
        response = client.post("/prove/stream", json=PROVE_BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    events = _sse_events(response.text)
    assert events[0][0] == "proof_started"
    assert events[-1][0] == "proof_completed"
    assert "session=abc" not in response.text


def test_stream_reports_failure(client_factory):
    with client_factory(wise_backend(owned_ids=("nope",))) as client:
        response = client.post("/prove/stream", json=PROVE_BODY)

    events = _sse_events(response.text)
    assert events[-1][0] == "proof_failed"


def test_status_mapping_follows_error_hierarchy():
    assert status_for(OwnershipError("x")) == 403
    assert status_for(MalformedTransactionListError("x")) == 502
    assert status_for(ConfigurationError("x")) == 500


@pytest.mark.parametrize("transaction_id", ["/../../escaped", "a/b", "1.2"])
def test_path_like_transaction_ids_are_rejected(client_factory, transaction_id):
    with client_factory() as client:
        proved = client.post(
            "/prove", json=dict(PROVE_BODY, transaction_id=transaction_id)
        )
        verified = client.post(
            "/verify",
            json={"provider": "wise", "transaction_id": transaction_id},
        )

    assert proved.status_code == 422
    assert verified.status_code == 422
