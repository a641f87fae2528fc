import logging

import httpx
import pytest

from prover.app.coordinator.verifier import clip_to_authed
from prover.app.domain.providers import Provider
from prover.app.errors import (
    ArtifactNotFoundError,
    PresentationVerificationError,
)
from prover.app.parsing.http_message import find_host_header_range
from prover.app.schemas.reports import ProveMode
from prover.tests.fixtures.fake_backend import (
    NOTARY_KEY,
    SESSION_TIME,
    FakeAttestationBackend,
)
from prover.tests.helpers import (
    make_coordinator,
    make_settings,
    make_verifier,
    wise_backend,
    wise_request,
)

pytestmark = pytest.mark.anyio


async def _prove_wise(settings, backend):
    coordinator, _ = make_coordinator(settings, backend)
    await coordinator.prove(wise_request(ProveMode.PROVE_TO_PRESENT))


async def test_verify_reveals_committed_fields(tmp_path):
    settings = make_settings(tmp_path)
    backend = wise_backend()
    await _prove_wise(settings, backend)

    report = await make_verifier(settings, backend).verify(Provider.WISE, "12345")

    assert report.verified is True
    assert report.server_name == "wise.com"
    assert report.session_time == SESSION_TIME
    assert report.notary_key_alg == NOTARY_KEY.alg
    assert report.notary_key_hex == NOTARY_KEY.hex
    assert report.host_header == "host: wise.com"
    assert report.revealed_fields == {
        "paymentId": '"id":12345',
        "state": '"state":"OUTGOING_PAYMENT_SENT"',
        "targetAmount": '"targetAmount":10.50',
        "targetCurrency": '"targetCurrency":"USD"',
    }


async def test_undisclosed_credentials_stay_masked(tmp_path, caplog):
    settings = make_settings(tmp_path)
    backend = wise_backend()
    await _prove_wise(settings, backend)

    with caplog.at_level(logging.DEBUG):
        report = await make_verifier(settings, backend).verify(
            Provider.WISE, "12345"
        )

    serialized = report.model_dump_json()
    assert "session=abc" not in serialized
    assert "tok-secret" not in caplog.text


async def test_missing_presentation_is_not_found(tmp_path):
    settings = make_settings(tmp_path)

    with pytest.raises(ArtifactNotFoundError, match="Presentation not found"):
        await make_verifier(settings, wise_backend()).verify(
            Provider.WISE, "12345"
        )


async def test_cryptographic_failure_is_reported(tmp_path):
    settings = make_settings(tmp_path)
    await _prove_wise(settings, wise_backend())

    rejecting = FakeAttestationBackend(verify_error=ValueError("bad signature"))

    with pytest.raises(PresentationVerificationError, match="bad signature"):
        await make_verifier(settings, rejecting).verify(Provider.WISE, "12345")


async def test_trust_anchors_are_passed_to_verification(tmp_path):
    anchor = tmp_path / "notary.pem"
    anchor.write_bytes(b"-----BEGIN PUBLIC KEY-----\n")
    settings = make_settings(tmp_path, trust_anchor_path=anchor)
    backend = wise_backend()
    await _prove_wise(settings, backend)

    loaded = []
    original = backend.load_presentation

    def capture(data):
        presentation = original(data)
        loaded.append(presentation)
        return presentation

    backend.load_presentation = capture

    await make_verifier(settings, backend).verify(Provider.WISE, "12345")

    assert loaded[0].trust_anchors == b"-----BEGIN PUBLIC KEY-----\n"


async def test_presentation_without_fields_is_unverified(tmp_path, caplog):
    def paypal(request):
        return httpx.Response(
            200,
            content=b'{"id":"PP-1","status":"COMPLETED"}',
            headers={"content-type": "application/json"},
        )

    settings = make_settings(tmp_path)
    backend = FakeAttestationBackend(paypal)
    coordinator, connector = make_coordinator(settings, backend)

    await coordinator.prove(
        wise_request(
            ProveMode.PROVE_TO_PRESENT,
            provider=Provider.PAYPAL,
            transaction_id="PP-1",
            profile_id=None,
        )
    )
    assert connector.calls == [("www.paypal.com", 443)]

    with caplog.at_level(logging.INFO):
        report = await make_verifier(settings, backend).verify(
            Provider.PAYPAL, "PP-1"
        )

    assert report.verified is False
    assert report.revealed_fields == {}
    assert report.host_header == "host: www.paypal.com"
    assert "No payment fields found in revealed data" in caplog.text


def test_host_match_is_clipped_to_disclosed_bytes():
    sent = b"X" * 16 + b"host: wise.com" + b"X" * 20
    greedy = find_host_header_range(sent)

    clipped = clip_to_authed(greedy, [(16, 30)])

    assert greedy.extract(sent).startswith(b"host: wise.comXXX")
    assert clipped.extract(sent) == b"host: wise.com"


def test_match_starting_in_undisclosed_bytes_is_dropped():
    sent = b"host: wise.com" + b"X" * 4
    host_range = find_host_header_range(sent)

    assert clip_to_authed(host_range, [(14, 18)]) is None
