import json

import pytest

from prover.app.events import (
    MemoryQueueEventEmitter,
    ProofEvent,
    ProofEventType,
)

pytestmark = pytest.mark.anyio


def _event(event_type, **details):
    return ProofEvent(proof_id="p-1", event_type=event_type, details=details or None)


async def test_stream_stops_after_terminal_event():
    emitter = MemoryQueueEventEmitter()

    await emitter.emit(_event(ProofEventType.PROOF_STARTED))
    await emitter.emit(_event(ProofEventType.PROOF_COMPLETED))
    await emitter.emit(_event(ProofEventType.SESSION_ESTABLISHED))

    received = [event.event_type async for event in emitter.stream()]

    assert received == [
        ProofEventType.PROOF_STARTED,
        ProofEventType.PROOF_COMPLETED,
    ]
    assert emitter.closed is True


def test_sse_payload_shape():
    payload = _event(ProofEventType.COMMITMENTS_PLANNED, fields=4).to_sse_payload()

    head, data = payload.rstrip("\n").split("\n")
    assert head == "event: commitments_planned"
    assert json.loads(data[len("data: "):])["details"] == {"fields": 4}
    assert payload.endswith("\n\n")
