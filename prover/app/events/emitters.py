"""
Progress event sinks.

A proof runs against exactly one emitter. The coordinator awaits every
emit, so sinks must return promptly; they never raise into the proof.

- NullEventEmitter:         CLI runs and the synchronous /prove route
- MemoryQueueEventEmitter:  /prove/stream, drained by one SSE response
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional, Protocol

from prover.app.events.models import ProofEvent, ProofEventType

logger = logging.getLogger(__name__)


class ProofEventEmitter(Protocol):
    async def emit(self, event: ProofEvent) -> None:
        ...


class NullEventEmitter:
    async def emit(self, event: ProofEvent) -> None:
        return None


class MemoryQueueEventEmitter:
    """
    Single-consumer queue of proof events, in emission order.

    The stream ends after PROOF_COMPLETED or PROOF_FAILED; later events
    are discarded.
    """

    TERMINAL = frozenset(
        {
            ProofEventType.PROOF_COMPLETED,
            ProofEventType.PROOF_FAILED,
        }
    )

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[ProofEvent]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: ProofEvent) -> None:
        if self._closed:
            logger.debug(
                "Event %s after stream end discarded", event.event_type.value
            )
            return

        try:
            await self._queue.put(event)
        except RuntimeError:
            logger.warning("Dropped event %s", event.event_type.value)
            return

        if event.event_type in self.TERMINAL:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            await self._queue.put(None)

    async def stream(self) -> AsyncIterator[ProofEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
