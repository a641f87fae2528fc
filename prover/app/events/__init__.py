from .models import ProofEvent, ProofEventType
from .emitters import (
    MemoryQueueEventEmitter,
    NullEventEmitter,
    ProofEventEmitter,
)

__all__ = [
    "ProofEvent",
    "ProofEventType",
    "ProofEventEmitter",
    "NullEventEmitter",
    "MemoryQueueEventEmitter",
]
