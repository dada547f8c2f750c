"""
Test doubles and constants shared across test modules.
"""
from datetime import datetime
from typing import Any, Dict, List

from cleanup_trust.services.similarity_service import SignalResult

T0 = datetime(2026, 10, 14, 9, 0, 0)

SPOT = (13.0827, 80.2707)
SPOT_NEARBY = (13.08271, 80.27072)     # ~2m away, same grid cell
SPOT_ONE_KM = (13.0917, 80.2707)       # ~1km north


class FakeDispatcher:
    """Collects push batches instead of enqueueing them."""

    def __init__(self):
        self.batches: List[List[Dict[str, Any]]] = []

    def __call__(self, messages):
        self.batches.append(list(messages))

    @property
    def messages(self):
        return [m for batch in self.batches for m in batch]


class FakeSimilarity:
    """Similarity collaborator returning a fixed signal."""

    def __init__(self, result: SignalResult):
        self.result = result
        self.calls = []

    def compare(self, before_ref, after_ref):
        self.calls.append((before_ref, after_ref))
        return self.result
