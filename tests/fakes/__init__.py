"""Exports for test fakes."""

from .candidates import FakeCandidateSource, FakeCriteriaRepository
from .filesystem import InMemoryFileSystem
from .http import FakeHttpClient
from .resilience import FakeCircuitBreaker
from .signals import InMemorySignalLog
from .weights import InMemoryWeightStore

__all__ = [
    "FakeCandidateSource",
    "FakeCircuitBreaker",
    "FakeCriteriaRepository",
    "FakeHttpClient",
    "InMemoryFileSystem",
    "InMemorySignalLog",
    "InMemoryWeightStore",
]
