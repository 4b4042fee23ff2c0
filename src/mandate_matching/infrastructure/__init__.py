"""Concrete infrastructure implementations and shared helpers."""

from .candidates import CsvCandidateSource, RestCandidateSource
from .filesystem import LocalFileSystem
from .http import JsonHttpClient, build_supabase_client
from .resilience import CircuitBreaker, RetryPolicy
from .signals import CsvSignalLog
from .weights import JsonWeightStore

__all__ = [
    "CircuitBreaker",
    "CsvCandidateSource",
    "CsvSignalLog",
    "JsonHttpClient",
    "JsonWeightStore",
    "LocalFileSystem",
    "RestCandidateSource",
    "RetryPolicy",
    "build_supabase_client",
]
