"""Protocol definitions for dependency injection.

These protocols define the abstract interfaces the engine depends on, so the
search orchestrator and feedback aggregator can be unit tested against
in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    import pandas as pd

    from .domain.companies import CandidateBatch, CandidateQuery, CompanyRecord
    from .domain.criteria import CriteriaModel
    from .domain.signals import LearningSignal, SignalBatch, SignalType
    from .domain.weights import StoredWeights, WeightVector


@runtime_checkable
class HttpClient(Protocol):
    """Abstract HTTP client for JSON API requests."""

    def get_json(self, url: str, *, params: Mapping[str, str] | None = None) -> object:
        """Fetch and decode JSON from a URL.

        Raises:
            requests.RequestException: On network or HTTP errors.
        """
        ...


@runtime_checkable
class FileSystem(Protocol):
    """Abstract filesystem for reading/writing engine data."""

    def read_csv(self, path: Path) -> pd.DataFrame:
        """Read CSV file into DataFrame (all columns as strings)."""
        ...

    def append_csv(self, df: pd.DataFrame, path: Path) -> None:
        """Append DataFrame rows to CSV file (create if missing)."""
        ...

    def read_json(self, path: Path) -> object:
        """Read JSON file."""
        ...

    def write_json(self, data: object, path: Path) -> None:
        """Write JSON file."""
        ...

    def read_text(self, path: Path) -> str:
        """Read text file."""
        ...

    def exists(self, path: Path) -> bool:
        """Check if path exists."""
        ...


@runtime_checkable
class CandidateSource(Protocol):
    """Read-only access to candidate companies."""

    def fetch(self, query: CandidateQuery) -> CandidateBatch:
        """Return a bounded batch of candidates matching the coarse filters.

        Raises:
            DataUnavailableError: If the source cannot be reached.
        """
        ...

    def lookup(self, company_ids: Collection[str]) -> tuple[CompanyRecord, ...]:
        """Return records for the given ids; unknown ids are omitted.

        Raises:
            DataUnavailableError: If the source cannot be reached.
        """
        ...


@runtime_checkable
class WeightStore(Protocol):
    """Per-mandate weight persistence with compare-and-swap writes."""

    def get(self, mandate_id: str) -> StoredWeights | None:
        """Return stored weights, or None when the mandate has none yet.

        Raises:
            DataUnavailableError: If the store cannot be read.
        """
        ...

    def set(
        self,
        mandate_id: str,
        weights: WeightVector,
        *,
        expected_version: int,
    ) -> StoredWeights:
        """Store weights if the current version equals ``expected_version``.

        Raises:
            WeightConflictError: If another writer got there first.
            DataUnavailableError: If the store cannot be written.
        """
        ...


@runtime_checkable
class SignalLog(Protocol):
    """Append-only learning signal log."""

    def append(self, signal: LearningSignal) -> None:
        """Append one signal."""
        ...

    def fetch(
        self,
        mandate_id: str,
        *,
        signal_types: Collection[SignalType] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
    ) -> SignalBatch:
        """Return signals for a mandate, filtered by type and time window."""
        ...

    def mandate_ids(self) -> tuple[str, ...]:
        """Return every mandate id with at least one logged signal."""
        ...


@runtime_checkable
class CriteriaRepository(Protocol):
    """Lookup of resolved criteria (mandate plus attached segments)."""

    def load(self, mandate_id: str) -> CriteriaModel:
        """Return the resolved criteria for a mandate.

        Raises:
            MandateNotFoundError: If the mandate is unknown.
        """
        ...


@runtime_checkable
class CircuitBreaker(Protocol):
    """Fail-fast guard shared by every request to the company database."""

    def check(self) -> None:
        """Raise CircuitBreakerOpen instead of letting a request through."""
        ...

    def record_success(self) -> None:
        """Note a request that completed with a usable response."""
        ...

    def record_failure(self) -> None:
        """Note a request that failed after its retries."""
        ...


@runtime_checkable
class RetryPolicy(Protocol):
    """Decides which failures are transient and paces the retries."""

    retry_statuses: tuple[int, ...]
    retry_exceptions: tuple[type[Exception], ...]

    def should_retry(self, attempt: int) -> bool:
        """Whether a failed attempt (0-based) may be retried."""
        ...

    def compute_backoff(self, attempt: int, retry_after: int | None = None) -> float:
        """Return a delay for the next retry attempt."""
        ...
