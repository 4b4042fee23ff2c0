"""Failure handling for requests to the company database.

Usage example:
    from mandate_matching.infrastructure.resilience import CircuitBreaker, RetryPolicy

    breaker = CircuitBreaker(threshold=5, recovery_timeout_seconds=30.0)
    policy = RetryPolicy(max_retries=3)
    delay = policy.compute_backoff(attempt=1, retry_after=None)
"""

from __future__ import annotations

import random
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Literal, override

import requests

from ..exceptions import CircuitBreakerOpen
from ..observability import get_logger
from ..protocols import CircuitBreaker as CircuitBreakerProtocol
from ..protocols import RetryPolicy as RetryPolicyProtocol

logger = get_logger("mandate_matching.infrastructure.resilience")

CircuitState = Literal["closed", "open", "half_open"]


def _new_lock() -> threading.Lock:
    return threading.Lock()


@dataclass
class CircuitBreaker(CircuitBreakerProtocol):
    """Fails fast once the company database looks down.

    After ``threshold`` consecutive failures the circuit opens and every call
    raises ``CircuitBreakerOpen``. When ``recovery_timeout_seconds`` have
    passed, one probe request is let through: success closes the circuit,
    failure re-opens it for another timeout.

    One breaker is shared by the search threads, so state is guarded by a lock.
    """

    threshold: int = 5
    recovery_timeout_seconds: float = 60.0
    clock: Callable[[], float] = time.monotonic
    consecutive_failures: int = field(default=0, init=False)
    state: CircuitState = field(default="closed", init=False)
    _retry_at: float = field(default=0.0, init=False, repr=False)
    _probing: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=_new_lock, init=False, repr=False)

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @override
    def check(self) -> None:
        with self._lock:
            if self.state == "closed":
                return
            if self.state == "open" and self.clock() >= self._retry_at:
                self.state = "half_open"
                self._probing = False
            if self.state == "half_open" and not self._probing:
                self._probing = True
                return
            raise CircuitBreakerOpen(self.consecutive_failures, self.threshold)

    @override
    def record_success(self) -> None:
        with self._lock:
            if self.state != "closed":
                logger.info("Company database circuit closed")
            self.state = "closed"
            self.consecutive_failures = 0
            self._probing = False

    @override
    def record_failure(self) -> None:
        with self._lock:
            self.consecutive_failures += 1
            if self.state != "half_open" and self.consecutive_failures < self.threshold:
                return
            if self.state != "open":
                logger.warning(
                    "Company database circuit opened after %d consecutive failures",
                    self.consecutive_failures,
                )
            self.state = "open"
            self._retry_at = self.clock() + self.recovery_timeout_seconds
            self._probing = False


@dataclass(frozen=True)
class RetryPolicy(RetryPolicyProtocol):
    """Exponential backoff with jitter for transient failures.

    A Retry-After hint can lengthen the wait but never beyond
    ``max_backoff_seconds``.
    """

    max_retries: int = 3
    backoff_factor: float = 0.5
    max_backoff_seconds: float = 60.0
    jitter_seconds: float = 0.1
    retry_statuses: tuple[int, ...] = (429, 500, 502, 503, 504)
    retry_exceptions: tuple[type[Exception], ...] = (requests.Timeout, requests.ConnectionError)

    @override
    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_retries

    @override
    def compute_backoff(self, attempt: int, retry_after: int | None = None) -> float:
        delay = self.backoff_factor * (2**attempt)
        if retry_after is not None:
            delay = max(delay, float(retry_after))
        delay = min(delay, self.max_backoff_seconds)
        if self.jitter_seconds > 0:
            delay += random.uniform(0.0, self.jitter_seconds)
        return delay
