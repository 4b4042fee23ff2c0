"""HTTP client for the PostgREST-style company database.

Usage example:
    from mandate_matching.infrastructure.http import build_supabase_client

    client = build_supabase_client(api_key="...", timeout_seconds=30.0)
    rows = client.get_json("https://db.example.com/rest/v1/companies", params={"limit": "10"})
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import override

import requests

from ..exceptions import AuthenticationError
from ..observability import get_logger
from ..protocols import CircuitBreaker, HttpClient, RetryPolicy
from .resilience import CircuitBreaker as DefaultCircuitBreaker
from .resilience import RetryPolicy as DefaultRetryPolicy

logger = get_logger("mandate_matching.infrastructure.http")

_AUTH_STATUSES = (401, 403)
_BODY_PREVIEW_CHARS = 300


def build_supabase_client(
    *,
    api_key: str,
    timeout_seconds: float = 30.0,
    max_retries: int = 3,
    backoff_factor: float = 0.5,
    max_backoff_seconds: float = 60.0,
    jitter_seconds: float = 0.1,
    circuit_breaker_threshold: int = 5,
    circuit_breaker_timeout_seconds: float = 60.0,
) -> JsonHttpClient:
    """Session authenticated with the service key, as PostgREST gateways expect."""
    session = requests.Session()
    session.headers.update(
        {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        }
    )
    return JsonHttpClient(
        session=session,
        circuit_breaker=DefaultCircuitBreaker(
            threshold=circuit_breaker_threshold,
            recovery_timeout_seconds=circuit_breaker_timeout_seconds,
        ),
        retry_policy=DefaultRetryPolicy(
            max_retries=max_retries,
            backoff_factor=backoff_factor,
            max_backoff_seconds=max_backoff_seconds,
            jitter_seconds=jitter_seconds,
        ),
        timeout_seconds=timeout_seconds,
    )


def parse_retry_after(headers: Mapping[str, str] | None) -> int | None:
    """Seconds to wait according to a Retry-After header (delta-seconds or HTTP-date)."""
    raw = (headers or {}).get("Retry-After", "").strip()
    if not raw:
        return None
    if raw.isdigit():
        return int(raw)
    try:
        when = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=UTC)
    return max(0, int((when - datetime.now(UTC)).total_seconds()))


def describe_response(response: requests.Response) -> str:
    body = " ".join((response.text or "").split())
    if len(body) > _BODY_PREVIEW_CHARS:
        body = f"{body[:_BODY_PREVIEW_CHARS]}..."
    return f"status={response.status_code}, body={body}"


class JsonHttpClient(HttpClient):
    """JSON GET client with retries and a circuit breaker.

    401/403 raise ``AuthenticationError`` straight away. Retry statuses and
    retry exceptions are retried with backoff, honouring Retry-After; once the
    retries are spent the last response or error is surfaced and counted
    against the breaker.
    """

    def __init__(
        self,
        *,
        session: requests.Session,
        circuit_breaker: CircuitBreaker | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.session = session
        self.circuit_breaker = circuit_breaker or DefaultCircuitBreaker()
        self.retry_policy = retry_policy or DefaultRetryPolicy()
        self.timeout_seconds = timeout_seconds

    def _wait_before_retry(self, attempt: int, reason: str, retry_after: int | None = None) -> None:
        delay = self.retry_policy.compute_backoff(attempt, retry_after)
        logger.warning("Retrying in %.2fs after %s (attempt %d)", delay, reason, attempt + 1)
        time.sleep(delay)

    def _decode(self, response: requests.Response) -> object:
        try:
            response.raise_for_status()
            payload: object = response.json()
        except requests.RequestException:
            self.circuit_breaker.record_failure()
            raise
        self.circuit_breaker.record_success()
        return payload

    @override
    def get_json(self, url: str, *, params: Mapping[str, str] | None = None) -> object:
        """GET ``url`` and decode the JSON body.

        Raises:
            AuthenticationError: If the database rejects the API key.
            CircuitBreakerOpen: If the circuit is open.
            requests.RequestException: For other network, HTTP or decoding errors.
        """
        attempt = 0
        while True:
            self.circuit_breaker.check()
            try:
                response = self.session.get(url, params=params, timeout=self.timeout_seconds)
            except self.retry_policy.retry_exceptions as exc:
                if not self.retry_policy.should_retry(attempt):
                    self.circuit_breaker.record_failure()
                    raise
                self._wait_before_retry(attempt, type(exc).__name__)
                attempt += 1
                continue
            except requests.RequestException:
                self.circuit_breaker.record_failure()
                raise

            status = response.status_code
            if status in _AUTH_STATUSES:
                self.circuit_breaker.record_failure()
                raise AuthenticationError(
                    f"Company database rejected credentials ({describe_response(response)})"
                )
            if status in self.retry_policy.retry_statuses and self.retry_policy.should_retry(
                attempt
            ):
                retry_after = parse_retry_after(response.headers)
                self._wait_before_retry(attempt, f"HTTP {status}", retry_after)
                attempt += 1
                continue
            return self._decode(response)
