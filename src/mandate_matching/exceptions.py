"""Custom exceptions for the mandate matching engine.

The scoring function itself never raises on well-formed input; these errors
live at the IO boundaries (candidate fetch, weight persistence, signal log,
config files) and at criteria validation.
"""

from __future__ import annotations


class MatchingError(Exception):
    """Base exception for all matching engine errors."""

    pass


class InvalidCriteriaError(MatchingError):
    """Raised when a criteria model is malformed or self-contradictory.

    Criteria are rejected before scoring, never silently corrected.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid criteria: {reason}")


class InvalidWeightsError(MatchingError):
    """Raised when a weight vector has unknown factors or negative weights."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Invalid weights: {reason}")


class DataUnavailableError(MatchingError):
    """Raised when the candidate source or weight store cannot be reached.

    Callers must be able to tell this apart from an empty result set.
    """

    def __init__(self, source: str, detail: str = "") -> None:
        self.source = source
        self.detail = detail
        message = f"Data source unavailable: {source}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MalformedSignalError(MatchingError):
    """Raised when a logged learning signal cannot be parsed.

    The feedback aggregator skips and counts these; they are never fatal.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Malformed learning signal: {reason}")


class WeightConflictError(MatchingError):
    """Raised when a weight write loses a compare-and-swap race."""

    def __init__(self, mandate_id: str, expected_version: int, actual_version: int) -> None:
        self.mandate_id = mandate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Weights for mandate {mandate_id!r} changed concurrently "
            f"(expected version {expected_version}, found {actual_version})."
        )


class AggregationInProgressError(MatchingError):
    """Raised when a weight recompute is already running for a mandate."""

    def __init__(self, mandate_id: str) -> None:
        self.mandate_id = mandate_id
        super().__init__(f"Weight recompute already running for mandate {mandate_id!r}.")


class MandateNotFoundError(MatchingError):
    """Raised when a mandate id is not present in the mandate catalogue."""

    def __init__(self, mandate_id: str) -> None:
        self.mandate_id = mandate_id
        super().__init__(f"Mandate not found: {mandate_id!r}")


class MandateCatalogFileNotFoundError(MatchingError):
    """Raised when the mandate catalogue file is missing."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Mandate catalogue file not found: {path}")


class MandateCatalogValidationError(MatchingError):
    """Raised when the mandate catalogue fails schema validation."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Mandate catalogue is invalid ({path}): {detail}")


class ConfigFileNotFoundError(MatchingError):
    """Raised when an explicitly requested config file is missing."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Config file not found: {path}")


class ConfigFileParseError(MatchingError):
    """Raised when a config file is not valid TOML."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file could not be parsed ({path}): {detail}")


class ConfigFileValidationError(MatchingError):
    """Raised when a config file fails schema validation."""

    def __init__(self, path: str, detail: str) -> None:
        super().__init__(f"Config file is invalid ({path}): {detail}")


class AuthenticationError(MatchingError):
    """Raised when the company database rejects our credentials (401/403).

    This is fatal for the request; retrying will not help.
    """

    def __init__(self, message: str = "Company database authentication failed") -> None:
        super().__init__(
            f"{message}\nPlease check SUPABASE_API_KEY in .env is correct and not expired."
        )


class CircuitBreakerOpen(MatchingError):
    """Raised when the circuit breaker trips due to repeated failures."""

    def __init__(self, failure_count: int, threshold: int) -> None:
        self.failure_count = failure_count
        self.threshold = threshold
        super().__init__(
            f"Circuit breaker tripped: {failure_count} consecutive failures "
            f"(threshold: {threshold})."
        )
