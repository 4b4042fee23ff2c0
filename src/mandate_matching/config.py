"""Centralised, injectable configuration for the matching engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import MatchingConfigFile
from .domain.weights import DEFAULT_WEIGHTS, WeightVector, build_weights
from .exceptions import InvalidWeightsError

_SOURCE_TYPES = frozenset({"file", "rest"})


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")


class SourceTypeEnvVarError(ValueError):
    """Raised when COMPANIES_SOURCE is not a supported candidate source."""

    def __init__(self, value: str) -> None:
        super().__init__(f"COMPANIES_SOURCE must be one of: file, rest (got {value!r}).")


class WeightsEnvVarError(ValueError):
    """Raised when DEFAULT_WEIGHTS cannot be parsed."""

    def __init__(self, detail: str) -> None:
        super().__init__(
            f"DEFAULT_WEIGHTS must look like 'sector=0.35,geo=0.2,...' ({detail})."
        )


@dataclass(frozen=True)
class MatchingConfig:
    """Immutable configuration object for the engine.

    Load from environment with `MatchingConfig.from_env()` or construct directly for testing.
    """

    # Candidate source
    companies_source: str = "file"
    companies_csv_path: str = "data/companies.csv"
    supabase_url: str = ""
    supabase_api_key: str = ""
    http_timeout_seconds: float = 30.0
    http_max_retries: int = 3
    http_backoff_factor: float = 0.5
    http_backoff_max_seconds: float = 60.0
    http_backoff_jitter_seconds: float = 0.1
    http_circuit_breaker_threshold: int = 5
    http_circuit_breaker_timeout_seconds: float = 60.0

    # State
    weights_path: str = "data/state/scoring_weights.json"
    signals_path: str = "data/state/learning_signals.csv"
    mandates_path: str = "data/reference/mandates.json"

    # Search
    search_page_size: int = 100
    search_prefilter: bool = True
    search_timeout_seconds: float = 30.0
    default_weights: WeightVector = DEFAULT_WEIGHTS

    # Feedback
    learning_rate: float = 0.05

    # Web
    web_host: str = "127.0.0.1"
    web_port: int = 8080

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            MatchingConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            companies_source=_parse_source_type(os.getenv("COMPANIES_SOURCE", "file")),
            companies_csv_path=os.getenv("COMPANIES_CSV_PATH", "data/companies.csv").strip()
            or "data/companies.csv",
            supabase_url=os.getenv("SUPABASE_URL", "").strip().rstrip("/"),
            supabase_api_key=os.getenv("SUPABASE_API_KEY", "").strip(),
            http_timeout_seconds=float(os.getenv("HTTP_TIMEOUT_SECONDS", "30")),
            http_max_retries=int(os.getenv("HTTP_MAX_RETRIES", "3")),
            http_backoff_factor=float(os.getenv("HTTP_BACKOFF_FACTOR", "0.5")),
            http_backoff_max_seconds=float(os.getenv("HTTP_BACKOFF_MAX_SECONDS", "60")),
            http_backoff_jitter_seconds=float(os.getenv("HTTP_BACKOFF_JITTER_SECONDS", "0.1")),
            http_circuit_breaker_threshold=int(os.getenv("HTTP_CIRCUIT_BREAKER_THRESHOLD", "5")),
            http_circuit_breaker_timeout_seconds=float(
                os.getenv("HTTP_CIRCUIT_BREAKER_TIMEOUT_SECONDS", "60")
            ),
            weights_path=os.getenv("WEIGHTS_PATH", "data/state/scoring_weights.json").strip()
            or "data/state/scoring_weights.json",
            signals_path=os.getenv("SIGNALS_PATH", "data/state/learning_signals.csv").strip()
            or "data/state/learning_signals.csv",
            mandates_path=os.getenv("MANDATES_PATH", "data/reference/mandates.json").strip()
            or "data/reference/mandates.json",
            search_page_size=_parse_positive_int(
                os.getenv("SEARCH_PAGE_SIZE", "100"), env_name="SEARCH_PAGE_SIZE"
            ),
            search_prefilter=_parse_bool(
                os.getenv("SEARCH_PREFILTER", "true"), env_name="SEARCH_PREFILTER"
            ),
            search_timeout_seconds=float(os.getenv("SEARCH_TIMEOUT_SECONDS", "30")),
            default_weights=_parse_weights(os.getenv("DEFAULT_WEIGHTS", "")),
            learning_rate=float(os.getenv("LEARNING_RATE", "0.05")),
            web_host=os.getenv("WEB_HOST", "127.0.0.1").strip() or "127.0.0.1",
            web_port=_parse_positive_int(os.getenv("WEB_PORT", "8080"), env_name="WEB_PORT"),
            log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    def with_overrides(
        self,
        *,
        companies_source: str | None = None,
        companies_csv_path: str | None = None,
        search_page_size: int | None = None,
        search_prefilter: bool | None = None,
        learning_rate: float | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            companies_source=self.companies_source
            if companies_source is None
            else _parse_source_type(companies_source),
            companies_csv_path=self.companies_csv_path
            if companies_csv_path is None
            else companies_csv_path.strip(),
            search_page_size=self.search_page_size
            if search_page_size is None
            else search_page_size,
            search_prefilter=self.search_prefilter
            if search_prefilter is None
            else search_prefilter,
            learning_rate=self.learning_rate if learning_rate is None else learning_rate,
        )

    def with_file_overrides(self, file_config: MatchingConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        return replace(
            self,
            companies_source=self.companies_source
            if file_config.companies_source is None
            else file_config.companies_source,
            companies_csv_path=self.companies_csv_path
            if file_config.companies_csv_path is None
            else file_config.companies_csv_path,
            supabase_url=self.supabase_url
            if file_config.supabase_url is None
            else file_config.supabase_url,
            weights_path=self.weights_path
            if file_config.weights_path is None
            else file_config.weights_path,
            signals_path=self.signals_path
            if file_config.signals_path is None
            else file_config.signals_path,
            mandates_path=self.mandates_path
            if file_config.mandates_path is None
            else file_config.mandates_path,
            search_page_size=self.search_page_size
            if file_config.search_page_size is None
            else file_config.search_page_size,
            search_prefilter=self.search_prefilter
            if file_config.search_prefilter is None
            else file_config.search_prefilter,
            search_timeout_seconds=self.search_timeout_seconds
            if file_config.search_timeout_seconds is None
            else file_config.search_timeout_seconds,
            default_weights=self.default_weights
            if file_config.default_weights is None
            else build_weights(file_config.default_weights),
            learning_rate=self.learning_rate
            if file_config.learning_rate is None
            else file_config.learning_rate,
        )


def _parse_source_type(value: str) -> str:
    source = value.strip().lower() or "file"
    if source not in _SOURCE_TYPES:
        raise SourceTypeEnvVarError(value)
    return source


def _parse_positive_int(value: str, *, env_name: str) -> int:
    """Parse a positive integer from an environment variable."""
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _parse_bool(value: str, *, env_name: str) -> bool:
    """Parse a boolean from an environment variable."""
    text = value.strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(env_name)


def _parse_weights(value: str) -> WeightVector:
    """Parse ``factor=weight`` pairs; missing factors keep their defaults."""
    text = value.strip()
    if not text:
        return DEFAULT_WEIGHTS
    pairs: dict[str, float] = {}
    for item in text.split(","):
        name, sep, raw = item.partition("=")
        if not sep or not name.strip():
            raise WeightsEnvVarError(f"bad pair {item.strip()!r}")
        try:
            pairs[name.strip()] = float(raw.strip())
        except ValueError as exc:
            raise WeightsEnvVarError(f"bad number {raw.strip()!r}") from exc
    try:
        return build_weights(pairs)
    except InvalidWeightsError as exc:
        raise WeightsEnvVarError(exc.reason) from exc
