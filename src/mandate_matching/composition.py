"""Composition root for wiring CLI dependencies."""

from __future__ import annotations

from pathlib import Path

from .application.mandates import JsonMandateCatalog
from .cli import CliDependencies, create_app
from .config import MatchingConfig
from .exceptions import MatchingError
from .infrastructure import (
    CsvCandidateSource,
    CsvSignalLog,
    JsonWeightStore,
    LocalFileSystem,
    RestCandidateSource,
    build_supabase_client,
)
from .protocols import CandidateSource, FileSystem


class MissingSupabaseConfigError(MatchingError):
    """Raised when the REST candidate source is selected without connection details."""

    def __init__(self) -> None:
        super().__init__("COMPANIES_SOURCE=rest requires SUPABASE_URL and SUPABASE_API_KEY.")


def build_candidate_source(*, config: MatchingConfig, fs: FileSystem) -> CandidateSource:
    """Select the candidate source named by ``companies_source``."""
    if config.companies_source == "rest":
        if not config.supabase_url or not config.supabase_api_key:
            raise MissingSupabaseConfigError()
        http_client = build_supabase_client(
            api_key=config.supabase_api_key,
            timeout_seconds=config.http_timeout_seconds,
            max_retries=config.http_max_retries,
            backoff_factor=config.http_backoff_factor,
            max_backoff_seconds=config.http_backoff_max_seconds,
            jitter_seconds=config.http_backoff_jitter_seconds,
            circuit_breaker_threshold=config.http_circuit_breaker_threshold,
            circuit_breaker_timeout_seconds=config.http_circuit_breaker_timeout_seconds,
        )
        return RestCandidateSource(http_client=http_client, base_url=config.supabase_url)
    return CsvCandidateSource(fs=fs, path=Path(config.companies_csv_path))


def build_cli_dependencies(*, config: MatchingConfig) -> CliDependencies:
    """Build concrete dependencies for CLI commands."""
    fs = LocalFileSystem()
    return CliDependencies(
        fs=fs,
        candidate_source=build_candidate_source(config=config, fs=fs),
        weight_store=JsonWeightStore(fs=fs, path=Path(config.weights_path)),
        signal_log=CsvSignalLog(fs=fs, path=Path(config.signals_path)),
        criteria_repository=JsonMandateCatalog(fs=fs, path=Path(config.mandates_path)),
    )


app = create_app(build_cli_dependencies, config_fs=LocalFileSystem())
