"""Typed parsing and validation for engine config files.

Usage example (``mandate-match.toml``)::

    schema_version = 1

    [matching]
    companies_source = "file"
    companies_csv_path = "data/companies.csv"
    search_page_size = 100
    learning_rate = 0.05

    [matching.default_weights]
    sector = 0.35
    geo = 0.2
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .domain.weights import FACTORS
from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError
from .protocols import FileSystem

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class MatchingConfigFile:
    """Validated engine config values loaded from a TOML file."""

    companies_source: str | None = None
    companies_csv_path: str | None = None
    supabase_url: str | None = None
    weights_path: str | None = None
    signals_path: str | None = None
    mandates_path: str | None = None
    search_page_size: int | None = None
    search_prefilter: bool | None = None
    search_timeout_seconds: float | None = None
    default_weights: dict[str, float] | None = None
    learning_rate: float | None = None


class _MatchingSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    companies_source: str | None = None
    companies_csv_path: str | None = None
    supabase_url: str | None = None
    weights_path: str | None = None
    signals_path: str | None = None
    mandates_path: str | None = None
    search_page_size: int | None = None
    search_prefilter: bool | None = None
    search_timeout_seconds: float | None = None
    default_weights: dict[str, float] | None = None
    learning_rate: float | None = None

    @field_validator("companies_source")
    @classmethod
    def _validate_source_type(cls, value: str | None) -> str | None:
        if value is None:
            return None
        source = value.strip().lower()
        if source not in {"file", "rest"}:
            raise ValueError
        return source

    @field_validator(
        "companies_csv_path",
        "supabase_url",
        "weights_path",
        "signals_path",
        "mandates_path",
    )
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator("search_page_size")
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value

    @field_validator("search_timeout_seconds")
    @classmethod
    def _validate_positive_float(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0.0:
            raise ValueError
        return value

    @field_validator("learning_rate")
    @classmethod
    def _validate_learning_rate(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0.0 or value > 1.0:
            raise ValueError
        return value

    @field_validator("default_weights")
    @classmethod
    def _validate_weights(cls, value: dict[str, float] | None) -> dict[str, float] | None:
        if value is None:
            return None
        for factor, weight in value.items():
            if factor not in FACTORS:
                raise ValueError
            if weight < 0.0:
                raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    matching: _MatchingSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def format_validation_error(exc: ValidationError) -> str:
    """Render the first pydantic error as ``location: message``."""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_matching_config_file(*, path: Path, fs: FileSystem) -> MatchingConfigFile:
    """Load and validate an engine TOML config file."""
    if not fs.exists(path):
        raise ConfigFileNotFoundError(str(path))

    raw_payload = fs.read_text(path)
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), format_validation_error(exc)) from exc

    section = model.matching
    return MatchingConfigFile(
        companies_source=section.companies_source,
        companies_csv_path=section.companies_csv_path,
        supabase_url=section.supabase_url,
        weights_path=section.weights_path,
        signals_path=section.signals_path,
        mandates_path=section.mandates_path,
        search_page_size=section.search_page_size,
        search_prefilter=section.search_prefilter,
        search_timeout_seconds=section.search_timeout_seconds,
        default_weights=None if section.default_weights is None else dict(section.default_weights),
        learning_rate=section.learning_rate,
    )
