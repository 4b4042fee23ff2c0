"""Tests for config-file schema parsing and fail-fast validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from mandate_matching.config import MatchingConfig
from mandate_matching.config_file import MatchingConfigFile, load_matching_config_file
from mandate_matching.exceptions import (
    ConfigFileNotFoundError,
    ConfigFileParseError,
    ConfigFileValidationError,
)
from tests.fakes import InMemoryFileSystem

CONFIG_PATH = Path("config/mandate-match.toml")


def _load(content: str) -> MatchingConfigFile:
    fs = InMemoryFileSystem()
    fs.write_text(content.strip(), CONFIG_PATH)
    return load_matching_config_file(path=CONFIG_PATH, fs=fs)


def test_parses_valid_toml() -> None:
    config = _load(
        """
schema_version = 1

[matching]
companies_source = " REST "
supabase_url = "https://db.example.com"
weights_path = "state/weights.json"
search_page_size = 50
search_prefilter = false
search_timeout_seconds = 5.5
learning_rate = 0.1

[matching.default_weights]
sector = 0.5
geo = 0.25
"""
    )

    assert config.companies_source == "rest"
    assert config.supabase_url == "https://db.example.com"
    assert config.weights_path == "state/weights.json"
    assert config.search_page_size == 50
    assert config.search_prefilter is False
    assert config.search_timeout_seconds == 5.5
    assert config.default_weights == {"sector": 0.5, "geo": 0.25}
    assert config.learning_rate == 0.1
    assert config.signals_path is None


def test_missing_file_raises() -> None:
    with pytest.raises(ConfigFileNotFoundError):
        load_matching_config_file(path=CONFIG_PATH, fs=InMemoryFileSystem())


def test_invalid_toml_raises_parse_error() -> None:
    with pytest.raises(ConfigFileParseError):
        _load("schema_version = = 1")


@pytest.mark.parametrize(
    ("body", "location"),
    [
        ('schema_version = 2\n[matching]\ncompanies_source = "file"', "schema_version"),
        ('schema_version = 1\n[matching]\ncompanies_source = "ftp"', "matching.companies_source"),
        ("schema_version = 1\n[matching]\nsearch_page_size = 0", "matching.search_page_size"),
        ("schema_version = 1\n[matching]\nlearning_rate = 1.5", "matching.learning_rate"),
        ('schema_version = 1\n[matching]\nweights_path = "  "', "matching.weights_path"),
        ("schema_version = 1\n[matching]\nunknown_key = 1", "matching.unknown_key"),
        (
            "schema_version = 1\n[matching.default_weights]\ncolour = 0.1",
            "matching.default_weights",
        ),
    ],
)
def test_invalid_values_fail_fast(body: str, location: str) -> None:
    with pytest.raises(ConfigFileValidationError, match=location):
        _load(body)


def test_file_values_override_env_values() -> None:
    env_config = MatchingConfig(
        companies_source="rest",
        supabase_url="https://env.example.com",
        search_page_size=100,
        learning_rate=0.05,
    )
    file_config = MatchingConfigFile(
        companies_source="file",
        search_page_size=20,
        default_weights={"sector": 0.9},
    )

    merged = env_config.with_file_overrides(file_config)

    assert merged.companies_source == "file"
    assert merged.search_page_size == 20
    assert merged.default_weights.sector == 0.9
    assert merged.supabase_url == "https://env.example.com"
    assert merged.learning_rate == 0.05
