"""Tests for shared normalisation helpers."""

import pytest

from mandate_matching.normalization import (
    normalise_country,
    normalise_country_set,
    normalise_label,
    normalise_label_set,
    parse_optional_amount,
)


def test_normalise_country_upper_cases_and_strips() -> None:
    assert normalise_country(" nl ") == "NL"
    assert normalise_country(None) == ""


def test_normalise_label_casefolds_and_collapses_whitespace() -> None:
    assert normalise_label("  Founder   Led ") == "founder led"
    assert normalise_label("STRASSE") == normalise_label("straße")


def test_sets_drop_blanks_and_duplicates() -> None:
    assert normalise_country_set(["nl", "NL ", "", "de"]) == frozenset({"NL", "DE"})
    assert normalise_label_set(["SaaS", "saas", "  "]) == frozenset({"saas"})
    assert normalise_label_set(None) == frozenset()


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("5,000,000", 5_000_000.0),
        (" 12.5 ", 12.5),
        (7, 7.0),
        ("", None),
        (None, None),
        ("n/a", None),
        (float("nan"), None),
        (True, None),
    ],
)
def test_parse_optional_amount(value: object, expected: float | None) -> None:
    assert parse_optional_amount(value) == expected
