"""Normalisation helpers shared by criteria, company records and IO parsing.

Usage example:
    from mandate_matching.normalization import normalise_country, normalise_label_set

    assert normalise_country(" nl ") == "NL"
    assert normalise_label_set(["SaaS", "saas ", ""]) == frozenset({"saas"})
"""

from __future__ import annotations

import math
from collections.abc import Iterable


def normalise_country(value: str | None) -> str:
    """Return an upper-cased, stripped country code (empty string when absent)."""
    return (value or "").strip().upper()


def normalise_label(value: str | None) -> str:
    """Return a case-folded, whitespace-collapsed label (empty string when absent)."""
    return " ".join((value or "").split()).casefold()


def normalise_country_set(values: Iterable[str] | None) -> frozenset[str]:
    """Deduplicate and normalise country codes, dropping blanks."""
    codes = (normalise_country(value) for value in values or ())
    return frozenset(code for code in codes if code)


def normalise_label_set(values: Iterable[str] | None) -> frozenset[str]:
    """Deduplicate and normalise free-text labels, dropping blanks."""
    labels = (normalise_label(value) for value in values or ())
    return frozenset(label for label in labels if label)


def parse_optional_amount(value: object) -> float | None:
    """Parse a numeric amount from CSV/JSON input.

    Empty strings, ``None``, NaN and unparseable values all become ``None`` so
    that a single bad cell only degrades the affected factor.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
