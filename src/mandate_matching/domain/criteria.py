"""Criteria model: a mandate's (or DNA segment's) normalised targeting rules.

Usage example:
    from mandate_matching.domain.criteria import build_criteria

    criteria = build_criteria(
        industry_allow=["SaaS"],
        geography_allow=["nl", "DE"],
        revenue_min=1_000_000,
        revenue_max=50_000_000,
        ownership_allow=["Founder-led"],
        excluded_keywords=["holding"],
    )
    assert criteria.geography_allow == frozenset({"NL", "DE"})
    assert criteria.ownership_allow == frozenset({"founder-led"})
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass

from ..exceptions import InvalidCriteriaError
from ..normalization import normalise_country_set, normalise_label, normalise_label_set


@dataclass(frozen=True)
class CriteriaModel:
    """Normalised targeting rules.

    Set-valued fields are deduplicated. An empty allow-set means "match
    anything", never "match nothing". ``included_keywords`` add score while
    ``excluded_keywords`` veto a candidate outright; the two are kept apart.
    """

    geography_allow: frozenset[str] = frozenset()
    geography_block: frozenset[str] = frozenset()
    industry_allow: frozenset[str] = frozenset()
    size_employees_min: int | None = None
    size_employees_max: int | None = None
    revenue_min: float | None = None
    revenue_max: float | None = None
    ownership_allow: frozenset[str] = frozenset()
    included_keywords: frozenset[str] = frozenset()
    excluded_keywords: frozenset[str] = frozenset()
    contact_roles: frozenset[str] = frozenset()


def _check_bound(name: str, value: float | None) -> None:
    if value is None:
        return
    if math.isnan(value) or math.isinf(value):
        raise InvalidCriteriaError(f"{name} must be a finite number")
    if value < 0:
        raise InvalidCriteriaError(f"{name} must not be negative")


def _check_range(
    low_name: str,
    low: float | None,
    high_name: str,
    high: float | None,
) -> None:
    _check_bound(low_name, low)
    _check_bound(high_name, high)
    if low is not None and high is not None and low > high:
        raise InvalidCriteriaError(f"{low_name} ({low:g}) is greater than {high_name} ({high:g})")


def validate_criteria(criteria: CriteriaModel) -> CriteriaModel:
    """Reject self-contradictory criteria.

    Raises:
        InvalidCriteriaError: When a range is inverted or a bound is negative.
    """
    _check_range(
        "size_employees_min",
        criteria.size_employees_min,
        "size_employees_max",
        criteria.size_employees_max,
    )
    _check_range("revenue_min", criteria.revenue_min, "revenue_max", criteria.revenue_max)
    return criteria


def build_criteria(
    *,
    geography_allow: Iterable[str] | None = None,
    geography_block: Iterable[str] | None = None,
    industry_allow: Iterable[str] | None = None,
    size_employees_min: int | None = None,
    size_employees_max: int | None = None,
    revenue_min: float | None = None,
    revenue_max: float | None = None,
    ownership_allow: Iterable[str] | None = None,
    included_keywords: Iterable[str] | None = None,
    excluded_keywords: Iterable[str] | None = None,
    contact_roles: Iterable[str] | None = None,
) -> CriteriaModel:
    """Construct, normalise and validate a criteria model."""
    criteria = CriteriaModel(
        geography_allow=normalise_country_set(geography_allow),
        geography_block=normalise_country_set(geography_block),
        industry_allow=normalise_label_set(industry_allow),
        size_employees_min=size_employees_min,
        size_employees_max=size_employees_max,
        revenue_min=None if revenue_min is None else float(revenue_min),
        revenue_max=None if revenue_max is None else float(revenue_max),
        ownership_allow=normalise_label_set(ownership_allow),
        included_keywords=normalise_label_set(included_keywords),
        excluded_keywords=normalise_label_set(excluded_keywords),
        contact_roles=normalise_label_set(contact_roles),
    )
    return validate_criteria(criteria)


def _present_ints(values: Iterable[int | None]) -> list[int]:
    return [value for value in values if value is not None]


def _present_floats(values: Iterable[float | None]) -> list[float]:
    return [value for value in values if value is not None]


def merge_criteria(base: CriteriaModel, *segments: CriteriaModel) -> CriteriaModel:
    """Attach DNA segments to a mandate's criteria.

    Allow, block, keyword and role sets are unioned. Range bounds take the
    tightest value from any part, so the merged range can only narrow.

    Raises:
        InvalidCriteriaError: When the merged ranges contradict each other.
    """
    parts = (base, *segments)
    employee_mins = _present_ints(part.size_employees_min for part in parts)
    employee_maxes = _present_ints(part.size_employees_max for part in parts)
    revenue_mins = _present_floats(part.revenue_min for part in parts)
    revenue_maxes = _present_floats(part.revenue_max for part in parts)
    merged = CriteriaModel(
        geography_allow=frozenset().union(*(part.geography_allow for part in parts)),
        geography_block=frozenset().union(*(part.geography_block for part in parts)),
        industry_allow=frozenset().union(*(part.industry_allow for part in parts)),
        size_employees_min=max(employee_mins) if employee_mins else None,
        size_employees_max=min(employee_maxes) if employee_maxes else None,
        revenue_min=max(revenue_mins) if revenue_mins else None,
        revenue_max=min(revenue_maxes) if revenue_maxes else None,
        ownership_allow=frozenset().union(*(part.ownership_allow for part in parts)),
        included_keywords=frozenset().union(*(part.included_keywords for part in parts)),
        excluded_keywords=frozenset().union(*(part.excluded_keywords for part in parts)),
        contact_roles=frozenset().union(*(part.contact_roles for part in parts)),
    )
    return validate_criteria(merged)


def matches_role(criteria: CriteriaModel, title: str | None) -> bool:
    """Contact-level role filter; an empty role set accepts every title."""
    if not criteria.contact_roles:
        return True
    normalised = normalise_label(title)
    if not normalised:
        return False
    return any(role in normalised for role in criteria.contact_roles)
