"""Tests for criteria construction, segment merging and the role filter."""

import pytest

from mandate_matching.domain.criteria import build_criteria, matches_role, merge_criteria
from mandate_matching.exceptions import InvalidCriteriaError


class TestBuildCriteria:
    def test_normalises_and_deduplicates_sets(self) -> None:
        criteria = build_criteria(
            geography_allow=["nl", " NL ", "de", ""],
            industry_allow=["SaaS", "saas", "  Fin   Tech "],
            ownership_allow=["Founder-Led"],
            excluded_keywords=["Holding"],
        )

        assert criteria.geography_allow == frozenset({"NL", "DE"})
        assert criteria.industry_allow == frozenset({"saas", "fin tech"})
        assert criteria.ownership_allow == frozenset({"founder-led"})
        assert criteria.excluded_keywords == frozenset({"holding"})

    def test_inclusion_and_exclusion_keywords_stay_separate(self) -> None:
        criteria = build_criteria(included_keywords=["cloud"], excluded_keywords=["holding"])

        assert criteria.included_keywords == frozenset({"cloud"})
        assert criteria.excluded_keywords == frozenset({"holding"})

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"revenue_min": 50_000_000, "revenue_max": 1_000_000},
            {"size_employees_min": 500, "size_employees_max": 10},
            {"revenue_min": -1},
            {"size_employees_max": -5},
            {"revenue_max": float("inf")},
        ],
    )
    def test_rejects_contradictory_or_negative_bounds(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(InvalidCriteriaError):
            build_criteria(**kwargs)

    def test_single_bound_is_allowed(self) -> None:
        criteria = build_criteria(revenue_min=1_000_000)

        assert criteria.revenue_min == 1_000_000.0
        assert criteria.revenue_max is None


class TestMergeCriteria:
    def test_unions_sets_and_takes_tightest_bounds(self) -> None:
        mandate = build_criteria(
            geography_allow=["NL"],
            revenue_min=1_000_000,
            revenue_max=50_000_000,
        )
        segment = build_criteria(
            geography_allow=["DE"],
            geography_block=["RU"],
            revenue_min=2_000_000,
            revenue_max=80_000_000,
            excluded_keywords=["holding"],
            contact_roles=["CFO"],
        )

        merged = merge_criteria(mandate, segment)

        assert merged.geography_allow == frozenset({"NL", "DE"})
        assert merged.geography_block == frozenset({"RU"})
        assert merged.revenue_min == 2_000_000
        assert merged.revenue_max == 50_000_000
        assert merged.excluded_keywords == frozenset({"holding"})
        assert merged.contact_roles == frozenset({"cfo"})

    def test_without_segments_returns_equal_criteria(self) -> None:
        mandate = build_criteria(industry_allow=["SaaS"], size_employees_max=200)

        assert merge_criteria(mandate) == mandate

    def test_contradictory_merge_raises(self) -> None:
        mandate = build_criteria(revenue_max=1_000_000)
        segment = build_criteria(revenue_min=5_000_000)

        with pytest.raises(InvalidCriteriaError):
            merge_criteria(mandate, segment)


class TestMatchesRole:
    def test_empty_roles_accept_any_title(self) -> None:
        assert matches_role(build_criteria(), "Head of Growth")
        assert matches_role(build_criteria(), None)

    def test_roles_match_case_insensitive_substring(self) -> None:
        criteria = build_criteria(contact_roles=["CFO", "founder"])

        assert matches_role(criteria, "Co-Founder & CEO")
        assert matches_role(criteria, "cfo")
        assert not matches_role(criteria, "Head of Sales")
        assert not matches_role(criteria, "")
