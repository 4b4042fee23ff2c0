"""Tests for request payload validation."""

import pytest
from pydantic import ValidationError

from mandate_matching.application.payloads import (
    CriteriaPayload,
    PricingRequest,
    SearchRequest,
    SignalRequest,
)
from mandate_matching.exceptions import InvalidCriteriaError


class TestCriteriaPayload:
    def test_flat_shape_with_segment_aliases(self) -> None:
        payload = CriteriaPayload.model_validate(
            {"geo_allow": ["nl"], "geo_block": ["ru"], "industry_allow": ["SaaS"]}
        )

        criteria = payload.to_criteria()

        assert criteria.geography_allow == frozenset({"NL"})
        assert criteria.geography_block == frozenset({"RU"})
        assert criteria.industry_allow == frozenset({"saas"})

    def test_nested_shape_is_lifted(self) -> None:
        payload = CriteriaPayload.model_validate(
            {
                "geography": {"countries": ["NL", "DE"], "exclude": ["RU"]},
                "industry": {"group": ["SaaS"], "keywords": ["Cloud"]},
                "size": {"revenue_eur_min": 1_000_000, "revenue_eur_max": 50_000_000},
                "ownership": ["Founder-led"],
            }
        )

        criteria = payload.to_criteria()

        assert criteria.geography_allow == frozenset({"NL", "DE"})
        assert criteria.geography_block == frozenset({"RU"})
        assert criteria.included_keywords == frozenset({"cloud"})
        assert criteria.revenue_min == 1_000_000.0
        assert criteria.revenue_max == 50_000_000.0
        assert criteria.ownership_allow == frozenset({"founder-led"})

    def test_block_and_exclude_are_combined(self) -> None:
        payload = CriteriaPayload.model_validate(
            {"geography": {"block": ["RU"], "exclude": ["BY"]}}
        )

        assert payload.to_criteria().geography_block == frozenset({"RU", "BY"})

    def test_unknown_nested_field_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CriteriaPayload.model_validate({"size": {"headcount": 10}})

    def test_unknown_flat_field_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CriteriaPayload.model_validate({"regions": ["EU"]})

    def test_inverted_range_fails_on_conversion(self) -> None:
        payload = CriteriaPayload.model_validate({"revenue_min": 10, "revenue_max": 1})

        with pytest.raises(InvalidCriteriaError, match="revenue_min"):
            payload.to_criteria()


class TestRequests:
    def test_search_request_blank_mandate_means_ad_hoc(self) -> None:
        request = SearchRequest.model_validate({"mandate_id": "  ", "query": "acme"})

        assert request.mandate_id is None
        assert request.criteria is None

    def test_search_request_limit_bounds(self) -> None:
        with pytest.raises(ValidationError):
            SearchRequest.model_validate({"limit": 0})

    def test_signal_request_rejects_blank_ids(self) -> None:
        with pytest.raises(ValidationError):
            SignalRequest.model_validate({"mandate_id": "m1", "company_id": " ", "signal": "reply"})

    def test_pricing_request_rejects_negative_usage(self) -> None:
        with pytest.raises(ValidationError):
            PricingRequest.model_validate({"org_id": "o1", "usage": {"searches": -1}})

    def test_pricing_request_converts_to_inputs(self) -> None:
        request = PricingRequest.model_validate(
            {"org_id": "o1", "plan": "pro", "usage": {"searches": 12}, "revenue_eur": 99}
        )

        inputs = request.to_inputs()

        assert inputs.plan == "pro"
        assert inputs.usage == {"searches": 12.0}
        assert inputs.revenue_eur == 99.0
