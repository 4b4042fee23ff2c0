"""Pricing and engagement heuristic for a customer organisation.

A deterministic formula over usage counters, realised revenue, billed cost,
tenure and an engagement index. It shares the scoring engine's shape (a
result plus an explain breakdown) but none of its state.

Usage example:
    from mandate_matching.domain.pricing import PricingInputs, evaluate_pricing

    assessment = evaluate_pricing(
        PricingInputs(org_id="org-1", plan="pro", usage={"matches": 10},
                      revenue_eur=500.0, cost_eur=0.0, tenure_months=6, activity_score=60)
    )
    assert assessment.roi_ratio == 10
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

Plan = Literal["free", "pro", "growth", "enterprise"]

# ROI reported when nothing was billed but revenue was realised.
ROI_WITHOUT_COST = 10.0
DISCOUNT_RATE = 0.01
RETENTION_MIN = 0.6
RETENTION_MAX = 0.98
ACTIVITY_TO_RETENTION = 120.0

CARROT_DISCOUNT_PCT = -15
VALUE_CAPTURE_PCT = 10
CHURN_RISK_THRESHOLD = 0.25
VALUE_CAPTURE_ROI = 4.0

OVERAGE_RATES: Mapping[str, float] = MappingProxyType(
    {
        "ai_tokens": 0.0002,
        "matches": 0.9,
        "enrich": 0.25,
    }
)
DEFAULT_OVERAGE_RATE = 0.1


def _empty_usage() -> Mapping[str, float]:
    return MappingProxyType({})


@dataclass(frozen=True)
class PricingInputs:
    """Counters for one organisation over a billing period."""

    org_id: str
    plan: Plan = "free"
    usage: Mapping[str, float] = field(default_factory=_empty_usage)
    revenue_eur: float = 0.0
    cost_eur: float = 0.0
    tenure_months: float = 0.0
    activity_score: float = 0.0


@dataclass(frozen=True)
class PricingAssessment:
    """Heuristic outputs plus the per-metric overage breakdown."""

    org_id: str
    plan: Plan
    clv_estimate_eur: float
    churn_risk: float
    roi_ratio: float
    suggested_discount_pct: int
    suggested_overage_eur: float
    explain: Mapping[str, float]


def roi_ratio(revenue_eur: float, cost_eur: float) -> float:
    if cost_eur > 0:
        return revenue_eur / cost_eur
    if revenue_eur > 0:
        return ROI_WITHOUT_COST
    return 0.0


def retention_rate(activity_score: float) -> float:
    return min(RETENTION_MAX, max(RETENTION_MIN, activity_score / ACTIVITY_TO_RETENTION))


def suggested_discount(roi: float, churn_risk: float) -> int:
    """Carrot for at-risk low-ROI customers, value capture for high-ROI ones."""
    if roi < 1 and churn_risk > CHURN_RISK_THRESHOLD:
        return CARROT_DISCOUNT_PCT
    if roi > VALUE_CAPTURE_ROI:
        return VALUE_CAPTURE_PCT
    return 0


def overage_breakdown(usage: Mapping[str, float]) -> dict[str, float]:
    return {
        metric: quantity * OVERAGE_RATES.get(metric, DEFAULT_OVERAGE_RATE)
        for metric, quantity in usage.items()
    }


def evaluate_pricing(inputs: PricingInputs) -> PricingAssessment:
    """Compute CLV, churn risk, ROI and discount/overage suggestions."""
    roi = roi_ratio(inputs.revenue_eur, inputs.cost_eur)
    retention = retention_rate(inputs.activity_score)
    arpu = inputs.cost_eur / max(1.0, inputs.tenure_months)
    clv = round(arpu * (retention / (1 + DISCOUNT_RATE - retention)), 2)
    churn_risk = round(1 - retention, 3)
    breakdown = overage_breakdown(inputs.usage)

    return PricingAssessment(
        org_id=inputs.org_id,
        plan=inputs.plan,
        clv_estimate_eur=clv,
        churn_risk=churn_risk,
        roi_ratio=roi,
        suggested_discount_pct=suggested_discount(roi, churn_risk),
        suggested_overage_eur=round(sum(breakdown.values()), 2),
        explain=MappingProxyType(breakdown),
    )


def activity_score_from_usage(total_quantity: float) -> float:
    """Engagement index (5..100) from the summed usage counters of a period."""
    return min(100.0, max(5.0, math.log10(max(0.0, total_quantity) + 10) * 35))
