"""Domain scoring rules for lead-to-mandate matching.

Each factor yields an indicator (0 or 1) multiplied by that factor's weight.
The match score is the sum of the contributions, rounded to four decimals,
and the explain map always carries all five factors so a caller can render a
full "why this matched" breakdown.

Usage example:
    from mandate_matching.domain.companies import CompanyRecord
    from mandate_matching.domain.criteria import build_criteria
    from mandate_matching.domain.scoring import score_company, veto_reason
    from mandate_matching.domain.weights import DEFAULT_WEIGHTS

    criteria = build_criteria(
        industry_allow=["SaaS"],
        geography_allow=["NL", "DE"],
        revenue_min=1_000_000,
        revenue_max=50_000_000,
        ownership_allow=["founder-led"],
        excluded_keywords=["holding"],
    )
    company = CompanyRecord(
        id="c1",
        legal_name="Acme SaaS BV",
        country="NL",
        industry="SaaS",
        ownership_type="founder-led",
        latest_revenue_eur=5_000_000,
    )

    assert veto_reason(criteria, company) is None
    result = score_company(criteria, company, DEFAULT_WEIGHTS)
    assert result.match_score == 0.9
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Literal

from .companies import CompanyRecord
from .criteria import CriteriaModel
from .weights import FACTORS, Factor, WeightVector

SCORE_DECIMALS = 4

VetoReason = Literal["geo_block", "excluded_keyword"]


def _empty_explain() -> Mapping[str, float]:
    return MappingProxyType({})


@dataclass(frozen=True)
class MatchResult:
    """Score and per-factor contributions for one company."""

    company_id: str
    match_score: float
    explain: Mapping[str, float] = field(default_factory=_empty_explain)


def sector_indicator(criteria: CriteriaModel, company: CompanyRecord) -> int:
    """1 when the industry is allowed; an empty allow-set allows every industry."""
    if not criteria.industry_allow:
        return 1
    return int(company.industry_label in criteria.industry_allow)


def geo_indicator(criteria: CriteriaModel, company: CompanyRecord) -> int:
    """1 when the country is allowed; an empty allow-set allows every country.

    The block-list is a separate hard veto (see ``veto_reason``).
    """
    if not criteria.geography_allow:
        return 1
    return int(company.country_code in criteria.geography_allow)


def size_indicator(criteria: CriteriaModel, company: CompanyRecord) -> int:
    """1 only when revenue and both bounds are present and the revenue is in range."""
    revenue = company.latest_revenue_eur
    if revenue is None or criteria.revenue_min is None or criteria.revenue_max is None:
        return 0
    return int(criteria.revenue_min <= revenue <= criteria.revenue_max)


def owner_indicator(criteria: CriteriaModel, company: CompanyRecord) -> int:
    """1 when the case-normalised ownership type is in the allow-set."""
    label = company.ownership_label
    if not label:
        return 0
    return int(label in criteria.ownership_allow)


def _any_keyword_in_names(keywords: Iterable[str], company: CompanyRecord) -> bool:
    haystacks = company.name_haystacks()
    return any(keyword in name for keyword in keywords for name in haystacks)


def keyword_indicator(criteria: CriteriaModel, company: CompanyRecord) -> int:
    """1 when any inclusion keyword appears in the display or legal name."""
    return int(_any_keyword_in_names(criteria.included_keywords, company))


_INDICATORS = {
    "sector": sector_indicator,
    "geo": geo_indicator,
    "size": size_indicator,
    "owner": owner_indicator,
    "keywords": keyword_indicator,
}


def factor_indicators(criteria: CriteriaModel, company: CompanyRecord) -> dict[Factor, int]:
    """Evaluate every factor indicator in the fixed factor order."""
    return {factor: _INDICATORS[factor](criteria, company) for factor in FACTORS}


def score_company(
    criteria: CriteriaModel,
    company: CompanyRecord,
    weights: WeightVector,
) -> MatchResult:
    """Score one company against criteria using the given weights.

    Pure and total: identical inputs always give identical output, and no
    well-formed input raises.
    """
    indicators = factor_indicators(criteria, company)
    explain = {factor: indicators[factor] * weights.get(factor) for factor in FACTORS}
    match_score = round(sum(explain.values()), SCORE_DECIMALS)
    return MatchResult(
        company_id=company.id,
        match_score=match_score,
        explain=MappingProxyType(explain),
    )


def veto_reason(criteria: CriteriaModel, company: CompanyRecord) -> VetoReason | None:
    """Return why a company must be excluded outright, or None if it may be ranked."""
    if company.country_code and company.country_code in criteria.geography_block:
        return "geo_block"
    if _any_keyword_in_names(criteria.excluded_keywords, company):
        return "excluded_keyword"
    return None


@dataclass(frozen=True)
class ScoredCompany:
    """A ranked candidate: the company record alongside its match result."""

    company: CompanyRecord
    result: MatchResult

    @property
    def match_score(self) -> float:
        return self.result.match_score


@dataclass(frozen=True)
class RankedCandidates:
    """Outcome of ranking a candidate set."""

    ranked: tuple[ScoredCompany, ...]
    vetoed: Mapping[str, int]

    @property
    def vetoed_total(self) -> int:
        return sum(self.vetoed.values())


def rank_candidates(
    criteria: CriteriaModel,
    companies: Iterable[CompanyRecord],
    weights: WeightVector,
) -> RankedCandidates:
    """Veto, score and rank candidates.

    Sorting is by score descending; ``sorted`` is stable, so ties keep input order.
    """
    vetoed: Counter[str] = Counter()
    scored: list[ScoredCompany] = []
    for company in companies:
        reason = veto_reason(criteria, company)
        if reason is not None:
            vetoed[reason] += 1
            continue
        result = score_company(criteria, company, weights)
        scored.append(ScoredCompany(company=company, result=result))

    ranked = sorted(scored, key=lambda item: item.match_score, reverse=True)
    return RankedCandidates(ranked=tuple(ranked), vetoed=MappingProxyType(dict(vetoed)))
