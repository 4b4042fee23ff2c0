"""Domain modules for the matching engine."""

from .companies import CompanyRecord
from .criteria import CriteriaModel, build_criteria, merge_criteria
from .scoring import MatchResult, RankedCandidates, ScoredCompany, rank_candidates, score_company
from .weights import DEFAULT_WEIGHTS, FACTORS, WeightVector, build_weights

__all__ = [
    "DEFAULT_WEIGHTS",
    "FACTORS",
    "CompanyRecord",
    "CriteriaModel",
    "MatchResult",
    "RankedCandidates",
    "ScoredCompany",
    "WeightVector",
    "build_criteria",
    "build_weights",
    "merge_criteria",
    "rank_candidates",
    "score_company",
]
