"""Weight vectors for the weighted linear match score.

Usage example:
    from mandate_matching.domain.weights import DEFAULT_WEIGHTS, build_weights

    weights = build_weights({"sector": 0.5})
    assert weights.sector == 0.5
    assert weights.geo == DEFAULT_WEIGHTS.geo
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Literal, Self

from ..exceptions import InvalidWeightsError

Factor = Literal["sector", "geo", "size", "owner", "keywords"]

# Fixed evaluation order; explain maps and score sums follow it.
FACTORS: tuple[Factor, ...] = ("sector", "geo", "size", "owner", "keywords")


@dataclass(frozen=True)
class WeightVector:
    """Non-negative per-factor weights. Weights are independent and need not sum to 1."""

    sector: float = 0.35
    geo: float = 0.20
    size: float = 0.20
    owner: float = 0.15
    keywords: float = 0.10

    def get(self, factor: Factor) -> float:
        return float(getattr(self, factor))

    def as_dict(self) -> dict[str, float]:
        return {factor: self.get(factor) for factor in FACTORS}

    @property
    def total(self) -> float:
        return sum(self.get(factor) for factor in FACTORS)

    def with_factor(self, factor: Factor, value: float) -> Self:
        """Return a copy with a single factor replaced."""
        _check_weight(factor, value)
        return replace(self, **{factor: float(value)})


DEFAULT_WEIGHTS = WeightVector()


def _check_weight(factor: str, value: float) -> None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise InvalidWeightsError(f"{factor} must be a number")
    if math.isnan(value) or math.isinf(value):
        raise InvalidWeightsError(f"{factor} must be finite")
    if value < 0.0:
        raise InvalidWeightsError(f"{factor} must be non-negative")


def build_weights(
    values: Mapping[str, float],
    *,
    base: WeightVector = DEFAULT_WEIGHTS,
) -> WeightVector:
    """Build a weight vector, filling missing factors from ``base``.

    Accepts both bare factor names and the ``w_``-prefixed column names used by
    the ``scoring_weights`` table (``w_sector``, ``w_geo``...).

    Raises:
        InvalidWeightsError: For unknown factors or negative/non-numeric weights.
    """
    resolved = base.as_dict()
    for key, value in values.items():
        factor = key.removeprefix("w_")
        if factor not in FACTORS:
            raise InvalidWeightsError(f"unknown factor {key!r}")
        _check_weight(factor, value)
        resolved[factor] = float(value)
    return WeightVector(**resolved)


@dataclass(frozen=True)
class StoredWeights:
    """A persisted weight vector with its compare-and-swap version.

    Version 0 means "never stored"; each successful write increments it.
    """

    mandate_id: str
    weights: WeightVector
    version: int
