"""Heuristic weight adjustment from learning signals.

Update rule, per factor ``f``::

    pos_f = weighted mean of indicator_f over positively signalled companies
    neg_f = weighted mean of indicator_f over negatively signalled companies
    raw_f = clamp(w_f + learning_rate * (pos_f - neg_f), 0, 1)

Means are weighted by the absolute signal weight, so a meeting (+4) pulls
harder than a favorite (+1). A side with no observations contributes a mean
of 0. The raw vector is then rescaled to the previous vector's total so that
weights stay comparable across mandates. If every factor clamps to zero the
previous weights are kept.

Usage example:
    from mandate_matching.domain.weight_adjustment import SignalObservation, adjust_weights
    from mandate_matching.domain.weights import DEFAULT_WEIGHTS

    observation = SignalObservation(
        indicators={"sector": 1, "geo": 0, "size": 0, "owner": 0, "keywords": 0},
        weight=1,
    )
    adjusted = adjust_weights(DEFAULT_WEIGHTS, [observation], learning_rate=0.05)
    assert adjusted.sector > DEFAULT_WEIGHTS.sector
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .weights import FACTORS, Factor, WeightVector, build_weights

DEFAULT_LEARNING_RATE = 0.05
WEIGHT_DECIMALS = 6


@dataclass(frozen=True)
class SignalObservation:
    """Which factors were active on a signalled company, and the signal's signed weight."""

    indicators: Mapping[Factor, int]
    weight: int


def _weighted_means(observations: list[SignalObservation]) -> dict[str, float]:
    total = sum(abs(observation.weight) for observation in observations)
    if total == 0:
        return {factor: 0.0 for factor in FACTORS}
    return {
        factor: sum(
            abs(observation.weight) * observation.indicators.get(factor, 0)
            for observation in observations
        )
        / total
        for factor in FACTORS
    }


def factor_deltas(observations: Iterable[SignalObservation]) -> dict[str, float]:
    """Return ``pos_f - neg_f`` for every factor."""
    items = list(observations)
    positive = _weighted_means([item for item in items if item.weight > 0])
    negative = _weighted_means([item for item in items if item.weight < 0])
    return {factor: positive[factor] - negative[factor] for factor in FACTORS}


def adjust_weights(
    current: WeightVector,
    observations: Iterable[SignalObservation],
    *,
    learning_rate: float = DEFAULT_LEARNING_RATE,
) -> WeightVector:
    """Nudge weights towards factors active on positively signalled companies."""
    if learning_rate < 0:
        raise ValueError("learning_rate must not be negative")

    deltas = factor_deltas(observations)
    raw = {
        factor: max(0.0, min(1.0, current.get(factor) + learning_rate * deltas[factor]))
        for factor in FACTORS
    }
    raw_total = sum(raw.values())
    if raw_total <= 0:
        return current

    scale = current.total / raw_total
    return build_weights(
        {factor: round(value * scale, WEIGHT_DECIMALS) for factor, value in raw.items()}
    )
