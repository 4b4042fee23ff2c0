"""Tests for the heuristic weight update rule."""

import pytest

from mandate_matching.domain.weight_adjustment import (
    SignalObservation,
    adjust_weights,
    factor_deltas,
)
from mandate_matching.domain.weights import DEFAULT_WEIGHTS, WeightVector


def _observation(weight: int, **active: int) -> SignalObservation:
    indicators = {"sector": 0, "geo": 0, "size": 0, "owner": 0, "keywords": 0}
    indicators.update(active)
    return SignalObservation(indicators=indicators, weight=weight)


class TestFactorDeltas:
    def test_missing_side_counts_as_zero(self) -> None:
        deltas = factor_deltas([_observation(1, sector=1)])

        assert deltas["sector"] == 1.0
        assert deltas["geo"] == 0.0

    def test_means_are_weighted_by_signal_strength(self) -> None:
        deltas = factor_deltas(
            [
                _observation(4, size=1),
                _observation(1, size=0),
                _observation(-1, size=1),
            ]
        )

        assert deltas["size"] == pytest.approx(4 / 5 - 1.0)


class TestAdjustWeights:
    def test_no_observations_keep_weights(self) -> None:
        assert adjust_weights(DEFAULT_WEIGHTS, []) == DEFAULT_WEIGHTS

    def test_positive_signals_shift_weight_towards_active_factor(self) -> None:
        adjusted = adjust_weights(DEFAULT_WEIGHTS, [_observation(1, owner=1)], learning_rate=0.1)

        assert adjusted.owner > DEFAULT_WEIGHTS.owner
        assert adjusted.sector < DEFAULT_WEIGHTS.sector
        assert adjusted.total == pytest.approx(DEFAULT_WEIGHTS.total)

    def test_negative_signals_shift_weight_away(self) -> None:
        adjusted = adjust_weights(DEFAULT_WEIGHTS, [_observation(-2, geo=1)], learning_rate=0.1)

        assert adjusted.geo < DEFAULT_WEIGHTS.geo
        assert adjusted.total == pytest.approx(DEFAULT_WEIGHTS.total)

    def test_weights_stay_within_unit_interval_before_rescale(self) -> None:
        current = WeightVector(sector=0.0, geo=0.0, size=0.0, owner=0.0, keywords=1.0)

        adjusted = adjust_weights(current, [_observation(-1, keywords=1)], learning_rate=1.0)

        # keywords clamps to 0 and every other factor is already 0
        assert adjusted == current

    def test_zero_learning_rate_is_identity(self) -> None:
        adjusted = adjust_weights(DEFAULT_WEIGHTS, [_observation(4, sector=1)], learning_rate=0.0)

        assert adjusted == DEFAULT_WEIGHTS

    def test_negative_learning_rate_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            adjust_weights(DEFAULT_WEIGHTS, [], learning_rate=-0.1)
