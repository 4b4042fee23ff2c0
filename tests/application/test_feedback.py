"""Tests for the feedback aggregator."""

from __future__ import annotations

import threading
from typing import override

import pytest

from mandate_matching.application.feedback import FeedbackAggregator
from mandate_matching.domain.companies import CompanyRecord
from mandate_matching.domain.criteria import CriteriaModel
from mandate_matching.domain.weights import DEFAULT_WEIGHTS, WeightVector
from mandate_matching.exceptions import AggregationInProgressError, WeightConflictError
from tests.fakes import (
    FakeCandidateSource,
    FakeCriteriaRepository,
    InMemorySignalLog,
    InMemoryWeightStore,
)
from tests.support.factories import make_company, make_signal, saas_benelux_criteria


def _sector_only_company(company_id: str = "c1") -> CompanyRecord:
    return make_company(
        company_id,
        country="FR",
        ownership_type="family",
        latest_revenue_eur=None,
    )


def _aggregator(
    signal_log: InMemorySignalLog,
    weight_store: InMemoryWeightStore,
    candidate_source: FakeCandidateSource,
    criteria_repository: FakeCriteriaRepository,
    **kwargs: object,
) -> FeedbackAggregator:
    return FeedbackAggregator(
        signal_log=signal_log,
        weight_store=weight_store,
        candidate_source=candidate_source,
        criteria_repository=criteria_repository,
        **kwargs,
    )


@pytest.fixture
def aggregator(
    signal_log: InMemorySignalLog,
    weight_store: InMemoryWeightStore,
    candidate_source: FakeCandidateSource,
    criteria_repository: FakeCriteriaRepository,
) -> FeedbackAggregator:
    criteria_repository.criteria["m1"] = saas_benelux_criteria()
    candidate_source.records = [_sector_only_company()]
    return _aggregator(signal_log, weight_store, candidate_source, criteria_repository)


class TestRecomputeWeights:
    def test_no_signals_leaves_weights_untouched(
        self,
        aggregator: FeedbackAggregator,
        weight_store: InMemoryWeightStore,
    ) -> None:
        outcome = aggregator.recompute_weights("m1")

        assert outcome.updated is False
        assert outcome.weights == DEFAULT_WEIGHTS
        assert outcome.version == 0
        assert weight_store.writes == []

    def test_malformed_rows_are_counted_not_fatal(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
    ) -> None:
        signal_log.malformed["m1"] = 2

        outcome = aggregator.recompute_weights("m1")

        assert outcome.updated is False
        assert outcome.malformed == 2

    def test_positive_signal_moves_weight_towards_matching_factor(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        signal_log.append(make_signal("meeting"))

        outcome = aggregator.recompute_weights("m1")

        assert outcome.updated is True
        assert outcome.version == 1
        assert outcome.signals_used == 1
        assert outcome.weights.sector > DEFAULT_WEIGHTS.sector
        assert outcome.weights.geo < DEFAULT_WEIGHTS.geo
        assert outcome.weights.total == pytest.approx(DEFAULT_WEIGHTS.total, abs=1e-5)
        assert weight_store.stored["m1"].weights == outcome.weights

    def test_negative_signal_moves_weight_away_from_matching_factor(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
    ) -> None:
        signal_log.append(make_signal("reject"))

        outcome = aggregator.recompute_weights("m1")

        assert outcome.updated is True
        assert outcome.weights.sector < DEFAULT_WEIGHTS.sector

    def test_history_is_replayed_on_the_default_weights(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        start = WeightVector(sector=0.2, geo=0.2, size=0.2, owner=0.2, keywords=0.2)
        weight_store.seed("m1", start, version=3)
        signal_log.append(make_signal("favorite"))
        fresh = InMemoryWeightStore()
        expected = FeedbackAggregator(
            signal_log=signal_log,
            weight_store=fresh,
            candidate_source=FakeCandidateSource([_sector_only_company()]),
            criteria_repository=FakeCriteriaRepository({"m1": saas_benelux_criteria()}),
        ).recompute_weights("m1")

        outcome = aggregator.recompute_weights("m1")

        assert outcome.previous == start
        assert outcome.version == 4
        assert outcome.weights == expected.weights
        assert outcome.weights.total == pytest.approx(DEFAULT_WEIGHTS.total, abs=1e-5)

    def test_rerun_without_new_signals_writes_nothing(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        signal_log.append(make_signal("meeting"))
        first = aggregator.recompute_weights("m1")

        second = aggregator.recompute_weights("m1")

        assert first.updated is True
        assert second.updated is False
        assert second.weights == first.weights
        assert second.version == first.version
        assert len(weight_store.writes) == 1

    def test_new_signal_after_a_run_updates_again(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
    ) -> None:
        signal_log.append(make_signal("meeting"))
        first = aggregator.recompute_weights("m1")
        signal_log.append(make_signal("reject", company_id="c1"))

        second = aggregator.recompute_weights("m1")

        assert second.updated is True
        assert second.version == first.version + 1
        assert second.weights.sector < first.weights.sector

    def test_zero_learning_rate_is_a_no_op(
        self,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
        candidate_source: FakeCandidateSource,
        criteria_repository: FakeCriteriaRepository,
    ) -> None:
        criteria_repository.criteria["m1"] = saas_benelux_criteria()
        candidate_source.records = [_sector_only_company()]
        signal_log.append(make_signal("favorite"))
        aggregator = _aggregator(
            signal_log, weight_store, candidate_source, criteria_repository, learning_rate=0.0
        )

        outcome = aggregator.recompute_weights("m1")

        assert outcome.updated is False
        assert outcome.signals_used == 1
        assert weight_store.writes == []

    def test_unknown_companies_are_skipped_and_counted(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
    ) -> None:
        signal_log.append(make_signal("favorite"))
        signal_log.append(make_signal("favorite", company_id="ghost"))

        outcome = aggregator.recompute_weights("m1")

        assert outcome.signals_used == 1
        assert outcome.unknown_companies == 1

    def test_concurrent_write_raises_conflict(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        signal_log.append(make_signal("favorite"))
        weight_store.bump_before_write = True

        with pytest.raises(WeightConflictError):
            aggregator.recompute_weights("m1")

        assert weight_store.stored == {}

    def test_rejects_negative_learning_rate(
        self,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
        candidate_source: FakeCandidateSource,
        criteria_repository: FakeCriteriaRepository,
    ) -> None:
        with pytest.raises(ValueError):
            _aggregator(
                signal_log, weight_store, candidate_source, criteria_repository, learning_rate=-1
            )


class _BlockingCriteriaRepository(FakeCriteriaRepository):
    """Holds ``load`` open until released, so a second recompute can collide."""

    def __init__(self, criteria: dict[str, CriteriaModel]) -> None:
        super().__init__(criteria)
        self.entered = threading.Event()
        self.release = threading.Event()

    @override
    def load(self, mandate_id: str) -> CriteriaModel:
        self.entered.set()
        self.release.wait(timeout=5)
        return super().load(mandate_id)


class TestConcurrentRecompute:
    def test_second_recompute_for_same_mandate_is_refused(
        self,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
        candidate_source: FakeCandidateSource,
    ) -> None:
        repository = _BlockingCriteriaRepository({"m1": saas_benelux_criteria()})
        candidate_source.records = [_sector_only_company()]
        signal_log.append(make_signal("favorite"))
        aggregator = _aggregator(signal_log, weight_store, candidate_source, repository)

        worker = threading.Thread(target=aggregator.recompute_weights, args=("m1",))
        worker.start()
        try:
            assert repository.entered.wait(timeout=5)
            with pytest.raises(AggregationInProgressError):
                aggregator.recompute_weights("m1")
        finally:
            repository.release.set()
            worker.join(timeout=5)

        assert len(weight_store.writes) == 1


class TestRecomputeAll:
    def test_processes_every_mandate_in_the_log(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        criteria_repository: FakeCriteriaRepository,
    ) -> None:
        criteria_repository.criteria["m2"] = saas_benelux_criteria()
        signal_log.append(make_signal("favorite"))
        signal_log.malformed["m2"] = 1

        report = aggregator.recompute_all()

        assert report.updated == ("m1",)
        assert report.skipped == ("m2",)
        assert dict(report.failed) == {}

    def test_failures_are_reported_per_mandate(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        signal_log.append(make_signal("favorite"))
        signal_log.append(make_signal("favorite", mandate_id="uncatalogued"))

        report = aggregator.recompute_all()

        assert report.updated == ("m1",)
        assert set(report.failed) == {"uncatalogued"}
        assert "uncatalogued" not in weight_store.stored

    def test_conflict_keeps_prior_weights(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        weight_store.seed("m1", DEFAULT_WEIGHTS)
        weight_store.bump_before_write = True
        signal_log.append(make_signal("favorite"))

        report = aggregator.recompute_all("m1")

        assert "changed concurrently" in report.failed["m1"]
        assert weight_store.stored["m1"].weights == DEFAULT_WEIGHTS
        assert weight_store.stored["m1"].version == 1

    def test_repeated_runs_settle_after_the_first(
        self,
        aggregator: FeedbackAggregator,
        signal_log: InMemorySignalLog,
        weight_store: InMemoryWeightStore,
    ) -> None:
        signal_log.append(make_signal("meeting"))

        first = aggregator.recompute_all()
        settled = weight_store.stored["m1"]
        reruns = [aggregator.recompute_all() for _ in range(4)]

        assert first.updated == ("m1",)
        assert all(report.updated == () for report in reruns)
        assert all(report.skipped == ("m1",) for report in reruns)
        assert weight_store.stored["m1"] == settled
        assert len(weight_store.writes) == 1

    def test_single_mandate_without_signals_is_skipped(
        self,
        aggregator: FeedbackAggregator,
    ) -> None:
        report = aggregator.recompute_all("m1")

        assert report.skipped == ("m1",)
