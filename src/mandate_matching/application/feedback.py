"""Feedback aggregation: fold learning signals back into per-mandate weights.

Usage example:
    from mandate_matching.application.feedback import FeedbackAggregator

    aggregator = FeedbackAggregator(
        signal_log=signal_log,
        weight_store=weight_store,
        candidate_source=candidate_source,
        criteria_repository=catalog,
    )
    report = aggregator.recompute_all()
    print(report.updated, report.failed)
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ..domain.scoring import factor_indicators
from ..domain.weight_adjustment import DEFAULT_LEARNING_RATE, SignalObservation, adjust_weights
from ..domain.weights import DEFAULT_WEIGHTS, WeightVector
from ..exceptions import AggregationInProgressError, MatchingError
from ..observability import get_logger
from ..protocols import CandidateSource, CriteriaRepository, SignalLog, WeightStore

logger = get_logger("mandate_matching.application.feedback")


@dataclass(frozen=True)
class RecomputeOutcome:
    """Result of recomputing one mandate's weights."""

    mandate_id: str
    updated: bool
    previous: WeightVector
    weights: WeightVector
    version: int
    signals_used: int = 0
    malformed: int = 0
    unknown_companies: int = 0


def _empty_failures() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True)
class RecomputeReport:
    """Per-mandate results of one recompute run.

    ``skipped`` mandates had nothing new to learn from; ``failed`` maps a
    mandate id to the error that kept its stored weights unchanged.
    """

    updated: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    failed: Mapping[str, str] = field(default_factory=_empty_failures)


class FeedbackAggregator:
    """Recomputes per-mandate weights from the signal log.

    Only one recompute per mandate runs at a time in this process; the weight
    store's version check covers writers in other processes.
    """

    def __init__(
        self,
        *,
        signal_log: SignalLog,
        weight_store: WeightStore,
        candidate_source: CandidateSource,
        criteria_repository: CriteriaRepository,
        default_weights: WeightVector = DEFAULT_WEIGHTS,
        learning_rate: float = DEFAULT_LEARNING_RATE,
    ) -> None:
        if learning_rate < 0:
            raise ValueError("learning_rate must not be negative")
        self._signals = signal_log
        self._weights = weight_store
        self._candidates = candidate_source
        self._criteria = criteria_repository
        self._default_weights = default_weights
        self._learning_rate = learning_rate
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, mandate_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(mandate_id, threading.Lock())

    def recompute_weights(self, mandate_id: str) -> RecomputeOutcome:
        """Recompute and store one mandate's weights.

        Raises:
            AggregationInProgressError: If a recompute for the mandate is already running.
            WeightConflictError: If the stored weights changed during the recompute.
            MandateNotFoundError: If the mandate has signals but no catalogued criteria.
            DataUnavailableError: If a store or source cannot be reached.
        """
        lock = self._lock_for(mandate_id)
        if not lock.acquire(blocking=False):
            raise AggregationInProgressError(mandate_id)
        try:
            return self._recompute(mandate_id)
        finally:
            lock.release()

    def _recompute(self, mandate_id: str) -> RecomputeOutcome:
        batch = self._signals.fetch(mandate_id)
        stored = self._weights.get(mandate_id)
        current = self._default_weights if stored is None else stored.weights
        version = 0 if stored is None else stored.version

        def unchanged(**counts: int) -> RecomputeOutcome:
            return RecomputeOutcome(
                mandate_id=mandate_id,
                updated=False,
                previous=current,
                weights=current,
                version=version,
                malformed=batch.malformed,
                **counts,
            )

        if not batch.signals:
            logger.info("No usable signals for %s (%d malformed)", mandate_id, batch.malformed)
            return unchanged()

        criteria = self._criteria.load(mandate_id)
        company_ids = {signal.company_id for signal in batch.signals}
        companies = {record.id: record for record in self._candidates.lookup(company_ids)}

        observations: list[SignalObservation] = []
        unknown = 0
        for signal in batch.signals:
            company = companies.get(signal.company_id)
            if company is None:
                unknown += 1
                continue
            observations.append(
                SignalObservation(
                    indicators=factor_indicators(criteria, company),
                    weight=signal.weight,
                )
            )
        if unknown:
            logger.warning("%d signals for %s reference unknown companies", unknown, mandate_id)

        # The whole history is replayed on the configured baseline, so a rerun
        # without new signals reproduces the stored vector.
        adjusted = adjust_weights(
            self._default_weights, observations, learning_rate=self._learning_rate
        )
        if adjusted == current:
            return unchanged(signals_used=len(observations), unknown_companies=unknown)

        saved = self._weights.set(mandate_id, adjusted, expected_version=version)
        logger.info(
            "Updated weights for %s from %d signals: %s",
            mandate_id,
            len(observations),
            saved.weights.as_dict(),
        )
        return RecomputeOutcome(
            mandate_id=mandate_id,
            updated=True,
            previous=current,
            weights=saved.weights,
            version=saved.version,
            signals_used=len(observations),
            malformed=batch.malformed,
            unknown_companies=unknown,
        )

    def recompute_all(self, mandate_id: str | None = None) -> RecomputeReport:
        """Recompute one mandate, or every mandate present in the signal log.

        A failing mandate is reported and leaves its stored weights untouched;
        the remaining mandates are still processed.
        """
        mandate_ids = (mandate_id,) if mandate_id is not None else self._signals.mandate_ids()
        updated: list[str] = []
        skipped: list[str] = []
        failed: dict[str, str] = {}
        for current_id in mandate_ids:
            try:
                outcome = self.recompute_weights(current_id)
            except MatchingError as exc:
                logger.error("Weight recompute failed for %s: %s", current_id, exc)
                failed[current_id] = str(exc)
                continue
            (updated if outcome.updated else skipped).append(current_id)
        return RecomputeReport(
            updated=tuple(updated),
            skipped=tuple(skipped),
            failed=MappingProxyType(failed),
        )
