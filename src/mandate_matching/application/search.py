"""Search orchestration: fetch candidates, resolve weights, rank.

Usage example:
    from mandate_matching.application.search import SearchOrchestrator
    from mandate_matching.domain.criteria import build_criteria

    orchestrator = SearchOrchestrator(candidate_source=source, weight_store=store)
    for item in orchestrator.search("m-1", build_criteria(geography_allow=["NL"])):
        print(item.company.display_name, item.match_score)
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from ..domain.companies import CandidateQuery
from ..domain.criteria import CriteriaModel
from ..domain.scoring import ScoredCompany, rank_candidates
from ..domain.weights import DEFAULT_WEIGHTS, WeightVector
from ..exceptions import DataUnavailableError
from ..observability import get_logger
from ..protocols import CandidateSource, CriteriaRepository, WeightStore

logger = get_logger("mandate_matching.application.search")


def resolve_search_criteria(
    *,
    mandate_id: str | None,
    criteria: CriteriaModel | None,
    repository: CriteriaRepository | None,
) -> CriteriaModel:
    """Use explicit criteria when given, otherwise the mandate's catalogued criteria.

    Raises:
        MandateNotFoundError: If the mandate is not catalogued.
    """
    if criteria is not None:
        return criteria
    if mandate_id is None or repository is None:
        return CriteriaModel()
    return repository.load(mandate_id)


class SearchOrchestrator:
    """Ranks one batch of candidates for a mandate.

    The weight lookup and the candidate fetch are independent, so they run
    concurrently. Searches never write weights.
    """

    def __init__(
        self,
        *,
        candidate_source: CandidateSource,
        weight_store: WeightStore,
        default_weights: WeightVector = DEFAULT_WEIGHTS,
        page_size: int = 100,
        prefilter: bool = True,
        max_workers: int = 2,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self._candidates = candidate_source
        self._weights = weight_store
        self._default_weights = default_weights
        self._page_size = page_size
        self._prefilter = prefilter
        self._max_workers = max_workers

    def build_query(
        self,
        criteria: CriteriaModel,
        text: str = "",
        *,
        limit: int | None = None,
    ) -> CandidateQuery:
        """Translate criteria into coarse source filters.

        Only allow-sets are pushed down; everything else is decided by scoring.
        """
        page_size = self._page_size if limit is None else min(limit, self._page_size)
        if not self._prefilter:
            return CandidateQuery(text=text.strip(), page_size=page_size)
        return CandidateQuery(
            text=text.strip(),
            countries=tuple(sorted(criteria.geography_allow)),
            industries=tuple(sorted(criteria.industry_allow)),
            page_size=page_size,
        )

    def resolve_weights(self, mandate_id: str | None) -> WeightVector:
        """Stored weights for the mandate, or the configured default."""
        if mandate_id is None:
            return self._default_weights
        stored = self._weights.get(mandate_id)
        if stored is None:
            return self._default_weights
        return stored.weights

    def search(
        self,
        mandate_id: str | None,
        criteria: CriteriaModel,
        query: str = "",
        *,
        limit: int | None = None,
        timeout_seconds: float | None = None,
    ) -> Iterator[ScoredCompany]:
        """Return a one-shot iterator over ranked, non-vetoed candidates.

        Raises:
            DataUnavailableError: If either IO call fails or the timeout expires.
        """
        candidate_query = self.build_query(criteria, query, limit=limit)
        executor = ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="mandate-search"
        )
        try:
            weights_future = executor.submit(self.resolve_weights, mandate_id)
            batch_future = executor.submit(self._candidates.fetch, candidate_query)
            deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
            weights = _await(weights_future, "scoring_weights", deadline)
            batch = _await(batch_future, "companies", deadline)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        ranked = rank_candidates(criteria, batch.records, weights)
        logger.info(
            "Search for %s: %d candidates, %d ranked, %d vetoed%s",
            mandate_id or "<ad hoc>",
            len(batch.records),
            len(ranked.ranked),
            ranked.vetoed_total,
            " (more available)" if batch.has_more else "",
        )
        return iter(ranked.ranked)


def _await[ResultT](future: Future[ResultT], source: str, deadline: float | None) -> ResultT:
    timeout = None if deadline is None else max(0.0, deadline - time.monotonic())
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError as exc:
        future.cancel()
        raise DataUnavailableError(source, "timed out waiting for response") from exc

