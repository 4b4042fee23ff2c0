"""JSON HTTP surface for search, signal capture and weight recompute.

Usage example:
    import uvicorn

    from mandate_matching.web import create_web_app

    uvicorn.run(create_web_app(services), host="127.0.0.1", port=8080)

Every error response is ``{"error": "<message>"}``: 400 for bad input, 404
for unknown mandates, 409 when a recompute is already running and 500 when
an upstream store or source fails.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import __version__
from .application.feedback import FeedbackAggregator
from .application.payloads import PricingRequest, RetrainRequest, SearchRequest, SignalRequest
from .application.search import SearchOrchestrator, resolve_search_criteria
from .domain.pricing import PricingAssessment, evaluate_pricing
from .domain.scoring import ScoredCompany
from .domain.signal_value import compute_svi
from .domain.signals import build_signal
from .exceptions import (
    AggregationInProgressError,
    InvalidCriteriaError,
    InvalidWeightsError,
    MalformedSignalError,
    MandateNotFoundError,
    MatchingError,
)
from .observability import get_logger
from .protocols import CriteriaRepository, SignalLog

logger = get_logger("mandate_matching.web")

_BAD_INPUT_ERRORS = (InvalidCriteriaError, InvalidWeightsError, MalformedSignalError)


@dataclass(frozen=True)
class WebServices:
    """Application services exposed over HTTP."""

    orchestrator: SearchOrchestrator
    aggregator: FeedbackAggregator
    signal_log: SignalLog
    criteria_repository: CriteriaRepository | None = None
    search_timeout_seconds: float | None = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}" if location else message


def search_result_payload(item: ScoredCompany) -> dict[str, object]:
    """Render one ranked company in the shape returned by ``POST /search``."""
    company = item.company
    return {
        "id": company.id,
        "legalName": company.legal_name,
        "displayName": company.display_name,
        "website": company.website,
        "country": company.country,
        "industry": company.industry,
        "ownershipType": company.ownership_type,
        "matchScore": item.match_score,
        "explain": dict(item.result.explain),
    }


def pricing_payload(assessment: PricingAssessment) -> dict[str, object]:
    return {
        "org_id": assessment.org_id,
        "plan": assessment.plan,
        "clv_estimate_eur": assessment.clv_estimate_eur,
        "churn_risk": assessment.churn_risk,
        "roi_ratio": assessment.roi_ratio,
        "suggested_discount_pct": assessment.suggested_discount_pct,
        "suggested_overage_eur": assessment.suggested_overage_eur,
        "explain": dict(assessment.explain),
    }


def _register_error_handlers(app: FastAPI) -> None:
    async def validation_handler(request: Request, exc: Exception) -> JSONResponse:
        if not isinstance(exc, RequestValidationError):
            raise exc
        return _error(400, _validation_message(exc))

    async def matching_error_handler(request: Request, exc: Exception) -> JSONResponse:
        if isinstance(exc, _BAD_INPUT_ERRORS):
            return _error(400, str(exc))
        if isinstance(exc, MandateNotFoundError):
            return _error(404, str(exc))
        if isinstance(exc, AggregationInProgressError):
            return _error(409, str(exc))
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return _error(500, str(exc))

    async def general_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(500, "Internal server error")

    app.add_exception_handler(RequestValidationError, validation_handler)
    app.add_exception_handler(MatchingError, matching_error_handler)
    app.add_exception_handler(Exception, general_handler)


def create_web_app(services: WebServices) -> FastAPI:
    """Create the FastAPI app bound to the given services."""
    app = FastAPI(
        title="Mandate Matching Engine",
        description="Lead-to-mandate search, learning signals and weight recompute",
        version=__version__,
    )
    _register_error_handlers(app)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "healthy", "service": "mandate-matching"}

    @app.post("/search")
    def search(body: SearchRequest) -> list[dict[str, object]]:
        criteria = resolve_search_criteria(
            mandate_id=body.mandate_id,
            criteria=None if body.criteria is None else body.criteria.to_criteria(),
            repository=services.criteria_repository,
        )
        results = services.orchestrator.search(
            body.mandate_id,
            criteria,
            body.query,
            limit=body.limit,
            timeout_seconds=services.search_timeout_seconds,
        )
        return [search_result_payload(item) for item in results]

    @app.post("/retrain-weights")
    def retrain_weights(body: RetrainRequest | None = None) -> dict[str, object]:
        mandate_id = None if body is None else body.mandate_id
        report = services.aggregator.recompute_all(mandate_id)
        return {
            "ok": not report.failed,
            "updated": len(report.updated),
            "skipped": len(report.skipped),
            "failed": dict(report.failed),
        }

    @app.post("/signals", status_code=201)
    def record_signal(body: SignalRequest) -> dict[str, object]:
        signal = build_signal(
            mandate_id=body.mandate_id,
            company_id=body.company_id,
            signal=body.signal,
            weight=body.weight,
        )
        services.signal_log.append(signal)
        return {
            "ok": True,
            "signal": signal.signal,
            "weight": signal.weight,
            "recorded_at": signal.recorded_at.isoformat(),
        }

    @app.get("/svi")
    def svi(
        press_60d: Annotated[int, Query(ge=0)] = 0,
        rfp_60d: Annotated[int, Query(ge=0)] = 0,
    ) -> dict[str, float]:
        return {"svi": compute_svi(press_60d, rfp_60d)}

    @app.post("/pricing")
    def pricing(body: PricingRequest) -> dict[str, object]:
        return pricing_payload(evaluate_pricing(body.to_inputs()))

    _ = (health, search, retrain_weights, record_signal, svi, pricing)

    return app
