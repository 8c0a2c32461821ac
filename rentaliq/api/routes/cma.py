"""Comparative market analysis routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException

from rentaliq.api.deps import get_cma_service, get_report_cache
from rentaliq.api.schemas import (
    BatchCMARequest,
    BatchCMAResponse,
    BatchItemResponse,
    CMAResponse,
    SubjectRequest,
)
from rentaliq.data.cache import ReportCache, report_cache_key
from rentaliq.data.cma_service import CMAService
from rentaliq.errors import InsufficientComparables, InvalidQuery
from rentaliq.models.cma import CMAOutcome, CMARequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["cma"])


def _outcome_status(outcome: CMAOutcome) -> str:
    if outcome.ok:
        return "ok"
    if isinstance(outcome.error, InsufficientComparables):
        return "insufficient_data"
    if isinstance(outcome.error, InvalidQuery):
        return "invalid"
    return "error"


def _outcome_degraded(outcome: CMAOutcome) -> list[str]:
    if outcome.report is not None:
        return outcome.report.degraded_sources
    if isinstance(outcome.error, InsufficientComparables):
        return outcome.error.degraded_sources
    return []


@router.post("/cma", response_model=CMAResponse)
async def generate_cma(
    req: SubjectRequest,
    service: CMAService = Depends(get_cma_service),
    cache: ReportCache | None = Depends(get_report_cache),
):
    """Generate a CMA for one subject property."""
    subject = req.to_subject()
    request = CMARequest(subject.identifier)
    try:
        pools = await service.fetch_pools(subject, request)

        key = None
        if cache is not None:
            key = report_cache_key(pools.subject, pools.sold, pools.rentals, service.as_of)
            cached = await cache.get(key)
            if cached is not None:
                return cached

        report = await service.compute(pools, request)
    except InvalidQuery as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "missing_fields": e.missing_fields})
    except InsufficientComparables as e:
        raise HTTPException(
            status_code=404,
            detail={
                "message": str(e),
                "subject_id": e.subject_id,
                "state": request.state.value,
                "degraded_sources": e.degraded_sources,
            },
        )

    response = CMAResponse.from_report(report)
    if cache is not None and key is not None:
        await cache.set(key, response.model_dump(mode="json"))
    return response


@router.post("/cma/batch", response_model=BatchCMAResponse)
async def generate_cma_batch(
    req: BatchCMARequest,
    service: CMAService = Depends(get_cma_service),
):
    """Generate CMAs for several subjects; each subject succeeds or fails on its own."""
    outcomes = await service.generate_many([s.to_subject() for s in req.subjects])
    return BatchCMAResponse(
        results=[
            BatchItemResponse(
                subject_id=o.subject_id,
                status=_outcome_status(o),
                report=CMAResponse.from_report(o.report) if o.report is not None else None,
                error=str(o.error) if o.error is not None else None,
                degraded_sources=_outcome_degraded(o),
            )
            for o in outcomes
        ]
    )
