"""Area analysis routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from rentaliq.api.deps import get_aggregator
from rentaliq.api.schemas import AreaRentResponse
from rentaliq.data.aggregator import PropertyAggregator
from rentaliq.engine.area_rent import analyze_area_rents
from rentaliq.errors import InvalidQuery
from rentaliq.models.property import ListingKind, SearchQuery

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/analysis", tags=["analysis"])


@router.get("/rental-rate", response_model=AreaRentResponse)
async def rental_rate(
    city: str = "",
    state: str = "",
    zip_code: str = Query("", pattern=r"^(\d{5})?$"),
    bedrooms: int | None = Query(None, ge=0),
    aggregator: PropertyAggregator = Depends(get_aggregator),
):
    """Asking-rent distribution for a city or ZIP, optionally for one bedroom count."""
    query = SearchQuery(
        city=city.strip(),
        state=state.strip().upper(),
        zip_code=zip_code,
        kind=ListingKind.FOR_RENT,
        min_bedrooms=bedrooms,
        max_bedrooms=bedrooms,
    )
    try:
        result = await aggregator.search(query)
    except InvalidQuery as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "missing_fields": e.missing_fields})

    if result.all_failed:
        raise HTTPException(
            status_code=502,
            detail={"message": "No listing source answered", "degraded_sources": result.degraded_sources},
        )

    analysis = analyze_area_rents(result.properties, bedrooms, result.degraded_sources)
    logger.info(
        "Area rents for %s (%s bd): %d samples, average %s",
        query.location, "any" if bedrooms is None else bedrooms,
        analysis.sample_size, analysis.average_rent,
    )
    return AreaRentResponse.from_analysis(analysis)
