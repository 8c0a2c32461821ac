"""Property search routes."""

from fastapi import APIRouter, Depends, HTTPException

from rentaliq.api.deps import get_aggregator
from rentaliq.api.schemas import SearchRequest, SearchResponse
from rentaliq.data.aggregator import PropertyAggregator
from rentaliq.errors import InvalidQuery

router = APIRouter(prefix="/api/v1/properties", tags=["properties"])


@router.post("/search", response_model=SearchResponse)
async def search_properties(
    req: SearchRequest,
    aggregator: PropertyAggregator = Depends(get_aggregator),
):
    """Search all requested listing sources and return merged properties.

    Degraded sources are listed in the response; the request only fails
    outright when no requested source answered.
    """
    try:
        result = await aggregator.search(req.to_query())
    except InvalidQuery as e:
        raise HTTPException(status_code=400, detail=str(e))

    if result.all_failed:
        raise HTTPException(
            status_code=502,
            detail={
                "message": "No listing source answered",
                "degraded_sources": [
                    {"source": f.source, "kind": f.kind.value, "detail": f.detail}
                    for f in result.failures
                ],
            },
        )
    return SearchResponse.from_result(result)
