"""Section 8 Fair Market Rent lookup routes."""

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query

from rentaliq.api.deps import get_hud_client
from rentaliq.api.schemas import Section8Response
from rentaliq.data.hud import HUDClient
from rentaliq.errors import SourceUnavailable

router = APIRouter(prefix="/api/v1/section8", tags=["section8"])


@router.get("/fmr", response_model=Section8Response)
async def get_fmr(
    zip_code: str = Query(..., pattern=r"^\d{5}$"),
    bedrooms: int = Query(3, ge=0),
    rent: Decimal | None = Query(None, gt=0, description="Monthly rent to check against FMR"),
    hud: HUDClient = Depends(get_hud_client),
):
    """Fair Market Rent schedule for a ZIP code, with an eligibility verdict when rent is given."""
    try:
        profile = await hud.get_fmr(zip_code, bedrooms)
    except SourceUnavailable as e:
        raise HTTPException(status_code=502, detail=str(e))

    if profile is None:
        raise HTTPException(status_code=404, detail=f"No FMR data for ZIP {zip_code}")
    return Section8Response.from_profile(profile, rent)
