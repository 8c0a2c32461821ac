"""HUD Fair Market Rent (FMR) API client."""

import logging
from datetime import date
from decimal import Decimal

import httpx

from rentaliq.config import settings
from rentaliq.data.http import get_json
from rentaliq.data.parsing import opt_decimal, opt_int, opt_str
from rentaliq.models.section8 import Section8Profile

logger = logging.getLogger(__name__)

HUD_BASE_URL = "https://www.huduser.gov/hudapi/public/fmr/data"

# Small Area FMR rows use the spelled-out keys, flat payloads the fmr_N keys
FMR_KEYS = {
    0: ("Efficiency", "fmr_0"),
    1: ("One-Bedroom", "fmr_1"),
    2: ("Two-Bedroom", "fmr_2"),
    3: ("Three-Bedroom", "fmr_3"),
    4: ("Four-Bedroom", "fmr_4"),
}


def _fmr_value(row: dict, beds: int) -> Decimal:
    named, short = FMR_KEYS[beds]
    value = opt_decimal(row.get(named, row.get(short)))
    return value if value is not None else Decimal("0")


def parse_fmr(data: dict, zip_code: str, bedrooms: int = 3) -> Section8Profile | None:
    """Build a Section8Profile from an FMR payload, or None when it has no FMR data."""
    top = data.get("data") if isinstance(data, dict) else None
    if not isinstance(top, dict) or not top:
        return None

    # FMR values live inside basicdata (Small Area FMR areas) or directly on top
    basicdata = top.get("basicdata")
    if isinstance(basicdata, list) and basicdata:
        fmr_row = next(
            (row for row in basicdata if isinstance(row, dict) and str(row.get("zip_code", "")) == zip_code),
            None,
        )
        if fmr_row is None:
            # First entry is typically "MSA level"
            fmr_row = basicdata[0]
    elif isinstance(basicdata, dict):
        fmr_row = basicdata
    else:
        fmr_row = top

    if not isinstance(fmr_row, dict):
        return None

    schedule = {beds: _fmr_value(fmr_row, beds) for beds in FMR_KEYS}
    if not any(schedule.values()):
        return None

    area_name = (
        opt_str(top.get("area_name")) or opt_str(top.get("areaname"))
        or opt_str(fmr_row.get("metro_name")) or opt_str(fmr_row.get("areaname")) or ""
    )
    return Section8Profile(
        zip_code=zip_code,
        area_name=area_name,
        year=opt_int(top.get("year")) or date.today().year,
        fmr_0br=schedule[0],
        fmr_1br=schedule[1],
        fmr_2br=schedule[2],
        fmr_3br=schedule[3],
        fmr_4br=schedule[4],
        bedrooms=max(0, min(bedrooms, 4)),
    )


class HUDClient:
    name = "hud"

    def __init__(self, client: httpx.AsyncClient, api_key: str | None = None):
        self.client = client
        self.api_key = api_key if api_key is not None else settings.hud_api_key

    async def get_fmr(self, zip_code: str, bedrooms: int = 3) -> Section8Profile | None:
        """Fetch Fair Market Rent for a ZIP code.

        If the area uses Small Area FMR, returns the zip-level rate;
        otherwise falls back to the MSA-level rate. Returns None when HUD has
        no schedule for the ZIP; transport failures raise SourceUnavailable.
        """
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        data = await get_json(
            self.client, self.name, f"{HUD_BASE_URL}/{zip_code}",
            params={"year": date.today().year}, headers=headers,
        )
        profile = parse_fmr(data, zip_code, bedrooms)
        if profile is None:
            logger.info("No FMR data for ZIP %s", zip_code)
        return profile
