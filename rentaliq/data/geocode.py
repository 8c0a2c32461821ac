"""Address normalization and geocoding via Census Geocoder API (free, no key needed)."""

import logging

import httpx

from rentaliq.data.http import get_json
from rentaliq.data.parsing import opt_float, opt_str
from rentaliq.errors import InvalidQuery, SourceUnavailable
from rentaliq.models.property import Address

logger = logging.getLogger(__name__)

CENSUS_GEOCODER_URL = "https://geocoding.geo.census.gov/geocoder/locations/onelineaddress"


class CensusGeocoder:
    name = "census"

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def geocode(self, raw_address: str) -> Address:
        """Geocode a raw address string using the Census Geocoder API.

        Returns an Address with normalized fields and lat/lon. Raises
        InvalidQuery when the address cannot be matched and
        SourceUnavailable when the geocoder itself fails.
        """
        params = {
            "address": raw_address,
            "benchmark": "Public_AR_Current",
            "format": "json",
        }
        data = await get_json(self.client, self.name, CENSUS_GEOCODER_URL, params=params)

        matches = (data.get("result") or {}).get("addressMatches") if isinstance(data, dict) else None
        if not matches:
            raise InvalidQuery(["latitude", "longitude"], f"Could not geocode address: {raw_address}")

        match = matches[0]
        coords = match.get("coordinates") or {}
        components = match.get("addressComponents") or {}
        latitude = opt_float(coords.get("y"))
        longitude = opt_float(coords.get("x"))
        if latitude is None or longitude is None:
            raise SourceUnavailable(self.name, "match without coordinates")

        matched = opt_str(match.get("matchedAddress")) or raw_address
        logger.debug("Geocoded %r -> %s (%.5f, %.5f)", raw_address, matched, latitude, longitude)
        return Address(
            street=matched.split(",")[0].strip(),
            city=opt_str(components.get("city")) or "",
            state=opt_str(components.get("state")) or "",
            zip_code=opt_str(components.get("zip")) or "",
            latitude=latitude,
            longitude=longitude,
        )
