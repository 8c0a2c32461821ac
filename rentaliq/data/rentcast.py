"""RentCast API client for sale listings, rental listings and recent sales."""

import logging
from typing import Any, Optional

import httpx

from rentaliq.config import settings
from rentaliq.data.http import get_json
from rentaliq.data.parsing import (
    opt_date,
    opt_float,
    opt_int,
    opt_positive_decimal,
    opt_positive_int,
    opt_str,
)
from rentaliq.errors import SourceUnavailable
from rentaliq.models.property import (
    Address,
    ListingKind,
    ListingStatus,
    PropertyType,
    RawListing,
    SearchQuery,
)

logger = logging.getLogger(__name__)

RENTCAST_BASE_URL = "https://api.rentcast.io/v1"
PAGE_LIMIT = 500

# Sold records come from the property records endpoint (last sale fields)
ENDPOINTS = {
    ListingKind.FOR_SALE: "/listings/sale",
    ListingKind.SOLD: "/properties",
    ListingKind.FOR_RENT: "/listings/rental/long-term",
}

PROPERTY_TYPES = {
    PropertyType.SINGLE_FAMILY: "Single Family",
    PropertyType.CONDO: "Condo",
    PropertyType.TOWNHOUSE: "Townhouse",
    PropertyType.MANUFACTURED: "Manufactured",
    PropertyType.MULTI_FAMILY: "Multi-Family",
    PropertyType.APARTMENT: "Apartment",
    PropertyType.LAND: "Land",
}


class RentCastSource:
    name = "rentcast"

    def __init__(self, client: httpx.AsyncClient, api_key: str | None = None):
        self.client = client
        self.api_key = api_key if api_key is not None else settings.rentcast_api_key
        self.headers = {"X-Api-Key": self.api_key, "Accept": "application/json"}

    def _params(self, query: SearchQuery) -> dict:
        params: dict[str, Any] = {"limit": PAGE_LIMIT}
        if query.zip_code:
            params["zipCode"] = query.zip_code
        else:
            params["city"] = query.city
            params["state"] = query.state
        if query.kind != ListingKind.SOLD:
            params["status"] = "Active"
        if query.min_bedrooms is not None and query.min_bedrooms == query.max_bedrooms:
            params["bedrooms"] = query.min_bedrooms
        if query.property_type in PROPERTY_TYPES:
            params["propertyType"] = PROPERTY_TYPES[query.property_type]
        return params

    async def fetch(self, query: SearchQuery) -> list[RawListing]:
        if not self.api_key:
            raise SourceUnavailable(self.name, "API key not configured")

        data = await get_json(
            self.client, self.name, f"{RENTCAST_BASE_URL}{ENDPOINTS[query.kind]}",
            params=self._params(query), headers=self.headers,
        )
        # RentCast returns a bare list
        if not isinstance(data, list):
            raise SourceUnavailable(self.name, "expected a list of records")

        parse = self._parse_sale_record if query.kind == ListingKind.SOLD else self._parse_listing
        status = ListingStatus.FOR_RENT if query.kind == ListingKind.FOR_RENT else ListingStatus.ACTIVE
        listings = [p for p in (parse(raw, status) for raw in data) if p is not None]
        logger.info("RentCast: %d/%d records for %s (%s)", len(listings), len(data), query.location, query.kind.value)
        return listings

    @staticmethod
    def _address(raw: dict) -> Address:
        return Address(
            street=opt_str(raw.get("addressLine1")) or "",
            unit=opt_str(raw.get("addressLine2")) or "",
            city=opt_str(raw.get("city")) or "",
            state=opt_str(raw.get("state")) or "",
            zip_code=opt_str(raw.get("zipCode")) or "",
            latitude=opt_float(raw.get("latitude")),
            longitude=opt_float(raw.get("longitude")),
        )

    def _build(self, raw: dict, price, status, event_date) -> RawListing:
        return RawListing(
            source=self.name,
            external_id=opt_str(raw.get("id")),
            address=self._address(raw),
            price=price,
            status=status,
            event_date=event_date,
            property_type=PropertyType.from_string(opt_str(raw.get("propertyType"))),
            bedrooms=opt_int(raw.get("bedrooms")),
            bathrooms=opt_positive_decimal(raw.get("bathrooms")),
            sqft=opt_positive_int(raw.get("squareFootage")),
            lot_sqft=opt_positive_int(raw.get("lotSize")),
            year_built=opt_positive_int(raw.get("yearBuilt")),
        )

    def _parse_listing(self, raw: Any, status: ListingStatus) -> Optional[RawListing]:
        if not isinstance(raw, dict):
            return None
        price = opt_positive_decimal(raw.get("price"))
        if opt_str(raw.get("id")) is None or price is None:
            logger.debug("RentCast: dropping listing without id/price: %s", raw.get("id"))
            return None
        return self._build(raw, price, status, opt_date(raw.get("listedDate")))

    def _parse_sale_record(self, raw: Any, status: ListingStatus) -> Optional[RawListing]:
        if not isinstance(raw, dict):
            return None
        price = opt_positive_decimal(raw.get("lastSalePrice"))
        if opt_str(raw.get("id")) is None or price is None:
            logger.debug("RentCast: dropping property without id/lastSalePrice: %s", raw.get("id"))
            return None
        return self._build(raw, price, ListingStatus.SOLD, opt_date(raw.get("lastSaleDate")))
