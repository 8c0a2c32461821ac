"""Realtor.com listings via the RapidAPI list endpoints."""

import logging
from typing import Any, Optional

import httpx

from rentaliq.config import settings
from rentaliq.data.http import get_json
from rentaliq.data.parsing import (
    dig,
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

REALTOR_HOST = "realtor.p.rapidapi.com"
REALTOR_BASE_URL = f"https://{REALTOR_HOST}/properties/v2"
PAGE_LIMIT = 50

ENDPOINTS = {
    ListingKind.FOR_SALE: "/list-for-sale",
    ListingKind.SOLD: "/list-sold",
    ListingKind.FOR_RENT: "/list-for-rent",
}

KIND_STATUS = {
    ListingKind.FOR_SALE: ListingStatus.ACTIVE,
    ListingKind.SOLD: ListingStatus.SOLD,
    ListingKind.FOR_RENT: ListingStatus.FOR_RENT,
}

PROP_TYPES = {
    PropertyType.SINGLE_FAMILY: "single_family",
    PropertyType.MULTI_FAMILY: "multi_family",
    PropertyType.CONDO: "condo",
    PropertyType.TOWNHOUSE: "townhouse",
    PropertyType.MANUFACTURED: "mobile",
    PropertyType.LAND: "land",
}


class RealtorSource:
    name = "realtor"

    def __init__(self, client: httpx.AsyncClient, api_key: str | None = None):
        self.client = client
        self.api_key = api_key if api_key is not None else settings.realtor_api_key
        self.headers = {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": REALTOR_HOST}

    def _params(self, query: SearchQuery) -> dict:
        params: dict[str, Any] = {"limit": PAGE_LIMIT, "offset": 0}
        if query.zip_code:
            params["postal_code"] = query.zip_code
        else:
            params["city"] = query.city
            params["state_code"] = query.state
        if query.min_price is not None:
            params["price_min"] = str(query.min_price)
        if query.max_price is not None:
            params["price_max"] = str(query.max_price)
        if query.min_bedrooms is not None:
            params["beds_min"] = query.min_bedrooms
        if query.property_type in PROP_TYPES:
            params["prop_type"] = PROP_TYPES[query.property_type]
        return params

    async def fetch(self, query: SearchQuery) -> list[RawListing]:
        if not self.api_key:
            raise SourceUnavailable(self.name, "API key not configured")

        data = await get_json(
            self.client, self.name, f"{REALTOR_BASE_URL}{ENDPOINTS[query.kind]}",
            params=self._params(query), headers=self.headers,
        )
        props = data.get("properties") if isinstance(data, dict) else None
        if not isinstance(props, list):
            raise SourceUnavailable(self.name, "response has no 'properties' list")

        listings = [p for p in (self._parse(raw, query.kind) for raw in props) if p is not None]
        logger.info("Realtor: %d/%d listings for %s (%s)", len(listings), len(props), query.location, query.kind.value)
        return listings

    def _parse(self, raw: Any, kind: ListingKind) -> Optional[RawListing]:
        if not isinstance(raw, dict):
            return None
        property_id = opt_str(raw.get("property_id"))
        price = opt_positive_decimal(raw.get("price"))
        if property_id is None or price is None:
            logger.debug("Realtor: dropping record without property_id/price: %s", raw.get("property_id"))
            return None

        addr = raw.get("address") if isinstance(raw.get("address"), dict) else {}
        if kind == ListingKind.SOLD:
            event_date = opt_date(raw.get("sold_date") or raw.get("last_sold_date"))
        else:
            event_date = opt_date(raw.get("list_date"))

        photos = raw.get("photos") if isinstance(raw.get("photos"), list) else []
        images = tuple(
            href for href in (opt_str(dig(p, "href")) for p in photos) if href
        )

        return RawListing(
            source=self.name,
            external_id=property_id,
            address=Address(
                street=opt_str(addr.get("line")) or "",
                unit=opt_str(addr.get("unit_value")) or "",
                city=opt_str(addr.get("city")) or "",
                state=opt_str(addr.get("state_code")) or "",
                zip_code=opt_str(addr.get("postal_code")) or "",
                latitude=opt_float(addr.get("lat")),
                longitude=opt_float(addr.get("lon")),
            ),
            price=price,
            status=KIND_STATUS[kind],
            event_date=event_date,
            property_type=PropertyType.from_string(opt_str(raw.get("prop_type"))),
            bedrooms=opt_int(raw.get("beds")),
            bathrooms=opt_positive_decimal(raw.get("baths")),
            sqft=opt_positive_int(dig(raw, "building_size", "size")),
            lot_sqft=opt_positive_int(dig(raw, "lot_size", "size")),
            year_built=opt_positive_int(raw.get("year_built")),
            image_urls=images,
            source_url=opt_str(raw.get("rdc_web_url")),
        )
