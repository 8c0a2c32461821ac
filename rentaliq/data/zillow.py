"""Zillow listings via the RapidAPI extended search endpoint."""

import logging
from datetime import date, timedelta
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
    split_address_line,
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

ZILLOW_HOST = "zillow-com1.p.rapidapi.com"
ZILLOW_SEARCH_URL = f"https://{ZILLOW_HOST}/propertyExtendedSearch"

# A full page carries ~41 results; anything shorter is the last page
FULL_PAGE_MIN = 40

STATUS_TYPES = {
    ListingKind.FOR_SALE: "ForSale",
    ListingKind.SOLD: "RecentlySold",
    ListingKind.FOR_RENT: "ForRent",
}

KIND_STATUS = {
    ListingKind.FOR_SALE: ListingStatus.ACTIVE,
    ListingKind.SOLD: ListingStatus.SOLD,
    ListingKind.FOR_RENT: ListingStatus.FOR_RENT,
}

HOME_TYPES = {
    PropertyType.SINGLE_FAMILY: "Houses",
    PropertyType.TOWNHOUSE: "Townhomes",
    PropertyType.MULTI_FAMILY: "Multi-family",
    PropertyType.CONDO: "Condos",
    PropertyType.APARTMENT: "Apartments",
    PropertyType.MANUFACTURED: "Manufactured",
    PropertyType.LAND: "LotsLand",
}


class ZillowSource:
    name = "zillow"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None = None,
        max_pages: int | None = None,
    ):
        self.client = client
        self.api_key = api_key if api_key is not None else settings.zillow_api_key
        self.max_pages = max_pages or settings.zillow_max_pages
        self.headers = {"X-RapidAPI-Key": self.api_key, "X-RapidAPI-Host": ZILLOW_HOST}

    def _params(self, query: SearchQuery, page: int) -> dict:
        params: dict[str, Any] = {
            "location": query.location,
            "status_type": STATUS_TYPES[query.kind],
            "page": page,
        }
        if query.min_price is not None:
            params["price_min" if query.kind != ListingKind.FOR_RENT else "rentMinPrice"] = str(query.min_price)
        if query.max_price is not None:
            params["price_max" if query.kind != ListingKind.FOR_RENT else "rentMaxPrice"] = str(query.max_price)
        if query.min_bedrooms is not None:
            params["bedsMin"] = query.min_bedrooms
        if query.max_bedrooms is not None:
            params["bedsMax"] = query.max_bedrooms
        if query.property_type in HOME_TYPES:
            params["home_type"] = HOME_TYPES[query.property_type]
        return params

    async def fetch(self, query: SearchQuery) -> list[RawListing]:
        """Fetch up to `max_pages` pages, stopping early on a short page.

        A failure on the first page fails the source; a failure on a later
        page ends pagination with the pages already fetched.
        """
        if not self.api_key:
            raise SourceUnavailable(self.name, "API key not configured")

        listings: list[RawListing] = []
        for page in range(1, self.max_pages + 1):
            try:
                data = await get_json(
                    self.client, self.name, ZILLOW_SEARCH_URL,
                    params=self._params(query, page), headers=self.headers,
                )
            except SourceUnavailable as e:
                if page == 1:
                    raise
                logger.warning("Zillow page %d failed, keeping %d listings: %s", page, len(listings), e)
                break

            props = data.get("props") if isinstance(data, dict) else None
            if not isinstance(props, list):
                if page == 1:
                    raise SourceUnavailable(self.name, "response has no 'props' list")
                break

            parsed = [p for p in (self._parse(raw, query.kind) for raw in props) if p is not None]
            listings.extend(parsed)
            logger.debug("Zillow page %d: %d/%d listings parsed", page, len(parsed), len(props))

            if len(props) < FULL_PAGE_MIN:
                break

        logger.info("Zillow: %d listings for %s (%s)", len(listings), query.location, query.kind.value)
        return listings

    def _parse(self, raw: Any, kind: ListingKind) -> Optional[RawListing]:
        if not isinstance(raw, dict):
            return None
        zpid = opt_str(raw.get("zpid"))
        price = opt_positive_decimal(raw.get("price"))
        if zpid is None or price is None:
            logger.debug("Zillow: dropping record without zpid/price: %s", raw.get("zpid"))
            return None

        # Address comes either as an object or as "123 Main, City, ST 12345"
        addr = raw.get("address")
        if isinstance(addr, dict):
            street = opt_str(addr.get("streetAddress")) or ""
            city = opt_str(addr.get("city")) or ""
            state = opt_str(addr.get("state")) or ""
            zip_code = opt_str(addr.get("zipcode")) or ""
        elif isinstance(addr, str):
            street, city, state, zip_code = split_address_line(addr)
        else:
            logger.debug("Zillow: dropping %s without address", zpid)
            return None

        event_date = None
        if kind == ListingKind.SOLD:
            event_date = opt_date(raw.get("dateSold"))
        else:
            days = opt_int(raw.get("daysOnZillow"))
            if days is not None and days >= 0:
                event_date = date.today() - timedelta(days=days)

        image = opt_str(raw.get("imgSrc"))
        detail = opt_str(raw.get("detailUrl"))
        if detail and detail.startswith("/"):
            detail = f"https://www.zillow.com{detail}"

        return RawListing(
            source=self.name,
            external_id=zpid,
            address=Address(
                street=street,
                city=city,
                state=state,
                zip_code=zip_code,
                latitude=opt_float(raw.get("latitude")),
                longitude=opt_float(raw.get("longitude")),
            ),
            price=price,
            status=KIND_STATUS[kind],
            event_date=event_date,
            property_type=PropertyType.from_string(opt_str(raw.get("propertyType"))),
            bedrooms=opt_int(raw.get("bedrooms")),
            bathrooms=opt_positive_decimal(raw.get("bathrooms")),
            sqft=opt_positive_int(raw.get("livingArea")),
            lot_sqft=opt_positive_int(raw.get("lotAreaValue")),
            year_built=opt_positive_int(raw.get("yearBuilt")),
            image_urls=(image,) if image else (),
            source_url=detail,
        )
