"""Shared fixtures for engine, data and API tests.

Fixture: subject at 100 Main St, Columbus, OH 43215; 3bd/2ba, 1,500 sqft,
single family. Comparables are placed due north of the subject so their
haversine distance equals the requested miles. Every test runs "as of"
2025-06-01.
"""

import asyncio
import math
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from rentaliq.engine.dedup import build_canonical
from rentaliq.models.property import (
    Address,
    ListingStatus,
    PropertyType,
    RawListing,
    SubjectProperty,
)
from rentaliq.models.section8 import Section8Profile

AS_OF = date(2025, 6, 1)
SUBJECT_LAT = 39.9612
SUBJECT_LON = -82.9988
MILES_PER_DEGREE_LAT = 3959.0 * math.pi / 180
FETCHED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeSource:
    """In-memory ListingSource: fixed listings per listing kind, optional delay/error."""

    def __init__(self, name, listings=None, by_kind=None, error=None, delay=0.0):
        self.name = name
        self.listings = list(listings or [])
        self.by_kind = by_kind or {}
        self.error = error
        self.delay = delay
        self.calls = []
        self.cancelled = False

    async def fetch(self, query):
        self.calls.append(query)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error is not None:
            raise self.error
        if query.kind in self.by_kind:
            return list(self.by_kind[query.kind])
        return list(self.listings)


@pytest.fixture
def as_of() -> date:
    return AS_OF


@pytest.fixture
def subject() -> SubjectProperty:
    return SubjectProperty(
        address=Address(
            street="100 Main St",
            city="Columbus",
            state="OH",
            zip_code="43215",
            latitude=SUBJECT_LAT,
            longitude=SUBJECT_LON,
        ),
        bedrooms=3,
        bathrooms=Decimal("2"),
        sqft=1500,
        property_type=PropertyType.SINGLE_FAMILY,
        subject_id="subject-1",
    )


@pytest.fixture
def section8() -> Section8Profile:
    return Section8Profile(
        zip_code="43215",
        area_name="Columbus, OH HUD Metro FMR Area",
        year=2025,
        fmr_0br=Decimal("1000"),
        fmr_1br=Decimal("1100"),
        fmr_2br=Decimal("1300"),
        fmr_3br=Decimal("1700"),
        fmr_4br=Decimal("1900"),
    )


@pytest.fixture
def make_listing():
    """Factory for RawListings placed `miles` north of the subject, `days_ago` before AS_OF.

    Without an explicit street, `external_id` must be numeric; it picks the house number.
    """

    def _make(
        external_id="1",
        source="zillow",
        street=None,
        unit="",
        zip_code="43215",
        price=300000,
        status=ListingStatus.SOLD,
        miles=0.3,
        days_ago=30,
        bedrooms=3,
        bathrooms="2",
        sqft=1500,
        property_type=PropertyType.SINGLE_FAMILY,
        image_urls=(),
        fetched_at=FETCHED_AT,
        with_coordinates=True,
    ) -> RawListing:
        return RawListing(
            source=source,
            external_id=str(external_id),
            address=Address(
                street=street or f"{1000 + int(external_id)} Oak Ave",
                unit=unit,
                city="Columbus",
                state="OH",
                zip_code=zip_code,
                latitude=SUBJECT_LAT + miles / MILES_PER_DEGREE_LAT if with_coordinates else None,
                longitude=SUBJECT_LON if with_coordinates else None,
            ),
            price=Decimal(str(price)) if price is not None else None,
            status=status,
            event_date=AS_OF - timedelta(days=days_ago) if days_ago is not None else None,
            property_type=property_type,
            bedrooms=bedrooms,
            bathrooms=Decimal(bathrooms) if bathrooms is not None else None,
            sqft=sqft,
            image_urls=tuple(image_urls),
            fetched_at=fetched_at,
        )

    return _make


@pytest.fixture
def make_property(make_listing):
    """Factory for single-record CanonicalProperties (same arguments as make_listing)."""

    def _make(**kwargs):
        return build_canonical([make_listing(**kwargs)])

    return _make


@pytest.fixture
def fake_source():
    return FakeSource
