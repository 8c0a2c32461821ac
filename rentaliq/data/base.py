"""Protocol definitions for data sources.

Each protocol defines the interface that concrete data source implementations must satisfy.
"""

from typing import Protocol, runtime_checkable

from rentaliq.models.neighborhood import CrimeProfile
from rentaliq.models.property import Address, RawListing, SearchQuery
from rentaliq.models.section8 import Section8Profile


@runtime_checkable
class ListingSource(Protocol):
    name: str

    async def fetch(self, query: SearchQuery) -> list[RawListing]:
        """Fetch raw listings matching a query.

        Raises SourceUnavailable (or RateLimited) instead of returning partial
        garbage; the aggregator turns those into degraded-source entries.
        """
        ...


@runtime_checkable
class GeocodeSource(Protocol):
    async def geocode(self, raw_address: str) -> Address:
        """Normalize and geocode an address string."""
        ...


@runtime_checkable
class CrimeSource(Protocol):
    async def get_crime_profile(self, latitude: float, longitude: float) -> CrimeProfile:
        """Incidents, score and trends around a point."""
        ...


@runtime_checkable
class FairMarketRentSource(Protocol):
    async def get_fmr(self, zip_code: str, bedrooms: int = 3) -> Section8Profile | None:
        """HUD Fair Market Rent schedule for a ZIP code."""
        ...
