from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class PropertyType(Enum):
    SINGLE_FAMILY = "single_family"
    MULTI_FAMILY = "multi_family"
    CONDO = "condo"
    TOWNHOUSE = "townhouse"
    APARTMENT = "apartment"
    MANUFACTURED = "manufactured"
    LAND = "land"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: Optional[str]) -> Optional["PropertyType"]:
        """Map the many upstream spellings onto our enum. None if unrecognized."""
        if not value:
            return None
        key = value.strip().lower().replace("-", "_").replace(" ", "_")
        return _PROPERTY_TYPE_ALIASES.get(key)


_PROPERTY_TYPE_ALIASES: dict[str, PropertyType] = {
    "single_family": PropertyType.SINGLE_FAMILY,
    "singlefamily": PropertyType.SINGLE_FAMILY,
    "single_family_residence": PropertyType.SINGLE_FAMILY,
    "sfr": PropertyType.SINGLE_FAMILY,
    "house": PropertyType.SINGLE_FAMILY,
    "multi_family": PropertyType.MULTI_FAMILY,
    "multifamily": PropertyType.MULTI_FAMILY,
    "multi_family_home": PropertyType.MULTI_FAMILY,
    "duplex_triplex": PropertyType.MULTI_FAMILY,
    "condo": PropertyType.CONDO,
    "condos": PropertyType.CONDO,
    "condominium": PropertyType.CONDO,
    "condo_townhome_rowhome_coop": PropertyType.CONDO,
    "townhouse": PropertyType.TOWNHOUSE,
    "townhome": PropertyType.TOWNHOUSE,
    "townhomes": PropertyType.TOWNHOUSE,
    "apartment": PropertyType.APARTMENT,
    "apartments": PropertyType.APARTMENT,
    "manufactured": PropertyType.MANUFACTURED,
    "mobile": PropertyType.MANUFACTURED,
    "mobile_home": PropertyType.MANUFACTURED,
    "land": PropertyType.LAND,
    "lot": PropertyType.LAND,
    "lots_land": PropertyType.LAND,
}


class ListingStatus(Enum):
    ACTIVE = "active"  # for sale
    PENDING = "pending"
    SOLD = "sold"
    FOR_RENT = "for_rent"
    RENTED = "rented"
    UNKNOWN = "unknown"


class ListingKind(Enum):
    """What a search asks the upstream sources for."""
    FOR_SALE = "for_sale"
    SOLD = "sold"
    FOR_RENT = "for_rent"


@dataclass(frozen=True)
class Address:
    street: str
    city: str = ""
    state: str = ""
    zip_code: str = ""
    unit: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def full(self) -> str:
        street = f"{self.street} {self.unit}".strip() if self.unit else self.street
        return f"{street}, {self.city}, {self.state} {self.zip_code}".strip()

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True, order=True)
class SourceRef:
    source: str
    external_id: str

    def __str__(self) -> str:
        return f"{self.source}:{self.external_id}"


@dataclass(frozen=True)
class RawListing:
    source: str
    external_id: str
    address: Address
    price: Optional[Decimal] = None  # sale price, or monthly rent for rentals
    status: ListingStatus = ListingStatus.UNKNOWN
    event_date: Optional[date] = None  # sold date for sales, listed date otherwise
    property_type: Optional[PropertyType] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[Decimal] = None
    sqft: Optional[int] = None
    lot_sqft: Optional[int] = None
    year_built: Optional[int] = None
    image_urls: tuple[str, ...] = ()
    source_url: Optional[str] = None
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ref(self) -> SourceRef:
        return SourceRef(self.source, self.external_id)


@dataclass(frozen=True)
class ResolvedField:
    value: Any
    source: SourceRef


@dataclass(frozen=True)
class CanonicalProperty:
    """One physical property merged from one or more RawListings.

    `records` keeps every contributing listing so the merge can be re-run on
    its own output and produce the same result.
    """
    canonical_id: str
    source_refs: frozenset[SourceRef]
    records: tuple[RawListing, ...]
    normalized_address: str
    fields: dict[str, ResolvedField] = field(default_factory=dict)
    image_urls: tuple[str, ...] = ()

    def get(self, name: str) -> Any:
        resolved = self.fields.get(name)
        return resolved.value if resolved is not None else None

    def provenance(self, name: str) -> Optional[SourceRef]:
        resolved = self.fields.get(name)
        return resolved.source if resolved is not None else None

    @property
    def address(self) -> Address:
        return Address(
            street=self.get("street") or "",
            city=self.get("city") or "",
            state=self.get("state") or "",
            zip_code=self.get("zip_code") or "",
            unit=self.get("unit") or "",
            latitude=self.get("latitude"),
            longitude=self.get("longitude"),
        )

    @property
    def status(self) -> ListingStatus:
        return self.get("status") or ListingStatus.UNKNOWN

    @property
    def price(self) -> Optional[Decimal]:
        return self.get("price")

    @property
    def event_date(self) -> Optional[date]:
        return self.get("event_date")

    @property
    def property_type(self) -> Optional[PropertyType]:
        return self.get("property_type")

    @property
    def bedrooms(self) -> Optional[int]:
        return self.get("bedrooms")

    @property
    def bathrooms(self) -> Optional[Decimal]:
        return self.get("bathrooms")

    @property
    def sqft(self) -> Optional[int]:
        return self.get("sqft")

    @property
    def year_built(self) -> Optional[int]:
        return self.get("year_built")

    @property
    def latitude(self) -> Optional[float]:
        return self.get("latitude")

    @property
    def longitude(self) -> Optional[float]:
        return self.get("longitude")

    @property
    def sources(self) -> list[str]:
        return sorted({ref.source for ref in self.source_refs})


@dataclass(frozen=True)
class SubjectProperty:
    address: Address
    bedrooms: int
    bathrooms: Decimal
    sqft: int
    property_type: PropertyType = PropertyType.SINGLE_FAMILY
    year_built: Optional[int] = None
    subject_id: str = ""
    source_refs: frozenset[SourceRef] = frozenset()

    @property
    def identifier(self) -> str:
        return self.subject_id or self.address.full


@dataclass(frozen=True)
class SearchQuery:
    city: str = ""
    state: str = ""
    zip_code: str = ""
    kind: ListingKind = ListingKind.FOR_SALE
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_bedrooms: Optional[int] = None
    max_bedrooms: Optional[int] = None
    property_type: Optional[PropertyType] = None
    sources: tuple[str, ...] = ()

    @property
    def location(self) -> str:
        """Upstream location string: ZIP when present, otherwise 'City, ST'."""
        if self.zip_code:
            return self.zip_code
        return f"{self.city}, {self.state}"

    def missing_fields(self) -> list[str]:
        if self.zip_code:
            return []
        missing = []
        if not self.city:
            missing.append("city")
        if not self.state:
            missing.append("state")
        return missing
