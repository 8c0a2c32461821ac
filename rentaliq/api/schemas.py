"""Pydantic schemas for API request/response models."""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from rentaliq.models.cma import AreaRentAnalysis, CMAReport, ComparableSale, ValuationResult
from rentaliq.models.neighborhood import CrimeProfile
from rentaliq.models.property import (
    Address,
    CanonicalProperty,
    ListingKind,
    PropertyType,
    SearchQuery,
    SubjectProperty,
)
from rentaliq.models.search import SearchResult
from rentaliq.models.section8 import Section8Eligibility, Section8Profile


# ---- Request schemas ----

class SearchRequest(BaseModel):
    city: str = ""
    state: str = ""
    zip_code: str = ""
    kind: ListingKind = ListingKind.FOR_SALE
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    min_bedrooms: int | None = Field(None, ge=0)
    max_bedrooms: int | None = Field(None, ge=0)
    property_type: PropertyType | None = None
    sources: list[str] = Field(default_factory=list, description="Source names; empty means all enabled")

    @field_validator("property_type", mode="before")
    @classmethod
    def _known_property_type(cls, v):
        # Accepts upstream spellings ('Single Family', 'townhome'); unknown names are rejected
        if v is None or isinstance(v, PropertyType):
            return v
        resolved = PropertyType.from_string(str(v))
        if resolved is None:
            raise ValueError(f"unknown property_type: {v!r}")
        return resolved

    def to_query(self) -> SearchQuery:
        return SearchQuery(
            city=self.city.strip(),
            state=self.state.strip().upper(),
            zip_code=self.zip_code.strip(),
            kind=self.kind,
            min_price=self.min_price,
            max_price=self.max_price,
            min_bedrooms=self.min_bedrooms,
            max_bedrooms=self.max_bedrooms,
            property_type=self.property_type,
            sources=tuple(self.sources),
        )


class SubjectRequest(BaseModel):
    street: str = Field(..., description="Street line, e.g. '123 Main St'")
    unit: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    latitude: float | None = None
    longitude: float | None = None
    bedrooms: int = Field(..., ge=0)
    bathrooms: Decimal = Field(..., ge=0)
    sqft: int = Field(..., gt=0)
    property_type: PropertyType = PropertyType.SINGLE_FAMILY
    year_built: int | None = None
    subject_id: str = ""

    def to_subject(self) -> SubjectProperty:
        return SubjectProperty(
            address=Address(
                street=self.street,
                unit=self.unit,
                city=self.city,
                state=self.state,
                zip_code=self.zip_code,
                latitude=self.latitude,
                longitude=self.longitude,
            ),
            bedrooms=self.bedrooms,
            bathrooms=self.bathrooms,
            sqft=self.sqft,
            property_type=self.property_type,
            year_built=self.year_built,
            subject_id=self.subject_id,
        )


class BatchCMARequest(BaseModel):
    subjects: list[SubjectRequest] = Field(..., min_length=1, max_length=25)


# ---- Response schemas ----

class FieldSourceResponse(BaseModel):
    field: str
    source: str


class PropertyResponse(BaseModel):
    canonical_id: str
    address: str
    latitude: float | None = None
    longitude: float | None = None
    status: str
    price: Decimal | None = None
    event_date: date | None = None
    property_type: str | None = None
    bedrooms: int | None = None
    bathrooms: Decimal | None = None
    sqft: int | None = None
    sources: list[str]
    source_refs: list[str]
    provenance: list[FieldSourceResponse]
    image_urls: list[str]

    @classmethod
    def from_property(cls, prop: CanonicalProperty) -> "PropertyResponse":
        return cls(
            canonical_id=prop.canonical_id,
            address=prop.address.full,
            latitude=prop.latitude,
            longitude=prop.longitude,
            status=prop.status.value,
            price=prop.price,
            event_date=prop.event_date,
            property_type=prop.property_type.value if prop.property_type else None,
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
            sqft=prop.sqft,
            sources=prop.sources,
            source_refs=sorted(str(ref) for ref in prop.source_refs),
            provenance=[
                FieldSourceResponse(field=name, source=str(resolved.source))
                for name, resolved in sorted(prop.fields.items())
            ],
            image_urls=list(prop.image_urls),
        )


class SourceFailureResponse(BaseModel):
    source: str
    kind: str
    detail: str


class SearchResponse(BaseModel):
    count: int
    properties: list[PropertyResponse]
    degraded_sources: list[SourceFailureResponse]

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResponse":
        return cls(
            count=len(result.properties),
            properties=[PropertyResponse.from_property(p) for p in result.properties],
            degraded_sources=[
                SourceFailureResponse(source=f.source, kind=f.kind.value, detail=f.detail)
                for f in result.failures
            ],
        )


class ComparableResponse(BaseModel):
    canonical_id: str
    address: str
    price: Decimal
    event_date: date
    bedrooms: int
    bathrooms: Decimal
    sqft: int
    distance_miles: float
    price_per_sqft: Decimal
    composite_score: float
    weight: float
    sources: list[str]

    @classmethod
    def from_comparable(cls, comp: ComparableSale, weight: float) -> "ComparableResponse":
        return cls(
            canonical_id=comp.canonical_id,
            address=comp.address,
            price=comp.price,
            event_date=comp.event_date,
            bedrooms=comp.bedrooms,
            bathrooms=comp.bathrooms,
            sqft=comp.sqft,
            distance_miles=comp.distance_miles,
            price_per_sqft=comp.price_per_sqft,
            composite_score=comp.composite_score,
            weight=weight,
            sources=list(comp.sources),
        )


class ValuationResponse(BaseModel):
    estimate: Decimal
    value_low: Decimal
    value_high: Decimal
    confidence: float
    confidence_label: str
    price_per_sqft: Decimal
    source: str
    comparables: list[ComparableResponse]

    @classmethod
    def from_result(cls, result: ValuationResult) -> "ValuationResponse":
        return cls(
            estimate=result.estimate,
            value_low=result.value_low,
            value_high=result.value_high,
            confidence=result.confidence,
            confidence_label=result.confidence_label,
            price_per_sqft=result.price_per_sqft,
            source=result.source,
            comparables=[
                ComparableResponse.from_comparable(c, w)
                for c, w in zip(result.comparables, result.weights)
            ],
        )


class MarketTrendsResponse(BaseModel):
    change_3m: float | None = None
    change_6m: float | None = None
    change_12m: float | None = None


class CrimeIncidentResponse(BaseModel):
    type: str
    occurred_on: date | None = None
    description: str
    severity: str


class CrimeResponse(BaseModel):
    score: int
    label: str | None = None
    total_incidents: int
    change_3m: float
    change_6m: float
    change_12m: float
    incidents: list[CrimeIncidentResponse]

    @classmethod
    def from_profile(cls, profile: CrimeProfile, label: str | None) -> "CrimeResponse":
        return cls(
            score=profile.score,
            label=label,
            total_incidents=profile.total_incidents,
            change_3m=profile.trends.change_3m,
            change_6m=profile.trends.change_6m,
            change_12m=profile.trends.change_12m,
            incidents=[
                CrimeIncidentResponse(
                    type=i.type, occurred_on=i.date, description=i.description, severity=i.severity.value
                )
                for i in profile.incidents
            ],
        )


class Section8Response(BaseModel):
    zip_code: str
    area_name: str
    year: int
    bedrooms: int
    fmr_for_bedrooms: Decimal
    fmr_0br: Decimal
    fmr_1br: Decimal
    fmr_2br: Decimal
    fmr_3br: Decimal
    fmr_4br: Decimal
    eligibility: Section8Eligibility | None = None

    @classmethod
    def from_profile(cls, profile: Section8Profile, rent: Decimal | None = None) -> "Section8Response":
        return cls(
            **profile.model_dump(),
            fmr_for_bedrooms=profile.fmr_for_bedrooms,
            eligibility=profile.eligibility(rent) if rent is not None else None,
        )


class CMAResponse(BaseModel):
    subject_id: str
    state: str
    estimated_value: Decimal
    valuation: ValuationResponse
    estimated_rent: Decimal | None = None
    rent: ValuationResponse | None = None
    market_trends: MarketTrendsResponse
    crime: CrimeResponse | None = None
    section8: Section8Response | None = None
    recommendation: str
    recommendation_lines: list[str]
    degraded_sources: list[str]

    @classmethod
    def from_report(cls, report: CMAReport) -> "CMAResponse":
        rec = report.recommendation
        trends = report.market_trends
        return cls(
            subject_id=report.subject_id,
            state=report.state.value,
            estimated_value=report.estimated_value,
            valuation=ValuationResponse.from_result(report.valuation),
            estimated_rent=report.estimated_rent,
            rent=ValuationResponse.from_result(report.rent) if report.rent is not None else None,
            market_trends=MarketTrendsResponse(
                change_3m=trends.change_3m, change_6m=trends.change_6m, change_12m=trends.change_12m
            ),
            crime=CrimeResponse.from_profile(report.crime, rec.crime_label) if report.crime else None,
            section8=(
                Section8Response.from_profile(report.section8, report.estimated_rent)
                if report.section8 else None
            ),
            recommendation=rec.headline,
            recommendation_lines=rec.lines,
            degraded_sources=report.degraded_sources,
        )


class BatchItemResponse(BaseModel):
    subject_id: str
    status: str  # "ok" | "insufficient_data" | "invalid" | "error"
    report: CMAResponse | None = None
    error: str | None = None
    degraded_sources: list[str] = Field(default_factory=list)


class BatchCMAResponse(BaseModel):
    results: list[BatchItemResponse]



class AreaRentResponse(BaseModel):
    bedrooms: int | None = None
    sample_size: int
    average_rent: Decimal | None = None
    median_rent: Decimal | None = None
    rent_low: Decimal | None = None
    rent_high: Decimal | None = None
    sources: list[str]
    degraded_sources: list[str]

    @classmethod
    def from_analysis(cls, analysis: AreaRentAnalysis) -> "AreaRentResponse":
        return cls(
            bedrooms=analysis.bedrooms,
            sample_size=analysis.sample_size,
            average_rent=analysis.average_rent,
            median_rent=analysis.median_rent,
            rent_low=analysis.rent_low,
            rent_high=analysis.rent_high,
            sources=analysis.sources,
            degraded_sources=analysis.degraded_sources,
        )
