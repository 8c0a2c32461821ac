"""CMA orchestration: fetch comparable pools, select, value, add context.

Flow per subject (tracked by a CMARequest state machine):
  REQUESTED -> FETCHING_COMPARABLES   sold + rental searches run concurrently
            -> COMPUTING              value, rent, crime and FMR run concurrently
            -> COMPUTED
  or -> INSUFFICIENT_DATA when no sale comparable survives selection.

Source timeouts do not stop a CMA; they surface as degraded sources.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Iterable, Optional

from rentaliq.data.aggregator import PropertyAggregator
from rentaliq.data.base import CrimeSource, FairMarketRentSource, GeocodeSource
from rentaliq.engine.auxiliary import AuxiliaryScorer
from rentaliq.engine.comparables import ComparableSelector, SelectionConfig
from rentaliq.engine.rent import RentEstimator
from rentaliq.engine.trends import compute_market_trends
from rentaliq.engine.valuation import ValuationEngine
from rentaliq.errors import InsufficientComparables, InvalidQuery, RentalIQError, SourceUnavailable
from rentaliq.models.cma import CMAOutcome, CMAReport, CMARequest, CMAState, CompMode, ValuationResult
from rentaliq.models.neighborhood import CrimeProfile
from rentaliq.models.property import CanonicalProperty, ListingKind, SearchQuery, SubjectProperty
from rentaliq.models.search import SearchResult
from rentaliq.models.section8 import Section8Profile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparablePools:
    """Everything fetched for one subject before any computation."""
    subject: SubjectProperty
    sold: list[CanonicalProperty] = field(default_factory=list)
    rentals: list[CanonicalProperty] = field(default_factory=list)
    degraded_sources: list[str] = field(default_factory=list)


def _merge_degraded(*groups: Iterable[str]) -> list[str]:
    return sorted({name for group in groups for name in group})


class CMAService:
    def __init__(
        self,
        aggregator: PropertyAggregator,
        geocoder: Optional[GeocodeSource] = None,
        crime: Optional[CrimeSource] = None,
        fmr: Optional[FairMarketRentSource] = None,
        selector: Optional[ComparableSelector] = None,
        engine: Optional[ValuationEngine] = None,
        rent_estimator: Optional[RentEstimator] = None,
        scorer: Optional[AuxiliaryScorer] = None,
        as_of: Optional[date] = None,
    ):
        self.aggregator = aggregator
        self.geocoder = geocoder
        self.crime = crime
        self.fmr = fmr
        self.as_of = as_of or date.today()
        self.selector = selector or ComparableSelector(SelectionConfig.from_settings(), self.as_of)
        self.engine = engine or ValuationEngine()
        self.rent_estimator = rent_estimator or RentEstimator(self.selector, self.engine)
        self.scorer = scorer or AuxiliaryScorer()

    async def generate_cma(self, subject: SubjectProperty) -> CMAReport:
        """Full CMA for one subject.

        Raises InvalidQuery when the subject cannot be located or sized and
        InsufficientComparables when no sale comparable is found.
        """
        request = CMARequest(subject.identifier)
        pools = await self.fetch_pools(subject, request)
        return await self.compute(pools, request)

    async def generate_many(self, subjects: list[SubjectProperty]) -> list[CMAOutcome]:
        """CMAs for several subjects; one subject's failure never affects the others."""
        return list(await asyncio.gather(*(self._outcome(s) for s in subjects)))

    async def _outcome(self, subject: SubjectProperty) -> CMAOutcome:
        try:
            report = await self.generate_cma(subject)
        except RentalIQError as e:
            logger.warning("CMA failed for %s: %s", subject.identifier, e)
            return CMAOutcome(subject_id=subject.identifier, error=e)
        return CMAOutcome(subject_id=subject.identifier, report=report)

    # ── Fetching ───────────────────────────────────────────────────

    async def locate(self, subject: SubjectProperty) -> SubjectProperty:
        """Fill in coordinates (and missing address parts) via the geocoder."""
        if subject.address.has_coordinates:
            return subject
        if self.geocoder is None:
            raise InvalidQuery(["latitude", "longitude"], f"Cannot locate {subject.identifier}: no geocoder")

        try:
            located = await self.geocoder.geocode(subject.address.full)
        except SourceUnavailable as e:
            raise InvalidQuery(["latitude", "longitude"], f"Cannot locate {subject.identifier}: {e}") from e

        address = replace(
            subject.address,
            city=subject.address.city or located.city,
            state=subject.address.state or located.state,
            zip_code=subject.address.zip_code or located.zip_code,
            latitude=located.latitude,
            longitude=located.longitude,
        )
        return replace(subject, address=address)

    def _query(self, subject: SubjectProperty, kind: ListingKind) -> SearchQuery:
        # City-wide search when possible; the radius filter narrows it down
        addr = subject.address
        if addr.city and addr.state:
            return SearchQuery(city=addr.city, state=addr.state, kind=kind, property_type=subject.property_type)
        return SearchQuery(zip_code=addr.zip_code, kind=kind, property_type=subject.property_type)

    async def fetch_pools(self, subject: SubjectProperty, request: Optional[CMARequest] = None) -> ComparablePools:
        request = request or CMARequest(subject.identifier)
        if not subject.sqft or subject.sqft <= 0:
            raise InvalidQuery(["sqft"], f"Subject {subject.identifier} is missing sqft")
        subject = await self.locate(subject)

        request.advance(CMAState.FETCHING_COMPARABLES)
        sold_result, rent_result = await asyncio.gather(
            self.aggregator.search(self._query(subject, ListingKind.SOLD)),
            self.aggregator.search(self._query(subject, ListingKind.FOR_RENT)),
        )
        degraded = _merge_degraded(
            self._degraded(sold_result, "sold"), self._degraded(rent_result, "rental"),
        )
        return ComparablePools(
            subject=subject,
            sold=sold_result.properties,
            rentals=rent_result.properties,
            degraded_sources=degraded,
        )

    @staticmethod
    def _degraded(result: SearchResult, label: str) -> list[str]:
        if result.is_degraded:
            logger.warning("Degraded %s search: %s", label, ", ".join(result.degraded_sources))
        return result.degraded_sources

    # ── Computing ──────────────────────────────────────────────────

    async def compute(self, pools: ComparablePools, request: Optional[CMARequest] = None) -> CMAReport:
        """Select comparables and build the report from already-fetched pools."""
        subject = pools.subject
        if request is None:
            request = CMARequest(subject.identifier)
            request.advance(CMAState.FETCHING_COMPARABLES)

        try:
            selection = self.selector.select(subject, pools.sold, CompMode.SALE)
        except InsufficientComparables as e:
            request.advance(CMAState.INSUFFICIENT_DATA)
            if pools.degraded_sources:
                raise InsufficientComparables(
                    e.subject_id, e.mode, e.max_radius_miles, degraded_sources=pools.degraded_sources,
                ) from e
            raise

        request.advance(CMAState.COMPUTING)
        valuation, rent, crime, section8 = await asyncio.gather(
            asyncio.to_thread(self.engine.estimate, subject, selection.comparables, CompMode.SALE),
            asyncio.to_thread(self.rent_estimator.estimate, subject, pools.rentals),
            self._crime(subject),
            self._fmr(subject),
            return_exceptions=True,
        )
        if isinstance(valuation, BaseException):
            raise valuation

        degraded = list(pools.degraded_sources)
        crime = self._lookup_result(crime, "crime", subject, degraded)
        section8 = self._lookup_result(section8, "hud", subject, degraded)
        rent = self._rent_result(rent, subject, section8)

        trends = compute_market_trends(subject, pools.sold, self.as_of, self.selector.config.max_radius_miles)
        recommendation = self.scorer.recommend(valuation, trends, rent=rent, crime=crime, section8=section8)

        request.advance(CMAState.COMPUTED)
        logger.info(
            "CMA %s: value %s (confidence %.3f, %d comps at %.1f mi), rent %s",
            subject.identifier, valuation.estimate, valuation.confidence,
            valuation.comparable_count, selection.radius_miles,
            rent.estimate if rent is not None else "n/a",
        )
        return CMAReport(
            subject_id=request.subject_id,
            valuation=valuation,
            market_trends=trends,
            recommendation=recommendation,
            rent=rent,
            crime=crime,
            section8=section8,
            degraded_sources=_merge_degraded(degraded),
            state=request.state,
        )

    def _rent_result(
        self, rent, subject: SubjectProperty, section8: Optional[Section8Profile]
    ) -> Optional[ValuationResult]:
        if not isinstance(rent, BaseException):
            return rent
        if not isinstance(rent, InsufficientComparables):
            raise rent
        fallback = self.rent_estimator.fallback_estimate(subject, section8)
        if fallback is None:
            logger.info("No rent estimate for %s: %s", subject.identifier, rent)
        return fallback

    @staticmethod
    def _lookup_result(result, name: str, subject: SubjectProperty, degraded: list[str]):
        if not isinstance(result, BaseException):
            return result
        if not isinstance(result, Exception):
            raise result
        logger.warning("%s lookup failed for %s: %s", name, subject.identifier, result)
        degraded.append(name)
        return None

    async def _crime(self, subject: SubjectProperty) -> Optional[CrimeProfile]:
        if self.crime is None:
            return None
        return await self.crime.get_crime_profile(subject.address.latitude, subject.address.longitude)

    async def _fmr(self, subject: SubjectProperty) -> Optional[Section8Profile]:
        if self.fmr is None or not subject.address.zip_code:
            return None
        return await self.fmr.get_fmr(subject.address.zip_code, subject.bedrooms)
