"""Comparable-based rent estimation.

Mirrors the valuation engine on rental comparables (for-rent and rented
listings) using rent per square foot. When no rental comparables exist, an
optional fallback may produce an estimate; none ships by default, so the
estimator reports insufficient data rather than inventing a number.
"""

import logging
from typing import Callable, Optional

from rentaliq.engine.comparables import ComparableSelector
from rentaliq.engine.valuation import ValuationEngine
from rentaliq.errors import InsufficientComparables
from rentaliq.models.cma import CompMode, ValuationResult
from rentaliq.models.property import CanonicalProperty, SubjectProperty
from rentaliq.models.section8 import Section8Profile

logger = logging.getLogger(__name__)

RentFallback = Callable[[SubjectProperty, Optional[Section8Profile]], Optional[ValuationResult]]


class RentEstimator:
    def __init__(
        self,
        selector: ComparableSelector,
        engine: ValuationEngine | None = None,
        fallback: RentFallback | None = None,
    ):
        self.selector = selector
        self.engine = engine or ValuationEngine()
        self.fallback = fallback

    def estimate(self, subject: SubjectProperty, pool: list[CanonicalProperty]) -> ValuationResult:
        """Estimate monthly rent from rental comparables in the pool.

        Raises InsufficientComparables when no rental comparable survives
        selection.
        """
        selection = self.selector.select(subject, pool, CompMode.RENT)
        return self.engine.estimate(subject, selection.comparables, CompMode.RENT)

    def fallback_estimate(
        self, subject: SubjectProperty, section8: Optional[Section8Profile]
    ) -> Optional[ValuationResult]:
        if self.fallback is None:
            return None
        result = self.fallback(subject, section8)
        if result is not None:
            logger.info("Rent for %s from fallback (%s)", subject.identifier, result.source)
        return result

    def estimate_or_fallback(
        self,
        subject: SubjectProperty,
        pool: list[CanonicalProperty],
        section8: Optional[Section8Profile] = None,
    ) -> ValuationResult:
        try:
            return self.estimate(subject, pool)
        except InsufficientComparables:
            result = self.fallback_estimate(subject, section8)
            if result is None:
                raise
            return result
