"""Area rent distribution from rental listings.

Percentiles are nearest-rank on the ascending rent list: median at n // 2,
low at floor(n * 0.25), high at floor(n * 0.75).
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from rentaliq.engine.comparables import MODE_STATUSES
from rentaliq.models.cma import AreaRentAnalysis, CompMode
from rentaliq.models.property import CanonicalProperty

WHOLE_DOLLARS = Decimal("1")


def analyze_area_rents(
    rentals: list[CanonicalProperty],
    bedrooms: Optional[int] = None,
    degraded_sources: Optional[list[str]] = None,
) -> AreaRentAnalysis:
    """Average, median and interquartile rents of priced rentals matching `bedrooms`."""
    statuses = MODE_STATUSES[CompMode.RENT]
    matched = [
        prop for prop in rentals
        if prop.status in statuses
        and prop.price is not None and prop.price > 0
        and (bedrooms is None or prop.bedrooms == bedrooms)
    ]
    degraded = list(degraded_sources or [])
    if not matched:
        return AreaRentAnalysis(bedrooms=bedrooms, degraded_sources=degraded)

    rents = sorted(prop.price for prop in matched)
    n = len(rents)
    average = (sum(rents) / n).quantize(WHOLE_DOLLARS, rounding=ROUND_HALF_UP)
    return AreaRentAnalysis(
        bedrooms=bedrooms,
        sample_size=n,
        average_rent=average,
        median_rent=rents[n // 2],
        rent_low=rents[int(n * 0.25)],
        rent_high=rents[int(n * 0.75)],
        sources=sorted({source for prop in matched for source in prop.sources}),
        degraded_sources=degraded,
    )
