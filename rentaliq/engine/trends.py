"""Market trend deltas from recent sold comparables.

For each window k in (3, 6, 12) months: fractional change of the median sold
price per sqft over the last k months against the k months before that.
"""

import statistics
from datetime import date
from typing import Optional

from rentaliq.engine.comparables import DAYS_PER_MONTH, is_subject
from rentaliq.engine.geo import haversine_miles
from rentaliq.models.cma import MarketTrends
from rentaliq.models.property import CanonicalProperty, ListingStatus, SubjectProperty

TREND_WINDOWS_MONTHS = (3, 6, 12)


def _window_change(points: list[tuple[int, float]], months: int) -> Optional[float]:
    span = round(months * DAYS_PER_MONTH)
    recent = [ppsf for age, ppsf in points if age <= span]
    prior = [ppsf for age, ppsf in points if span < age <= 2 * span]
    if not recent or not prior:
        return None
    baseline = statistics.median(prior)
    if baseline <= 0:
        return None
    return round(statistics.median(recent) / baseline - 1, 4)


def compute_market_trends(
    subject: SubjectProperty,
    pool: list[CanonicalProperty],
    as_of: date,
    radius_miles: float,
) -> MarketTrends:
    """Trend deltas from same-type sales within `radius_miles` of the subject."""
    points: list[tuple[int, float]] = []
    if not subject.address.has_coordinates:
        return MarketTrends()

    for prop in pool:
        if prop.status != ListingStatus.SOLD or prop.property_type != subject.property_type:
            continue
        if prop.event_date is None or not prop.sqft or not prop.price:
            continue
        if prop.latitude is None or prop.longitude is None or is_subject(prop, subject):
            continue
        distance = haversine_miles(
            subject.address.latitude, subject.address.longitude,
            prop.latitude, prop.longitude,
        )
        age = (as_of - prop.event_date).days
        if distance > radius_miles or age < 0:
            continue
        points.append((age, float(prop.price) / prop.sqft))

    changes = [_window_change(points, months) for months in TREND_WINDOWS_MONTHS]
    return MarketTrends(change_3m=changes[0], change_6m=changes[1], change_12m=changes[2])
