"""Rule-based context scoring for CMA reports.

Maps crime, Fair Market Rent and market trend data onto labels and
recommendation text through fixed rule tables:

  Crime score (0-100, lower is safer):  A+ / A / B / C / D / F
  Rent vs FMR:                          Section 8 eligible / not eligible
  Confidence (0-1):                     high / medium / low
  12-month price/sqft change:           Appreciating / Stable / Declining

Scoring only describes the numbers; it never changes a value or rent estimate.
"""

from decimal import Decimal
from typing import Optional

from rentaliq.engine.valuation import confidence_label
from rentaliq.models.cma import MarketTrends, Recommendation, ValuationResult
from rentaliq.models.neighborhood import CrimeProfile
from rentaliq.models.section8 import Section8Eligibility, Section8Profile

TREND_THRESHOLD = 0.03

# (upper bound exclusive, grade, description)
CRIME_BANDS: list[tuple[int, str, str]] = [
    (20, "A+", "Excellent"),
    (35, "A", "Very Good"),
    (50, "B", "Good"),
    (65, "C", "Average"),
    (80, "D", "Below Average"),
]
CRIME_FLOOR = ("F", "Poor")


def crime_grade(score: int) -> tuple[str, str]:
    """Letter grade and description for a crime score."""
    for upper, grade, description in CRIME_BANDS:
        if score < upper:
            return grade, description
    return CRIME_FLOOR


def crime_label(score: int) -> str:
    grade, description = crime_grade(score)
    return f"{grade} ({description})"


def trend_label(trends: MarketTrends) -> str:
    """Label from the 12-month change; Stable when there is no data."""
    change = trends.change_12m
    if change is None:
        return "Stable"
    if change > TREND_THRESHOLD:
        return "Appreciating"
    if change < -TREND_THRESHOLD:
        return "Declining"
    return "Stable"


def section8_verdict(
    section8: Optional[Section8Profile], monthly_rent: Optional[Decimal]
) -> Optional[Section8Eligibility]:
    if section8 is None or monthly_rent is None:
        return None
    return section8.eligibility(monthly_rent)


def _format_change(change: Optional[float]) -> str:
    if change is None:
        return "n/a"
    return f"{change * 100:+.1f}%"


class AuxiliaryScorer:
    def recommend(
        self,
        valuation: ValuationResult,
        trends: MarketTrends,
        rent: Optional[ValuationResult] = None,
        crime: Optional[CrimeProfile] = None,
        section8: Optional[Section8Profile] = None,
    ) -> Recommendation:
        """Build recommendation text from the computed numbers and context."""
        market = trend_label(trends)
        headline = (
            f"Estimated value ${valuation.estimate:,.0f} "
            f"(range ${valuation.value_low:,.0f}-${valuation.value_high:,.0f}), "
            f"{confidence_label(valuation.confidence)} confidence "
            f"from {valuation.comparable_count} comparables"
        )

        lines = [
            f"Market trend: {market} "
            f"(3m {_format_change(trends.change_3m)}, 6m {_format_change(trends.change_6m)}, "
            f"12m {_format_change(trends.change_12m)})"
        ]

        if rent is not None:
            lines.append(
                f"Estimated rent ${rent.estimate:,.0f}/mo, "
                f"{confidence_label(rent.confidence)} confidence "
                f"from {rent.comparable_count} rental comparables"
            )
        else:
            lines.append("Rent estimate unavailable: no rental comparables nearby")

        label = None
        if crime is not None:
            label = crime_label(crime.score)
            lines.append(
                f"Crime: {label}, score {crime.score}/100 from {crime.total_incidents} incidents"
            )
            if crime.trends.change_12m > 10:
                lines.append("Crime rising over the last 12 months")
            elif crime.trends.change_12m < -10:
                lines.append("Crime falling over the last 12 months")
        else:
            lines.append("Crime data unavailable")

        verdict = section8_verdict(section8, rent.estimate if rent is not None else None)
        if verdict is not None:
            lines.append(f"Section 8: {verdict.reason}")
        elif section8 is not None:
            lines.append(
                f"Section 8: FMR ${section8.fmr_for_bedrooms:,.0f} for {section8.bedrooms} bedrooms"
            )
        else:
            lines.append("Section 8 data unavailable")

        if market == "Appreciating" and (crime is None or crime.score < 50):
            lines.append("Favorable: rising prices in a reasonably safe area")
        elif market == "Declining":
            lines.append("Caution: prices have softened over the last year")

        return Recommendation(
            headline=headline,
            lines=lines,
            crime_label=label,
            section8_eligible=verdict.eligible if verdict is not None else None,
            market_trend=market,
        )
