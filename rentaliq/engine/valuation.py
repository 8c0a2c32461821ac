"""Weighted comparable valuation.

Pure function: subject + selected comparables in, ValuationResult out. No I/O.

    estimate = Σ(weight_i × price_per_sqft_i) × subject_sqft

Confidence in [0, 1] is the product of three factors:
  count:      1 - exp(-n / 3)             (rises with comparable count)
  variance:   1 / (1 + (cv / 0.10)^2)     (falls with price/sqft dispersion)
  dispersion: 0.5 + 0.5 × n_eff / n       (falls when one comp dominates)
"""

import math
import statistics
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable

from rentaliq.errors import InsufficientComparables
from rentaliq.models.cma import ComparableSale, CompMode, ValuationResult
from rentaliq.models.property import SubjectProperty

TWO_PLACES = Decimal("0.01")

# Floor on composite score so a perfect match cannot take infinite weight
MIN_DISTANCE_SCORE = Decimal("0.01")

COUNT_SCALE = 3.0
CV_SCALE = 0.10

WeightFunction = Callable[[list[ComparableSale]], list[Decimal]]


def inverse_distance_weights(comparables: list[ComparableSale]) -> list[Decimal]:
    """Weight each comp by 1 / composite score, normalized to sum to 1."""
    inverse = [
        Decimal(1) / max(Decimal(str(c.composite_score)), MIN_DISTANCE_SCORE)
        for c in comparables
    ]
    total = sum(inverse, Decimal(0))
    return [w / total for w in inverse]


def equal_weights(comparables: list[ComparableSale]) -> list[Decimal]:
    n = len(comparables)
    return [Decimal(1) / n] * n


def confidence_score(prices_per_sqft: list[float], weights: list[float]) -> float:
    n = len(prices_per_sqft)
    if n == 0:
        raise ValueError("confidence is undefined without comparables")

    count_factor = 1 - math.exp(-n / COUNT_SCALE)

    mean = statistics.fmean(prices_per_sqft)
    cv = statistics.pstdev(prices_per_sqft) / mean if n > 1 and mean > 0 else 0.0
    variance_factor = 1 / (1 + (cv / CV_SCALE) ** 2)

    n_eff = 1 / sum(w * w for w in weights)
    dispersion_factor = 0.5 + 0.5 * min(1.0, n_eff / n)

    score = count_factor * variance_factor * dispersion_factor
    return round(min(1.0, max(0.0, score)), 3)


def confidence_label(score: float) -> str:
    if score >= 0.75:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"


class ValuationEngine:
    def __init__(self, weight_fn: WeightFunction = inverse_distance_weights):
        self.weight_fn = weight_fn

    def estimate(
        self,
        subject: SubjectProperty,
        comparables: list[ComparableSale],
        mode: CompMode = CompMode.SALE,
    ) -> ValuationResult:
        if not comparables:
            raise InsufficientComparables(subject.identifier, mode.value)

        weights = self.weight_fn(comparables)
        subject_sqft = Decimal(subject.sqft)

        weighted_ppsf = sum(
            (w * c.price / Decimal(c.sqft) for w, c in zip(weights, comparables)),
            Decimal(0),
        )
        estimate = (weighted_ppsf * subject_sqft).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)

        confidence = confidence_score(
            [float(c.price) / c.sqft for c in comparables],
            [float(w) for w in weights],
        )

        # Range widens as confidence drops: ±5% at full confidence, ±20% at zero
        margin = Decimal(str(0.05 + 0.15 * (1 - confidence)))
        return ValuationResult(
            mode=mode,
            estimate=estimate,
            confidence=confidence,
            confidence_label=confidence_label(confidence),
            value_low=(estimate * (1 - margin)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
            value_high=(estimate * (1 + margin)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
            price_per_sqft=weighted_ppsf.quantize(TWO_PLACES, rounding=ROUND_HALF_UP),
            weights=tuple(round(float(w), 6) for w in weights),
            comparables=list(comparables),
        )
