from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from rentaliq.errors import RentalIQError
from rentaliq.models.neighborhood import CrimeProfile
from rentaliq.models.section8 import Section8Profile


class CompMode(Enum):
    SALE = "sale"
    RENT = "rent"


@dataclass(frozen=True)
class ComparableSale:
    canonical_id: str
    address: str
    price: Decimal  # sold price, or monthly rent in RENT mode
    event_date: date
    bedrooms: int
    bathrooms: Decimal
    sqft: int
    distance_miles: float
    price_per_sqft: Decimal
    composite_score: float = 0.0
    sources: tuple[str, ...] = ()


@dataclass(frozen=True)
class ComparableSelection:
    mode: CompMode
    comparables: list[ComparableSale]
    radius_miles: float
    candidates_considered: int = 0
    outliers_rejected: int = 0


@dataclass(frozen=True)
class MarketTrends:
    # Fractional change in median price/sqft; None when a window has no sales
    change_3m: Optional[float] = None
    change_6m: Optional[float] = None
    change_12m: Optional[float] = None


@dataclass(frozen=True)
class ValuationResult:
    mode: CompMode
    estimate: Decimal
    confidence: float  # 0.0-1.0
    confidence_label: str  # "low" | "medium" | "high"
    value_low: Decimal
    value_high: Decimal
    price_per_sqft: Decimal
    weights: tuple[float, ...]
    comparables: list[ComparableSale]
    source: str = "comparables"  # or the fallback's name

    @property
    def comparable_count(self) -> int:
        return len(self.comparables)


@dataclass(frozen=True)
class Recommendation:
    headline: str
    lines: list[str] = field(default_factory=list)
    crime_label: Optional[str] = None
    section8_eligible: Optional[bool] = None
    market_trend: Optional[str] = None

    @property
    def text(self) -> str:
        return "\n".join([self.headline, *self.lines])


class CMAState(Enum):
    REQUESTED = "requested"
    FETCHING_COMPARABLES = "fetching_comparables"
    COMPUTING = "computing"
    INSUFFICIENT_DATA = "insufficient_data"
    COMPUTED = "computed"


CMA_TRANSITIONS: dict[CMAState, frozenset[CMAState]] = {
    CMAState.REQUESTED: frozenset({CMAState.FETCHING_COMPARABLES}),
    CMAState.FETCHING_COMPARABLES: frozenset({CMAState.COMPUTING, CMAState.INSUFFICIENT_DATA}),
    CMAState.COMPUTING: frozenset({CMAState.COMPUTED, CMAState.INSUFFICIENT_DATA}),
    CMAState.INSUFFICIENT_DATA: frozenset(),
    CMAState.COMPUTED: frozenset(),
}


class InvalidTransition(RentalIQError):
    pass


@dataclass
class CMARequest:
    """Tracks one CMA request through its state machine."""
    subject_id: str
    state: CMAState = CMAState.REQUESTED
    history: list[CMAState] = field(default_factory=lambda: [CMAState.REQUESTED])

    def advance(self, new_state: CMAState) -> None:
        if new_state not in CMA_TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.subject_id}: {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    @property
    def is_terminal(self) -> bool:
        return not CMA_TRANSITIONS[self.state]


@dataclass(frozen=True)
class CMAReport:
    subject_id: str
    valuation: ValuationResult
    market_trends: MarketTrends
    recommendation: Recommendation
    rent: Optional[ValuationResult] = None
    crime: Optional[CrimeProfile] = None
    section8: Optional[Section8Profile] = None
    degraded_sources: list[str] = field(default_factory=list)
    state: CMAState = CMAState.COMPUTED

    @property
    def estimated_value(self) -> Decimal:
        return self.valuation.estimate

    @property
    def confidence(self) -> float:
        return self.valuation.confidence

    @property
    def comparables(self) -> list[ComparableSale]:
        return self.valuation.comparables

    @property
    def estimated_rent(self) -> Optional[Decimal]:
        return self.rent.estimate if self.rent is not None else None

    @property
    def recommendation_text(self) -> str:
        return self.recommendation.text


@dataclass(frozen=True)
class CMAOutcome:
    """One subject's result in a batch: exactly one of report / error is set."""
    subject_id: str
    report: Optional[CMAReport] = None
    error: Optional[RentalIQError] = None

    @property
    def ok(self) -> bool:
        return self.report is not None


@dataclass(frozen=True)
class AreaRentAnalysis:
    """Asking-rent distribution for one area and bedroom count."""
    bedrooms: Optional[int]
    sample_size: int = 0
    average_rent: Optional[Decimal] = None
    median_rent: Optional[Decimal] = None
    rent_low: Optional[Decimal] = None  # 25th percentile
    rent_high: Optional[Decimal] = None  # 75th percentile
    sources: list[str] = field(default_factory=list)
    degraded_sources: list[str] = field(default_factory=list)
