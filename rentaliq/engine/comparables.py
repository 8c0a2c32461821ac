"""Comparable selection: filter, expand radius, reject outliers, rank.

Pure function of (subject, canonical pool, config, as-of date). No I/O.
"""

import logging
import statistics
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from rentaliq.config import settings
from rentaliq.engine.geo import haversine_miles
from rentaliq.engine.normalize import extract_unit, normalize_address
from rentaliq.errors import InsufficientComparables, InvalidQuery
from rentaliq.models.cma import ComparableSale, ComparableSelection, CompMode
from rentaliq.models.property import CanonicalProperty, ListingStatus, SubjectProperty

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
DAYS_PER_MONTH = 365 / 12
MAD_SCALE = 0.6745  # modified z-score constant (Iglewicz & Hoaglin)

MODE_STATUSES: dict[CompMode, frozenset[ListingStatus]] = {
    CompMode.SALE: frozenset({ListingStatus.SOLD}),
    CompMode.RENT: frozenset({ListingStatus.FOR_RENT, ListingStatus.RENTED}),
}


@dataclass(frozen=True)
class CompositeWeights:
    geo: float = 0.40
    recency: float = 0.20
    sqft: float = 0.25
    bed_bath: float = 0.15
    year_built: float = 0.0


@dataclass(frozen=True)
class SelectionConfig:
    lookback_months: int = 12
    radius_steps_miles: tuple[float, ...] = (0.5, 1.0, 3.0, 5.0)
    min_comparables: int = 3
    max_comparables: int = 6
    outlier_z_threshold: float = 2.5
    sqft_tolerance: float = 0.25
    bed_tolerance: int = 1
    bath_tolerance: Decimal = Decimal("1")
    year_built_tolerance: int = 30  # age gap in years at which the year term saturates
    weights: CompositeWeights = field(default_factory=CompositeWeights)

    @classmethod
    def from_settings(cls) -> "SelectionConfig":
        return cls(
            lookback_months=settings.lookback_months,
            radius_steps_miles=tuple(sorted(settings.radius_steps_miles)),
            min_comparables=settings.min_comparables,
            max_comparables=settings.max_comparables,
            outlier_z_threshold=settings.outlier_z_threshold,
            sqft_tolerance=settings.sqft_tolerance,
            weights=CompositeWeights(
                geo=settings.weight_geo,
                recency=settings.weight_recency,
                sqft=settings.weight_sqft,
                bed_bath=settings.weight_bed_bath,
                year_built=settings.weight_year_built,
            ),
        )

    @property
    def lookback_days(self) -> int:
        return round(self.lookback_months * DAYS_PER_MONTH)

    @property
    def max_radius_miles(self) -> float:
        return max(self.radius_steps_miles)


@dataclass(frozen=True)
class _Candidate:
    prop: CanonicalProperty
    distance_miles: float
    age_days: int
    price_per_sqft: float


def modified_z_scores(values: list[float]) -> list[float]:
    """Modified z-scores around the median. All zeros when MAD is zero."""
    if not values:
        return []
    median = statistics.median(values)
    mad = statistics.median(abs(v - median) for v in values)
    if mad == 0:
        return [0.0] * len(values)
    return [MAD_SCALE * (v - median) / mad for v in values]


def is_subject(prop: CanonicalProperty, subject: SubjectProperty) -> bool:
    if subject.subject_id and prop.canonical_id == subject.subject_id:
        return True
    if prop.source_refs & subject.source_refs:
        return True
    if prop.normalized_address and prop.normalized_address == normalize_address(subject.address):
        prop_unit = extract_unit(prop.address.street, prop.address.unit)
        subject_unit = extract_unit(subject.address.street, subject.address.unit)
        return prop_unit == subject_unit
    return False


class ComparableSelector:
    def __init__(self, config: SelectionConfig | None = None, as_of: date | None = None):
        self.config = config or SelectionConfig.from_settings()
        self.as_of = as_of or date.today()

    def select(
        self,
        subject: SubjectProperty,
        pool: list[CanonicalProperty],
        mode: CompMode = CompMode.SALE,
    ) -> ComparableSelection:
        """Select and rank comparables for a subject.

        Raises InsufficientComparables when nothing survives at the maximum
        radius, InvalidQuery when the subject cannot be located or sized.
        """
        self._validate_subject(subject)
        cfg = self.config

        eligible = [c for c in self._candidates(subject, pool, mode) if self._matches(subject, c.prop)]

        kept: list[_Candidate] = []
        rejected = 0
        radius = cfg.radius_steps_miles[0]
        for radius in cfg.radius_steps_miles:
            in_radius = [c for c in eligible if c.distance_miles <= radius]
            kept, rejected = self._reject_outliers(in_radius)
            if len(kept) >= cfg.min_comparables:
                break

        if not kept:
            logger.info(
                "No %s comparables for %s within %.1f mi (%d eligible candidates)",
                mode.value, subject.identifier, cfg.max_radius_miles, len(eligible),
            )
            raise InsufficientComparables(subject.identifier, mode.value, cfg.max_radius_miles)

        ranked = sorted(
            ((self._composite_score(subject, c, radius), c) for c in kept),
            key=lambda pair: (pair[0], pair[1].prop.canonical_id),
        )[: cfg.max_comparables]

        comparables = [self._to_comparable(c, score) for score, c in ranked]
        logger.info(
            "Selected %d %s comparables for %s at %.1f mi (%d eligible, %d outliers)",
            len(comparables), mode.value, subject.identifier, radius, len(eligible), rejected,
        )
        return ComparableSelection(
            mode=mode,
            comparables=comparables,
            radius_miles=radius,
            candidates_considered=len(eligible),
            outliers_rejected=rejected,
        )

    # ── Filtering ──────────────────────────────────────────────────

    @staticmethod
    def _validate_subject(subject: SubjectProperty) -> None:
        missing = []
        if not subject.address.has_coordinates:
            missing += ["latitude", "longitude"]
        if not subject.sqft or subject.sqft <= 0:
            missing.append("sqft")
        if missing:
            raise InvalidQuery(missing, f"Subject {subject.identifier} is missing {', '.join(missing)}")

    def _candidates(
        self, subject: SubjectProperty, pool: list[CanonicalProperty], mode: CompMode
    ) -> list[_Candidate]:
        statuses = MODE_STATUSES[mode]
        lookback = self.config.lookback_days
        out = []
        for prop in pool:
            if prop.status not in statuses or is_subject(prop, subject):
                continue
            if prop.event_date is None or prop.latitude is None or prop.longitude is None:
                continue
            if not prop.sqft or prop.sqft <= 0 or not prop.price or prop.price <= 0:
                continue
            age_days = (self.as_of - prop.event_date).days
            if age_days < 0 or age_days > lookback:
                continue
            distance = haversine_miles(
                subject.address.latitude, subject.address.longitude,
                prop.latitude, prop.longitude,
            )
            if distance > self.config.max_radius_miles:
                continue
            out.append(_Candidate(prop, distance, age_days, float(prop.price) / prop.sqft))
        return out

    def _matches(self, subject: SubjectProperty, prop: CanonicalProperty) -> bool:
        cfg = self.config
        if prop.property_type != subject.property_type:
            return False
        if prop.bedrooms is None or abs(prop.bedrooms - subject.bedrooms) > cfg.bed_tolerance:
            return False
        if prop.bathrooms is None or abs(prop.bathrooms - subject.bathrooms) > cfg.bath_tolerance:
            return False
        return abs(prop.sqft - subject.sqft) <= subject.sqft * cfg.sqft_tolerance

    def _reject_outliers(self, candidates: list[_Candidate]) -> tuple[list[_Candidate], int]:
        scores = modified_z_scores([c.price_per_sqft for c in candidates])
        kept = [
            c for c, z in zip(candidates, scores)
            if abs(z) <= self.config.outlier_z_threshold
        ]
        return kept, len(candidates) - len(kept)

    # ── Ranking ────────────────────────────────────────────────────

    def _composite_score(self, subject: SubjectProperty, c: _Candidate, radius: float) -> float:
        """Weighted sum of normalized distances; lower is more similar."""
        cfg = self.config
        w = cfg.weights
        geo = c.distance_miles / radius if radius > 0 else 0.0
        recency = c.age_days / cfg.lookback_days if cfg.lookback_days > 0 else 0.0
        sqft = abs(c.prop.sqft - subject.sqft) / subject.sqft / cfg.sqft_tolerance
        bed_bath = (
            abs(c.prop.bedrooms - subject.bedrooms) / (cfg.bed_tolerance or 1)
            + float(abs(c.prop.bathrooms - subject.bathrooms) / (cfg.bath_tolerance or 1))
        ) / 2
        # Unknown on either side contributes nothing
        year = 0.0
        if subject.year_built and c.prop.year_built:
            year = min(abs(c.prop.year_built - subject.year_built) / cfg.year_built_tolerance, 1.0)
        return (
            w.geo * geo + w.recency * recency + w.sqft * sqft + w.bed_bath * bed_bath
            + w.year_built * year
        )

    @staticmethod
    def _to_comparable(c: _Candidate, score: float) -> ComparableSale:
        prop = c.prop
        return ComparableSale(
            canonical_id=prop.canonical_id,
            address=prop.address.full,
            price=prop.price,
            event_date=prop.event_date,
            bedrooms=prop.bedrooms,
            bathrooms=prop.bathrooms,
            sqft=prop.sqft,
            distance_miles=round(c.distance_miles, 3),
            price_per_sqft=(prop.price / prop.sqft).quantize(TWO_PLACES),
            composite_score=round(score, 6),
            sources=tuple(prop.sources),
        )
