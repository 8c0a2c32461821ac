"""Tests for comparable-based rent estimation and the optional fallback hook."""

from decimal import Decimal

import pytest

from rentaliq.engine.comparables import ComparableSelector, SelectionConfig
from rentaliq.engine.rent import RentEstimator
from rentaliq.engine.valuation import ValuationEngine, equal_weights
from rentaliq.errors import InsufficientComparables
from rentaliq.models.cma import CompMode, ValuationResult
from rentaliq.models.property import ListingStatus


@pytest.fixture
def selector(as_of):
    return ComparableSelector(SelectionConfig(), as_of)


@pytest.fixture
def rentals(make_property):
    return [
        make_property(external_id="1", status=ListingStatus.FOR_RENT, price=1800),
        make_property(external_id="2", status=ListingStatus.RENTED, price=1650, days_ago=90),
        make_property(external_id="3", status=ListingStatus.FOR_RENT, price=1950),
    ]


def fmr_fallback(subject, section8):
    if section8 is None:
        return None
    rent = section8.fmr_for_beds(subject.bedrooms)
    return ValuationResult(
        mode=CompMode.RENT,
        estimate=rent,
        confidence=0.2,
        confidence_label="low",
        value_low=rent,
        value_high=rent,
        price_per_sqft=(rent / subject.sqft).quantize(Decimal("0.01")),
        weights=(),
        comparables=[],
        source="hud_fmr",
    )


class TestRentEstimator:
    def test_estimates_from_rental_comparables(self, selector, subject, rentals):
        result = RentEstimator(selector, ValuationEngine(equal_weights)).estimate(subject, rentals)
        assert result.mode == CompMode.RENT
        assert result.comparable_count == 3
        # (1.20 + 1.10 + 1.30) / 3 per sqft over 1,500 sqft
        assert result.estimate == Decimal("1800.00")

    def test_ignores_sales(self, selector, subject, rentals, make_property):
        sales = [make_property(external_id=str(i)) for i in (7, 8, 9)]
        result = RentEstimator(selector).estimate(subject, rentals + sales)
        assert {c.canonical_id for c in result.comparables} == {p.canonical_id for p in rentals}

    def test_no_rentals_without_fallback(self, selector, subject, section8):
        estimator = RentEstimator(selector)
        with pytest.raises(InsufficientComparables):
            estimator.estimate_or_fallback(subject, [], section8)
        assert estimator.fallback_estimate(subject, section8) is None

    def test_no_rentals_uses_fallback(self, selector, subject, section8):
        result = RentEstimator(selector, fallback=fmr_fallback).estimate_or_fallback(subject, [], section8)
        assert result.source == "hud_fmr"
        assert result.estimate == Decimal("1700")

    def test_fallback_declining_reraises(self, selector, subject):
        estimator = RentEstimator(selector, fallback=fmr_fallback)
        with pytest.raises(InsufficientComparables):
            estimator.estimate_or_fallback(subject, [], None)

    def test_comparables_win_over_fallback(self, selector, subject, rentals, section8):
        result = RentEstimator(selector, fallback=fmr_fallback).estimate_or_fallback(
            subject, rentals, section8
        )
        assert result.source == "comparables"
