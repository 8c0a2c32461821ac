"""Tests for comparable selection: filters, radius expansion, outliers, ranking."""

from dataclasses import replace

import pytest

from rentaliq.engine.comparables import (
    ComparableSelector,
    CompositeWeights,
    SelectionConfig,
    modified_z_scores,
)
from rentaliq.engine.dedup import build_canonical
from rentaliq.errors import InsufficientComparables, InvalidQuery
from rentaliq.models.cma import CompMode
from rentaliq.models.property import Address, ListingStatus, PropertyType


@pytest.fixture
def selector(as_of):
    return ComparableSelector(SelectionConfig(), as_of)


def _ids(selection):
    return {c.canonical_id for c in selection.comparables}


class TestFilters:
    def test_excludes_ineligible_candidates(self, selector, subject, make_property):
        good = [make_property(external_id=str(i)) for i in (1, 2, 3)]
        bad = [
            make_property(external_id="10", days_ago=400),
            make_property(external_id="11", miles=5.2),
            make_property(external_id="12", property_type=PropertyType.CONDO),
            make_property(external_id="13", bedrooms=5),
            make_property(external_id="14", sqft=2100),
            make_property(external_id="15", status=ListingStatus.ACTIVE),
            make_property(external_id="16", bathrooms="4"),
            make_property(external_id="17", days_ago=-5),
            make_property(external_id="18", price=None),
        ]
        selection = selector.select(subject, good + bad)
        assert _ids(selection) == {p.canonical_id for p in good}
        assert selection.candidates_considered == 3

    def test_excludes_subject_by_address(self, selector, subject, make_property):
        pool = [make_property(external_id=str(i)) for i in (1, 2, 3)]
        itself = make_property(external_id="9", street="100 Main St", miles=0.0)
        selection = selector.select(subject, pool + [itself])
        assert itself.canonical_id not in _ids(selection)

    def test_other_unit_at_subject_address_is_eligible(self, selector, subject, make_property):
        pool = [make_property(external_id=str(i)) for i in (1, 2, 3)]
        neighbor = make_property(external_id="9", street="100 Main St", unit="Apt 2", miles=0.0)
        selection = selector.select(subject, pool + [neighbor])
        assert neighbor.canonical_id in _ids(selection)

    def test_excludes_subject_by_source_ref(self, selector, subject, make_property):
        pool = [make_property(external_id=str(i)) for i in (1, 2, 3)]
        itself = make_property(external_id="9", source="realtor")
        subject = replace(subject, source_refs=itself.source_refs)
        selection = selector.select(subject, pool + [itself])
        assert itself.canonical_id not in _ids(selection)

    def test_subject_without_coordinates_is_invalid(self, selector, subject, make_property):
        subject = replace(subject, address=Address(street="100 Main St", zip_code="43215"))
        with pytest.raises(InvalidQuery) as exc:
            selector.select(subject, [make_property()])
        assert exc.value.missing_fields == ["latitude", "longitude"]

    def test_subject_without_sqft_is_invalid(self, selector, subject, make_property):
        with pytest.raises(InvalidQuery) as exc:
            selector.select(replace(subject, sqft=0), [make_property()])
        assert exc.value.missing_fields == ["sqft"]


class TestRadiusExpansion:
    def test_stops_at_first_sufficient_radius(self, selector, subject, make_property):
        pool = [make_property(external_id=str(i), miles=0.3) for i in (1, 2, 3)]
        pool.append(make_property(external_id="4", miles=2.0))
        selection = selector.select(subject, pool)
        assert selection.radius_miles == 0.5
        assert len(selection.comparables) == 3

    def test_expands_until_minimum_met(self, selector, subject, make_property):
        pool = [
            make_property(external_id="1", miles=0.3),
            make_property(external_id="2", miles=2.0),
            make_property(external_id="3", miles=2.5),
        ]
        selection = selector.select(subject, pool)
        assert selection.radius_miles == 3.0
        assert len(selection.comparables) == 3

    def test_returns_what_exists_at_maximum_radius(self, selector, subject, make_property):
        pool = [make_property(external_id="1", miles=4.0), make_property(external_id="2", miles=4.5)]
        selection = selector.select(subject, pool)
        assert selection.radius_miles == 5.0
        assert len(selection.comparables) == 2

    def test_never_searches_beyond_maximum_radius(self, selector, subject, make_property):
        with pytest.raises(InsufficientComparables) as exc:
            selector.select(subject, [make_property(external_id="1", miles=5.2)])
        assert exc.value.max_radius_miles == 5.0
        assert exc.value.subject_id == "subject-1"

    def test_empty_pool(self, selector, subject):
        with pytest.raises(InsufficientComparables):
            selector.select(subject, [])


class TestOutliers:
    def test_modified_z_scores_zero_when_mad_is_zero(self):
        assert modified_z_scores([200.0, 200.0, 200.0]) == [0.0, 0.0, 0.0]

    def test_rejects_price_per_sqft_outlier(self, selector, subject, make_property):
        # $200-$204 per sqft, plus one at $600
        pool = [
            make_property(external_id=str(i), price=300000 + 1500 * i) for i in range(5)
        ]
        outlier = make_property(external_id="9", price=900000)
        selection = selector.select(subject, pool + [outlier])
        assert selection.outliers_rejected == 1
        assert outlier.canonical_id not in _ids(selection)
        assert len(selection.comparables) == 5


class TestRanking:
    def test_caps_at_max_comparables_with_stable_ties(self, selector, subject, make_property):
        pool = [make_property(external_id=str(i)) for i in range(1, 9)]
        selection = selector.select(subject, pool)
        ids = [c.canonical_id for c in selection.comparables]
        assert len(ids) == 6
        assert ids == sorted(p.canonical_id for p in pool)[:6]

    def test_closer_and_more_similar_ranks_first(self, selector, subject, make_property):
        near = make_property(external_id="1", miles=0.1)
        mid = make_property(external_id="2", miles=0.3, sqft=1600)
        far = make_property(external_id="3", miles=0.45, sqft=1700, days_ago=200)
        selection = selector.select(subject, [far, mid, near])
        assert [c.canonical_id for c in selection.comparables] == [
            near.canonical_id, mid.canonical_id, far.canonical_id,
        ]
        scores = [c.composite_score for c in selection.comparables]
        assert scores == sorted(scores)

    def test_year_built_gap_ranks_lower_when_weighted(self, as_of, subject, make_listing):
        # Identical except for year built
        old = build_canonical([replace(make_listing(external_id="1"), year_built=1950)])
        close = build_canonical([replace(make_listing(external_id="2"), year_built=1998)])
        unknown = build_canonical([make_listing(external_id="3")])
        dated = replace(subject, year_built=2000)

        weighted = SelectionConfig(weights=CompositeWeights(year_built=0.2))
        selection = ComparableSelector(weighted, as_of).select(dated, [old, close, unknown])
        scores = {c.canonical_id: c.composite_score for c in selection.comparables}
        assert scores[close.canonical_id] < scores[old.canonical_id]
        assert scores[unknown.canonical_id] < scores[close.canonical_id]
        # 50-year gap saturates at the full weight
        assert scores[old.canonical_id] - scores[unknown.canonical_id] == pytest.approx(0.2)

        unweighted = ComparableSelector(SelectionConfig(), as_of).select(dated, [old, close, unknown])
        assert len({c.composite_score for c in unweighted.comparables}) == 1

    def test_comparable_carries_price_per_sqft_and_distance(self, selector, subject, make_property):
        pool = [make_property(external_id=str(i), price=321000, miles=0.25) for i in (1, 2, 3)]
        comp = selector.select(subject, pool).comparables[0]
        assert str(comp.price_per_sqft) == "214.00"
        assert comp.distance_miles == pytest.approx(0.25, abs=0.001)
        assert comp.sources == ("zillow",)


class TestRentMode:
    def test_selects_only_rentals(self, selector, subject, make_property):
        sold = [make_property(external_id=str(i)) for i in (1, 2, 3)]
        rentals = [
            make_property(external_id="4", status=ListingStatus.FOR_RENT, price=1800),
            make_property(external_id="5", status=ListingStatus.RENTED, price=1750),
            make_property(external_id="6", status=ListingStatus.FOR_RENT, price=1850),
        ]
        selection = selector.select(subject, sold + rentals, CompMode.RENT)
        assert selection.mode == CompMode.RENT
        assert _ids(selection) == {p.canonical_id for p in rentals}

    def test_no_rentals(self, selector, subject, make_property):
        with pytest.raises(InsufficientComparables) as exc:
            selector.select(subject, [make_property()], CompMode.RENT)
        assert exc.value.mode == "rent"
