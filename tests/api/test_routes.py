"""HTTP tests for the search, CMA, area rent and Section 8 routes."""

import json
from dataclasses import replace
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from rentaliq.api.app import app
from rentaliq.api.deps import get_aggregator, get_cma_service, get_hud_client, get_report_cache
from rentaliq.data.aggregator import PropertyAggregator
from rentaliq.data.cache import ReportCache
from rentaliq.data.cma_service import CMAService
from rentaliq.engine.comparables import ComparableSelector, SelectionConfig
from rentaliq.engine.valuation import ValuationEngine, equal_weights
from rentaliq.errors import SourceUnavailable
from rentaliq.models.property import ListingKind, ListingStatus


def subject_payload(subject, **overrides):
    addr = subject.address
    payload = {
        "street": addr.street,
        "city": addr.city,
        "state": addr.state,
        "zip_code": addr.zip_code,
        "latitude": addr.latitude,
        "longitude": addr.longitude,
        "bedrooms": subject.bedrooms,
        "bathrooms": str(subject.bathrooms),
        "sqft": subject.sqft,
        "subject_id": subject.subject_id,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def listings(make_listing):
    return {
        ListingKind.SOLD: [
            make_listing(external_id="1", sqft=1400, price=300000, miles=0.3, days_ago=60),
            make_listing(external_id="2", sqft=1600, price=340000, miles=0.4, days_ago=45),
        ],
        ListingKind.FOR_RENT: [
            make_listing(external_id="11", status=ListingStatus.FOR_RENT, price=1800),
        ],
    }


@pytest.fixture
def aggregator(fake_source, listings):
    return PropertyAggregator(
        [fake_source("zillow", by_kind=listings), fake_source("rentcast", delay=1.0)],
        timeout_seconds=0.05,
    )


@pytest.fixture
def client(aggregator, as_of):
    selector = ComparableSelector(SelectionConfig(), as_of)
    service = CMAService(aggregator, selector=selector, engine=ValuationEngine(equal_weights), as_of=as_of)
    app.dependency_overrides[get_aggregator] = lambda: aggregator
    app.dependency_overrides[get_cma_service] = lambda: service
    app.dependency_overrides[get_report_cache] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestSearchRoute:
    def test_search_reports_degraded_sources(self, client):
        resp = client.post("/api/v1/properties/search", json={"zip_code": "43215", "kind": "sold"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 2
        assert body["degraded_sources"] == [
            {"source": "rentcast", "kind": "timeout", "detail": "no response within 0.05s"},
        ]
        for prop in body["properties"]:
            assert prop["sources"] == ["zillow"]
            assert {"field": "price", "source": prop["source_refs"][0]} in prop["provenance"]

    def test_unknown_property_type_rejected(self, client):
        resp = client.post(
            "/api/v1/properties/search",
            json={"zip_code": "43215", "kind": "sold", "property_type": "castle"},
        )
        assert resp.status_code == 422

    def test_property_type_accepts_upstream_spelling(self, client):
        resp = client.post(
            "/api/v1/properties/search",
            json={"zip_code": "43215", "kind": "sold", "property_type": "Single Family"},
        )
        assert resp.status_code == 200
        assert resp.json()["count"] == 2

    def test_missing_location(self, client):
        resp = client.post("/api/v1/properties/search", json={"city": "Columbus"})
        assert resp.status_code == 400

    def test_all_sources_failed(self, client):
        resp = client.post(
            "/api/v1/properties/search",
            json={"zip_code": "43215", "kind": "sold", "sources": ["rentcast"]},
        )
        assert resp.status_code == 502
        assert resp.json()["detail"]["degraded_sources"][0]["source"] == "rentcast"


class TestCMARoute:
    def test_generate(self, client, subject):
        resp = client.post("/api/v1/cma", json=subject_payload(subject))
        assert resp.status_code == 200
        body = resp.json()
        assert body["subject_id"] == "subject-1"
        assert body["state"] == "computed"
        assert Decimal(body["estimated_value"]) == Decimal("320089.29")
        assert Decimal(body["estimated_rent"]) == Decimal("1800.00")
        assert len(body["valuation"]["comparables"]) == 2
        assert sum(c["weight"] for c in body["valuation"]["comparables"]) == pytest.approx(1.0)
        assert body["degraded_sources"] == ["rentcast"]
        assert body["recommendation"].startswith("Estimated value $320,089")

    def test_insufficient_data(self, client, subject):
        far_away = subject_payload(subject, latitude=subject.address.latitude + 1.0)
        resp = client.post("/api/v1/cma", json=far_away)
        assert resp.status_code == 404
        detail = resp.json()["detail"]
        assert detail["subject_id"] == "subject-1"
        assert detail["state"] == "insufficient_data"
        assert detail["degraded_sources"] == ["rentcast"]

    def test_unlocatable_subject(self, client, subject):
        resp = client.post("/api/v1/cma", json=subject_payload(subject, latitude=None, longitude=None))
        assert resp.status_code == 400
        assert resp.json()["detail"]["missing_fields"] == ["latitude", "longitude"]

    def test_rejects_non_positive_sqft(self, client, subject):
        resp = client.post("/api/v1/cma", json=subject_payload(subject, sqft=0))
        assert resp.status_code == 422

    def test_report_cache_round_trip(self, client, subject):
        redis_client = AsyncMock()
        redis_client.get.return_value = None
        app.dependency_overrides[get_report_cache] = lambda: ReportCache(redis_client, ttl_seconds=60)

        first = client.post("/api/v1/cma", json=subject_payload(subject))
        assert first.status_code == 200
        key, ttl, stored = redis_client.setex.await_args.args
        assert key.startswith("rentaliq:cma:")
        assert ttl == 60

        redis_client.get.return_value = stored
        second = client.post("/api/v1/cma", json=subject_payload(subject))
        assert second.json() == first.json() == json.loads(stored)
        assert redis_client.setex.await_count == 1


class TestBatchRoute:
    def test_each_subject_succeeds_or_fails_alone(self, client, subject):
        subjects = [
            subject_payload(subject),
            subject_payload(replace(subject, subject_id="far"), latitude=subject.address.latitude + 1.0),
            subject_payload(replace(subject, subject_id="lost"), latitude=None, longitude=None),
        ]
        resp = client.post("/api/v1/cma/batch", json={"subjects": subjects})
        assert resp.status_code == 200
        results = {r["subject_id"]: r for r in resp.json()["results"]}
        assert results["subject-1"]["status"] == "ok"
        assert Decimal(results["subject-1"]["report"]["estimated_value"]) == Decimal("320089.29")
        assert results["far"]["status"] == "insufficient_data"
        assert results["far"]["report"] is None
        assert results["far"]["degraded_sources"] == ["rentcast"]
        assert results["subject-1"]["degraded_sources"] == ["rentcast"]
        assert results["lost"]["status"] == "invalid"

    def test_empty_batch_rejected(self, client):
        assert client.post("/api/v1/cma/batch", json={"subjects": []}).status_code == 422


class TestRentalRateRoute:
    def test_area_rents(self, client):
        resp = client.get("/api/v1/analysis/rental-rate", params={"zip_code": "43215", "bedrooms": 3})
        assert resp.status_code == 200
        body = resp.json()
        assert body["sample_size"] == 1
        assert Decimal(body["average_rent"]) == Decimal("1800")
        assert Decimal(body["median_rent"]) == Decimal("1800")
        assert body["sources"] == ["zillow"]
        assert body["degraded_sources"] == ["rentcast"]

    def test_no_matching_bedrooms(self, client):
        resp = client.get("/api/v1/analysis/rental-rate", params={"zip_code": "43215", "bedrooms": 5})
        assert resp.status_code == 200
        assert resp.json()["sample_size"] == 0
        assert resp.json()["average_rent"] is None

    def test_missing_location(self, client):
        resp = client.get("/api/v1/analysis/rental-rate", params={"city": "Columbus"})
        assert resp.status_code == 400
        assert resp.json()["detail"]["missing_fields"] == ["state"]

    def test_all_sources_failed(self, client, aggregator):
        del aggregator.sources["zillow"]
        resp = client.get("/api/v1/analysis/rental-rate", params={"zip_code": "43215"})
        assert resp.status_code == 502


class TestSection8Route:
    @pytest.fixture
    def hud(self, section8):
        hud = AsyncMock()
        hud.get_fmr.return_value = section8
        app.dependency_overrides[get_hud_client] = lambda: hud
        return hud

    def test_fmr_with_eligibility(self, client, hud):
        resp = client.get("/api/v1/section8/fmr", params={"zip_code": "43215", "bedrooms": 3, "rent": 1650})
        assert resp.status_code == 200
        body = resp.json()
        assert Decimal(body["fmr_for_bedrooms"]) == Decimal("1700")
        assert body["eligibility"]["eligible"] is True
        hud.get_fmr.assert_awaited_once_with("43215", 3)

    def test_invalid_zip(self, client, hud):
        assert client.get("/api/v1/section8/fmr", params={"zip_code": "4321"}).status_code == 422

    def test_no_schedule(self, client, hud):
        hud.get_fmr.return_value = None
        assert client.get("/api/v1/section8/fmr", params={"zip_code": "99999"}).status_code == 404

    def test_upstream_failure(self, client, hud):
        hud.get_fmr.side_effect = SourceUnavailable("hud", "HTTP 500")
        assert client.get("/api/v1/section8/fmr", params={"zip_code": "43215"}).status_code == 502
