"""Tests for crime scoring, trends and the incident client."""

from datetime import date, timedelta

import httpx
import pytest

from rentaliq.data.crime import (
    MAX_INCIDENTS,
    NO_DATA_SCORE,
    CrimeClient,
    build_profile,
    classify_severity,
    crime_score,
    crime_trends,
)
from rentaliq.errors import SourceUnavailable
from rentaliq.models.neighborhood import CrimeIncident, CrimeSeverity


def incident(crime_type, days_ago=30, as_of=date(2025, 6, 1)):
    return CrimeIncident(
        type=crime_type,
        date=as_of - timedelta(days=days_ago),
        description="",
        severity=classify_severity(crime_type),
    )


class TestSeverity:
    @pytest.mark.parametrize("crime_type,severity", [
        ("Aggravated Assault", CrimeSeverity.HIGH),
        ("ROBBERY", CrimeSeverity.HIGH),
        ("Vehicle Theft", CrimeSeverity.MEDIUM),
        ("Burglary", CrimeSeverity.MEDIUM),
        ("Noise Complaint", CrimeSeverity.LOW),
    ])
    def test_classify(self, crime_type, severity):
        assert classify_severity(crime_type) == severity


class TestScore:
    def test_weighted_half_rounds_up(self):
        incidents = [incident(t) for t in (
            "Assault", "Robbery", "Shooting", "Burglary", "Theft", "Noise Complaint",
        )]
        # 3 x 10 + 2 x 5 + 1 = 41 -> 20.5
        assert crime_score(incidents) == 21

    def test_capped_at_100(self):
        assert crime_score([incident("Homicide")] * 30) == 100

    def test_no_incidents(self):
        assert crime_score([]) == NO_DATA_SCORE


class TestTrends:
    def test_window_shares(self, as_of):
        incidents = [incident("Theft", days) for days in (30, 120, 200, 300)]
        trends = crime_trends(incidents, as_of)
        assert (trends.change_3m, trends.change_6m, trends.change_12m) == (-50.0, 0.0, 100.0)

    def test_empty(self, as_of):
        trends = crime_trends([], as_of)
        assert (trends.change_3m, trends.change_6m, trends.change_12m) == (0.0, 0.0, 0.0)


class TestProfile:
    def test_keeps_newest_incidents(self, as_of):
        incidents = [incident("Theft", days) for days in range(60, 0, -1)]
        profile = build_profile(incidents, as_of)
        assert profile.total_incidents == 60
        assert len(profile.incidents) == MAX_INCIDENTS
        assert profile.incidents[0].date == as_of - timedelta(days=1)


class TestCrimeClient:
    async def test_fetches_and_scores(self):
        payload = {"crimes": [
            {"type": "Robbery", "timestamp": "2025-05-01T22:10:00Z", "description": "Street robbery"},
            {"type": "Theft", "date": "2025-04-11"},
            {"description": "no type"},
        ]}
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            seen["key"] = request.headers["X-API-Key"]
            return httpx.Response(200, json=payload)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            crime = CrimeClient(client, api_key="k", base_url="https://crime.test/api/crimes")
            profile = await crime.get_crime_profile(39.9612, -82.9988)

        assert seen["lat"] == "39.9612"
        assert seen["key"] == "k"
        assert profile.total_incidents == 2
        assert profile.score == 8  # (10 + 5) / 2
        assert profile.incidents[0].type == "Robbery"

    async def test_missing_api_key(self):
        async with httpx.AsyncClient() as client:
            with pytest.raises(SourceUnavailable):
                await CrimeClient(client, api_key="").get_crime_profile(39.96, -82.99)

    async def test_unexpected_payload(self):
        async with httpx.AsyncClient(transport=httpx.MockTransport(
            lambda r: httpx.Response(200, json={"error": "bad key"})
        )) as client:
            with pytest.raises(SourceUnavailable):
                await CrimeClient(client, api_key="k", base_url="https://crime.test").get_crime_profile(1, 2)
