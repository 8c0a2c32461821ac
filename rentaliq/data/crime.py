"""Crime incident lookup around a point, scored and trended.

Score (0-100, lower is safer):
  each incident weighs 10 (high), 5 (medium) or 1 (low) by severity;
  score = min(100, total weight / 2), or 10 when there are no incidents.

Trends over the last 90/180/365 days:
  ((incidents in window / all incidents) - 0.5) * 200, in -100..+100.
"""

import logging
from datetime import date, timedelta
from typing import Any, Optional

import httpx

from rentaliq.config import settings
from rentaliq.data.http import get_json
from rentaliq.data.parsing import opt_date, opt_str
from rentaliq.errors import SourceUnavailable
from rentaliq.models.neighborhood import CrimeIncident, CrimeProfile, CrimeSeverity, CrimeTrends

logger = logging.getLogger(__name__)

MAX_INCIDENTS = 50
NO_DATA_SCORE = 10

HIGH_SEVERITY = ("homicide", "murder", "assault", "robbery", "rape", "shooting", "arson")
MEDIUM_SEVERITY = ("burglary", "theft", "vehicle theft", "breaking and entering", "vandalism")

SEVERITY_WEIGHTS = {
    CrimeSeverity.HIGH: 10,
    CrimeSeverity.MEDIUM: 5,
    CrimeSeverity.LOW: 1,
}

TREND_WINDOWS_DAYS = (90, 180, 365)


def classify_severity(crime_type: str) -> CrimeSeverity:
    kind = crime_type.lower()
    if any(word in kind for word in HIGH_SEVERITY):
        return CrimeSeverity.HIGH
    if any(word in kind for word in MEDIUM_SEVERITY):
        return CrimeSeverity.MEDIUM
    return CrimeSeverity.LOW


def crime_score(incidents: list[CrimeIncident]) -> int:
    if not incidents:
        return NO_DATA_SCORE
    total = sum(SEVERITY_WEIGHTS[i.severity] for i in incidents)
    # halves round up
    return int(min(100, total / 2) + 0.5)


def crime_trends(incidents: list[CrimeIncident], as_of: date) -> CrimeTrends:
    total = len(incidents)
    if total == 0:
        return CrimeTrends()

    def change(days: int) -> float:
        cutoff = as_of - timedelta(days=days)
        recent = sum(1 for i in incidents if i.date is not None and i.date > cutoff)
        return round((recent / total - 0.5) * 200, 1)

    return CrimeTrends(*(change(days) for days in TREND_WINDOWS_DAYS))


def build_profile(incidents: list[CrimeIncident], as_of: date | None = None) -> CrimeProfile:
    as_of = as_of or date.today()
    newest_first = sorted(incidents, key=lambda i: i.date or date.min, reverse=True)
    return CrimeProfile(
        score=crime_score(incidents),
        total_incidents=len(incidents),
        incidents=newest_first[:MAX_INCIDENTS],
        trends=crime_trends(incidents, as_of),
    )


def _parse_incident(raw: Any) -> Optional[CrimeIncident]:
    if not isinstance(raw, dict):
        return None
    crime_type = opt_str(raw.get("type"))
    if crime_type is None:
        return None
    return CrimeIncident(
        type=crime_type,
        date=opt_date(raw.get("timestamp") or raw.get("date")),
        description=opt_str(raw.get("description")) or "",
        severity=classify_severity(crime_type),
    )


class CrimeClient:
    name = "crime"

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str | None = None,
        base_url: str | None = None,
    ):
        self.client = client
        self.api_key = api_key if api_key is not None else settings.crime_api_key
        self.base_url = base_url or settings.crime_api_url

    async def get_crime_profile(self, latitude: float, longitude: float) -> CrimeProfile:
        if not self.api_key:
            raise SourceUnavailable(self.name, "API key not configured")

        data = await get_json(
            self.client, self.name, self.base_url,
            params={
                "lat": latitude,
                "lng": longitude,
                "distance": settings.crime_radius_miles,
                "days": settings.crime_lookback_days,
            },
            headers={"X-API-Key": self.api_key},
        )
        records = data.get("crimes") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise SourceUnavailable(self.name, "expected a list of incidents")

        incidents = [i for i in (_parse_incident(r) for r in records) if i is not None]
        profile = build_profile(incidents)
        logger.info(
            "Crime near (%.4f, %.4f): %d incidents, score %d",
            latitude, longitude, profile.total_incidents, profile.score,
        )
        return profile
