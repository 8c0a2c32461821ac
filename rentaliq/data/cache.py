"""Redis cache for serialized CMA reports.

Reports are keyed by a content hash of the subject, the comparable pools and
the as-of date, so a cached report is only reused when every input matches.
Redis failures are logged and treated as a cache miss.
"""

import hashlib
import json
import logging
from datetime import date
from typing import Any

import redis.asyncio as redis

from rentaliq.config import settings
from rentaliq.models.property import CanonicalProperty, SubjectProperty

logger = logging.getLogger(__name__)

KEY_PREFIX = "rentaliq:cma"


def _pool_fingerprint(pool: list[CanonicalProperty]) -> list:
    return [
        [
            prop.canonical_id,
            [
                [str(r.ref), str(r.price), r.status.value, str(r.event_date), r.sqft,
                 r.bedrooms, str(r.bathrooms), r.address.latitude, r.address.longitude]
                for r in prop.records
            ],
        ]
        for prop in sorted(pool, key=lambda p: p.canonical_id)
    ]


def report_cache_key(
    subject: SubjectProperty,
    sold: list[CanonicalProperty],
    rentals: list[CanonicalProperty],
    as_of: date,
) -> str:
    """Generate a deterministic cache key from every input to a report."""
    addr = subject.address
    raw = json.dumps(
        {
            "subject": [
                subject.identifier, addr.street, addr.unit, addr.zip_code,
                addr.latitude, addr.longitude, subject.bedrooms, str(subject.bathrooms),
                subject.sqft, subject.property_type.value,
            ],
            "sold": _pool_fingerprint(sold),
            "rentals": _pool_fingerprint(rentals),
            "as_of": as_of.isoformat(),
        },
        sort_keys=True,
        default=str,
    )
    h = hashlib.sha256(raw.encode()).hexdigest()[:32]
    return f"{KEY_PREFIX}:{h}"


class ReportCache:
    def __init__(self, client: redis.Redis, ttl_seconds: int | None = None):
        self.client = client
        self.ttl_seconds = ttl_seconds or settings.report_cache_ttl_seconds

    @classmethod
    def from_url(cls, url: str | None = None) -> "ReportCache":
        return cls(redis.from_url(url or settings.redis_url, decode_responses=True))

    async def get(self, key: str) -> dict[str, Any] | None:
        try:
            cached_value = await self.client.get(key)
        except redis.RedisError as e:
            logger.warning("Redis unavailable, skipping cache read for %s: %s", key, e)
            return None
        if cached_value is None:
            return None
        logger.debug("Cache hit: %s", key)
        return json.loads(cached_value)

    async def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            await self.client.setex(key, self.ttl_seconds, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning("Failed to write cache for %s: %s", key, e)

    async def close(self) -> None:
        await self.client.aclose()
