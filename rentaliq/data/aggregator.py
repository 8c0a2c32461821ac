"""Concurrent multi-source search: fan out, time-box each source, dedup.

Each requested source runs in its own task under `asyncio.wait_for`; the
results are gathered with `return_exceptions=True` so one failing source
never cancels the others. Failures become SourceFailure entries on the
SearchResult instead of exceptions.
"""

import asyncio
import logging
from typing import Iterable

import httpx

from rentaliq.config import settings
from rentaliq.data.base import ListingSource
from rentaliq.data.realtor import RealtorSource
from rentaliq.data.rentcast import RentCastSource
from rentaliq.data.zillow import ZillowSource
from rentaliq.engine.dedup import Deduplicator
from rentaliq.errors import InvalidQuery, RateLimited, SourceUnavailable
from rentaliq.models.property import CanonicalProperty, RawListing, SearchQuery
from rentaliq.models.search import FailureKind, SearchResult, SourceFailure

logger = logging.getLogger(__name__)

SOURCE_FACTORIES = {
    "zillow": ZillowSource,
    "realtor": RealtorSource,
    "rentcast": RentCastSource,
}


def build_sources(client: httpx.AsyncClient, names: Iterable[str] | None = None) -> list[ListingSource]:
    """Instantiate the named adapters (default: settings.enabled_sources) on a shared client."""
    names = list(names) if names is not None else settings.enabled_sources
    sources = []
    for name in names:
        factory = SOURCE_FACTORIES.get(name)
        if factory is None:
            logger.warning("Unknown listing source in configuration: %s", name)
            continue
        sources.append(factory(client))
    return sources


def _failure_for(source: str, error: BaseException, timeout: float) -> SourceFailure:
    if isinstance(error, asyncio.TimeoutError):
        return SourceFailure(source, FailureKind.TIMEOUT, f"no response within {timeout:g}s")
    if isinstance(error, RateLimited):
        return SourceFailure(source, FailureKind.RATE_LIMITED, error.reason)
    if isinstance(error, SourceUnavailable):
        kind = FailureKind.TIMEOUT if error.reason == "timeout" else FailureKind.UNAVAILABLE
        return SourceFailure(source, kind, error.reason)
    return SourceFailure(source, FailureKind.UNAVAILABLE, f"{error.__class__.__name__}: {error}")


def within_bounds(prop: CanonicalProperty, query: SearchQuery) -> bool:
    """Price, bedroom and type bounds; a bounded field with no value fails the bound."""
    if query.min_price is not None and (prop.price is None or prop.price < query.min_price):
        return False
    if query.max_price is not None and (prop.price is None or prop.price > query.max_price):
        return False
    if query.min_bedrooms is not None and (prop.bedrooms is None or prop.bedrooms < query.min_bedrooms):
        return False
    if query.max_bedrooms is not None and (prop.bedrooms is None or prop.bedrooms > query.max_bedrooms):
        return False
    if query.property_type is not None and prop.property_type != query.property_type:
        return False
    return True


class PropertyAggregator:
    def __init__(
        self,
        sources: Iterable[ListingSource],
        deduplicator: Deduplicator | None = None,
        timeout_seconds: float | None = None,
    ):
        self.sources: dict[str, ListingSource] = {s.name: s for s in sources}
        self.deduplicator = deduplicator or Deduplicator()
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.source_timeout_seconds

    async def search(self, query: SearchQuery) -> SearchResult:
        """Search every requested source and merge the results.

        Raises InvalidQuery when the query has no usable location. Source
        failures never raise; they are reported on the result.
        """
        missing = query.missing_fields()
        if missing:
            raise InvalidQuery(missing)

        requested = list(dict.fromkeys(query.sources)) or list(self.sources)
        failures: list[SourceFailure] = []
        active: list[ListingSource] = []
        for name in requested:
            source = self.sources.get(name)
            if source is None:
                failures.append(SourceFailure(name, FailureKind.SKIPPED, "unknown source"))
            else:
                active.append(source)

        results = await asyncio.gather(
            *(self._fetch(source, query) for source in active),
            return_exceptions=True,
        )

        listings: list[RawListing] = []
        for source, result in zip(active, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                failure = _failure_for(source.name, result, self.timeout_seconds)
                logger.warning("Source %s degraded (%s): %s", source.name, failure.kind.value, failure.detail)
                failures.append(failure)
            else:
                listings.extend(result)

        properties = [p for p in self.deduplicator.dedup(listings) if within_bounds(p, query)]
        logger.info(
            "Search %s (%s): %d listings from %d/%d sources -> %d properties",
            query.location, query.kind.value, len(listings),
            len(active) - sum(1 for f in failures if f.kind != FailureKind.SKIPPED),
            len(requested), len(properties),
        )
        return SearchResult(
            properties=properties,
            failures=failures,
            sources_queried=tuple(requested),
        )

    async def _fetch(self, source: ListingSource, query: SearchQuery) -> list[RawListing]:
        listings = await asyncio.wait_for(source.fetch(query), timeout=self.timeout_seconds)
        # only records tagged with this source
        return [r for r in listings if r.source == source.name]
