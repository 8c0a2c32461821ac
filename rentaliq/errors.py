"""Error taxonomy for aggregation and valuation.

Adapter-level errors (SourceUnavailable, RateLimited) never escape a search;
the aggregator folds them into SourceFailure entries. InsufficientComparables
fails a single subject's CMA. InvalidQuery fails before any work starts.
"""


class RentalIQError(Exception):
    """Base class for all engine errors."""


class SourceUnavailable(RentalIQError):
    """A listing source failed or timed out."""

    kind = "unavailable"

    def __init__(self, source: str, reason: str = ""):
        self.source = source
        self.reason = reason
        super().__init__(f"{source} unavailable: {reason}" if reason else f"{source} unavailable")


class RateLimited(SourceUnavailable):
    """A source answered with HTTP 429 (or equivalent)."""

    kind = "rate_limited"

    def __init__(self, source: str, reason: str = "rate limited"):
        super().__init__(source, reason)


class InsufficientComparables(RentalIQError):
    """No usable comparables after full radius expansion."""

    def __init__(
        self,
        subject_id: str,
        mode: str = "sale",
        max_radius_miles: float | None = None,
        degraded_sources: list[str] | None = None,
    ):
        self.subject_id = subject_id
        self.mode = mode
        self.max_radius_miles = max_radius_miles
        # Sources that failed while the comparable pool was fetched
        self.degraded_sources = list(degraded_sources or [])
        where = f" within {max_radius_miles:g} mi" if max_radius_miles is not None else ""
        message = f"No {mode} comparables found for {subject_id}{where}"
        if self.degraded_sources:
            message += f" (degraded sources: {', '.join(self.degraded_sources)})"
        super().__init__(message)


class InvalidQuery(RentalIQError):
    """Required fields are missing from a search query or subject."""

    def __init__(self, missing_fields: list[str], message: str = ""):
        self.missing_fields = list(missing_fields)
        super().__init__(message or f"Missing required fields: {', '.join(self.missing_fields)}")
