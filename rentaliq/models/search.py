"""Search result types: canonical properties plus an explicit degradation report."""

from dataclasses import dataclass, field
from enum import Enum

from rentaliq.models.property import CanonicalProperty


class FailureKind(Enum):
    UNAVAILABLE = "unavailable"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class SourceFailure:
    source: str
    kind: FailureKind
    detail: str = ""


@dataclass(frozen=True)
class SearchResult:
    properties: list[CanonicalProperty] = field(default_factory=list)
    failures: list[SourceFailure] = field(default_factory=list)
    sources_queried: tuple[str, ...] = ()

    @property
    def degraded_sources(self) -> list[str]:
        return [f.source for f in self.failures]

    @property
    def is_degraded(self) -> bool:
        return bool(self.failures)

    @property
    def all_failed(self) -> bool:
        """True when no requested source answered."""
        return bool(self.sources_queried) and len(
            {f.source for f in self.failures} & set(self.sources_queried)
        ) == len(self.sources_queried)
