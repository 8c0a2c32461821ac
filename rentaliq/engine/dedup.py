"""Entity resolution: merge raw per-source listings into canonical properties.

Pipeline: normalize address -> blocking key -> pairwise similarity inside each
block -> single-linkage clustering (union-find) -> per-field resolution by
source priority.

Clustering runs over the underlying raw records, never over already-merged
summaries, so merging a canonical set again yields the same set, and record
order is fixed by (source, external_id) so input order never matters.
"""

import hashlib
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from rapidfuzz.distance import Levenshtein

from rentaliq.config import settings
from rentaliq.engine.geo import haversine_miles
from rentaliq.engine.normalize import blocking_key, extract_unit, normalize_address
from rentaliq.models.property import (
    Address,
    CanonicalProperty,
    ListingStatus,
    RawListing,
    ResolvedField,
    SourceRef,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedupConfig:
    threshold: float = 0.85
    source_priority: tuple[str, ...] = ()
    address_weight: float = 0.5
    attribute_weight: float = 0.3
    geo_weight: float = 0.2
    geo_scale_miles: float = 0.25  # distance at which geo similarity reaches 0
    sqft_tolerance: float = 0.20  # relative sqft gap at which similarity reaches 0

    @classmethod
    def from_settings(cls) -> "DedupConfig":
        return cls(
            threshold=settings.dedup_threshold,
            source_priority=tuple(settings.source_priority),
        )


class UnionFind:
    """Disjoint-set data structure with path compression."""

    def __init__(self, size: int) -> None:
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, x: int) -> int:
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x: int, y: int) -> bool:
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x == root_y:
            return False
        if self.rank[root_x] < self.rank[root_y]:
            root_x, root_y = root_y, root_x
        self.parent[root_y] = root_x
        if self.rank[root_x] == self.rank[root_y]:
            self.rank[root_x] += 1
        return True

    def groups(self) -> dict[int, list[int]]:
        clusters: dict[int, list[int]] = defaultdict(list)
        for idx in range(len(self.parent)):
            clusters[self.find(idx)].append(idx)
        return clusters


# ── Pairwise similarity ───────────────────────────────────────────

def _attribute_similarity(a: RawListing, b: RawListing, config: DedupConfig) -> Optional[float]:
    parts: list[float] = []

    if a.bedrooms is not None and b.bedrooms is not None:
        diff = abs(a.bedrooms - b.bedrooms)
        parts.append(1.0 if diff == 0 else 0.5 if diff == 1 else 0.0)

    if a.bathrooms is not None and b.bathrooms is not None:
        diff = float(abs(a.bathrooms - b.bathrooms))
        parts.append(max(0.0, 1.0 - diff / 2))

    if a.sqft and b.sqft:
        rel = abs(a.sqft - b.sqft) / max(a.sqft, b.sqft)
        parts.append(max(0.0, 1.0 - rel / config.sqft_tolerance))

    if not parts:
        return None
    return sum(parts) / len(parts)


def similarity(a: RawListing, b: RawListing, config: DedupConfig = DedupConfig()) -> float:
    """Similarity in [0, 1]. Components without data on both sides are dropped."""
    unit_a = extract_unit(a.address.street, a.address.unit)
    unit_b = extract_unit(b.address.street, b.address.unit)
    if unit_a and unit_b and unit_a != unit_b:
        return 0.0

    weighted = [
        (
            config.address_weight,
            Levenshtein.normalized_similarity(normalize_address(a.address), normalize_address(b.address)),
        )
    ]

    attrs = _attribute_similarity(a, b, config)
    if attrs is not None:
        weighted.append((config.attribute_weight, attrs))

    if a.address.has_coordinates and b.address.has_coordinates:
        miles = haversine_miles(
            a.address.latitude, a.address.longitude,
            b.address.latitude, b.address.longitude,
        )
        weighted.append((config.geo_weight, max(0.0, 1.0 - miles / config.geo_scale_miles)))

    total_weight = sum(w for w, _ in weighted)
    return sum(w * s for w, s in weighted) / total_weight


# ── Field resolution ──────────────────────────────────────────────

_FIELDS: dict[str, Callable[[RawListing], Any]] = {
    "street": lambda r: r.address.street or None,
    "unit": lambda r: r.address.unit or None,
    "city": lambda r: r.address.city or None,
    "state": lambda r: r.address.state or None,
    "zip_code": lambda r: r.address.zip_code or None,
    "property_type": lambda r: r.property_type,
    "bedrooms": lambda r: r.bedrooms,
    "bathrooms": lambda r: r.bathrooms,
    "sqft": lambda r: r.sqft or None,
    "lot_sqft": lambda r: r.lot_sqft or None,
    "year_built": lambda r: r.year_built or None,
    "source_url": lambda r: r.source_url,
}

# Fields that must come from the same record to stay consistent
# (a sold price must not pair with another source's listing status).
_GROUPS: dict[str, Callable[[RawListing], dict[str, Any]]] = {
    "coordinates": lambda r: (
        {"latitude": r.address.latitude, "longitude": r.address.longitude}
        if r.address.has_coordinates else {}
    ),
    "listing": lambda r: (
        {
            "price": r.price,
            "status": r.status if r.status != ListingStatus.UNKNOWN else None,
            "event_date": r.event_date,
        }
        if r.price is not None else {}
    ),
}


def _priority_rank(source: str, priority: tuple[str, ...]) -> int:
    try:
        return priority.index(source)
    except ValueError:
        return len(priority)


def resolution_order(records: Iterable[RawListing], priority: tuple[str, ...]) -> list[RawListing]:
    """Most trusted source first; ties go to the most recently fetched record."""
    return sorted(
        records,
        key=lambda r: (
            _priority_rank(r.source, priority),
            -r.fetched_at.timestamp(),
            r.source,
            r.external_id,
        ),
    )


def _copy_rank(rec: RawListing) -> tuple:
    """Orders copies of one SourceRef: latest fetch wins, then record content."""
    return (
        rec.fetched_at,
        str(rec.price),
        str(rec.event_date),
        rec.status.value,
        str(rec.sqft),
        str(rec.bedrooms),
        str(rec.bathrooms),
        rec.address.street,
        rec.address.unit,
        str(rec.address.latitude),
        str(rec.address.longitude),
    )


def canonical_id_for(refs: Iterable[SourceRef]) -> str:
    digest = hashlib.sha1("|".join(sorted(str(r) for r in refs)).encode()).hexdigest()
    return f"cp_{digest[:16]}"


def build_canonical(records: Iterable[RawListing], config: DedupConfig = DedupConfig()) -> CanonicalProperty:
    ordered = resolution_order(records, config.source_priority)
    if not ordered:
        raise ValueError("A canonical property needs at least one record")

    fields: dict[str, ResolvedField] = {}
    for name, getter in _FIELDS.items():
        for rec in ordered:
            value = getter(rec)
            if value is not None:
                fields[name] = ResolvedField(value, rec.ref)
                break

    for getter in _GROUPS.values():
        for rec in ordered:
            values = getter(rec)
            if values:
                for name, value in values.items():
                    if value is not None:
                        fields[name] = ResolvedField(value, rec.ref)
                break

    images: list[str] = []
    for rec in ordered:
        for url in rec.image_urls:
            if url not in images:
                images.append(url)

    refs = frozenset(r.ref for r in ordered)
    resolved_address = Address(
        street=fields["street"].value if "street" in fields else "",
        zip_code=fields["zip_code"].value if "zip_code" in fields else "",
    )
    return CanonicalProperty(
        canonical_id=canonical_id_for(refs),
        source_refs=refs,
        records=tuple(sorted(ordered, key=lambda r: (r.source, r.external_id))),
        normalized_address=normalize_address(resolved_address),
        fields=fields,
        image_urls=tuple(images),
    )


# ── Deduplicator ──────────────────────────────────────────────────

class Deduplicator:
    def __init__(self, config: DedupConfig | None = None):
        self.config = config or DedupConfig.from_settings()

    def dedup(self, listings: Iterable[RawListing]) -> list[CanonicalProperty]:
        """Merge raw listings from any number of sources into canonical properties."""
        return self.merge([build_canonical([listing], self.config) for listing in listings])

    def merge(self, properties: Iterable[CanonicalProperty]) -> list[CanonicalProperty]:
        """Re-cluster canonical properties; existing groupings are never split."""
        by_ref: dict[SourceRef, RawListing] = {}
        links: list[tuple[SourceRef, SourceRef]] = []
        for prop in properties:
            anchor = min(prop.source_refs)
            for rec in prop.records:
                current = by_ref.get(rec.ref)
                if current is None or _copy_rank(rec) > _copy_rank(current):
                    by_ref[rec.ref] = rec
                links.append((anchor, rec.ref))

        refs = sorted(by_ref)
        records = [by_ref[ref] for ref in refs]
        index = {ref: i for i, ref in enumerate(refs)}
        uf = UnionFind(len(records))

        for anchor, ref in links:
            uf.union(index[anchor], index[ref])

        blocks: dict[str, list[int]] = defaultdict(list)
        for i, rec in enumerate(records):
            blocks[blocking_key(rec.address)].append(i)

        comparisons = 0
        for members in blocks.values():
            for pos, i in enumerate(members):
                for j in members[pos + 1:]:
                    if uf.find(i) == uf.find(j):
                        continue
                    comparisons += 1
                    if similarity(records[i], records[j], self.config) >= self.config.threshold:
                        uf.union(i, j)

        merged = [
            build_canonical([records[i] for i in members], self.config)
            for members in uf.groups().values()
        ]
        merged.sort(key=lambda p: p.canonical_id)

        logger.info(
            "Dedup: %d records in %d blocks -> %d properties (%d comparisons)",
            len(records), len(blocks), len(merged), comparisons,
        )
        return merged
