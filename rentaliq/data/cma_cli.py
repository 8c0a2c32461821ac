"""CLI for generating a CMA for one address.

Usage:
    python -m rentaliq.data.cma_cli "123 Main St, Columbus, OH 43215" --beds 3 --baths 2 --sqft 1500
    python -m rentaliq.data.cma_cli "..." --type condo --sources zillow realtor
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal

import httpx

from rentaliq.config import settings
from rentaliq.data.aggregator import PropertyAggregator, build_sources
from rentaliq.data.cma_service import CMAService
from rentaliq.data.crime import CrimeClient
from rentaliq.data.geocode import CensusGeocoder
from rentaliq.data.hud import HUDClient
from rentaliq.data.parsing import split_address_line
from rentaliq.errors import InsufficientComparables, InvalidQuery
from rentaliq.models.cma import CMAReport
from rentaliq.models.property import Address, PropertyType, SubjectProperty


def print_report(report: CMAReport) -> None:
    v = report.valuation
    print(f"\n{'=' * 60}")
    print(f"  CMA: {report.subject_id}")
    print(f"{'=' * 60}")
    print(f"  Estimated Value:  ${v.estimate:,.0f}")
    print(f"  Range:            ${v.value_low:,.0f} - ${v.value_high:,.0f}")
    print(f"  Confidence:       {v.confidence_label} ({v.confidence:.1%})")
    print(f"  Price/sqft:       ${v.price_per_sqft:,.2f}")
    rent = f"${report.estimated_rent:,.0f}/mo" if report.estimated_rent is not None else "N/A"
    print(f"  Estimated Rent:   {rent}")
    if report.degraded_sources:
        print(f"  Degraded:         {', '.join(report.degraded_sources)}")
    print()

    for comp, weight in zip(v.comparables, v.weights):
        print(
            f"  {weight:6.1%}  ${comp.price:>11,.0f}  {comp.sqft:>5} sqft  "
            f"{comp.distance_miles:4.2f} mi  {comp.event_date}  {comp.address}"
        )
    print()
    for line in report.recommendation.text.splitlines():
        print(f"  {line}")
    print()


async def main() -> int:
    parser = argparse.ArgumentParser(description="Comparative market analysis CLI")
    parser.add_argument("address", help="Property address, e.g. '123 Main St, Columbus, OH 43215'")
    parser.add_argument("--beds", type=int, default=3, help="Number of bedrooms (default: 3)")
    parser.add_argument("--baths", type=Decimal, default=Decimal("2"), help="Number of bathrooms (default: 2)")
    parser.add_argument("--sqft", type=int, required=True, help="Square footage")
    parser.add_argument("--type", dest="property_type", default="single_family", help="Property type (default: single_family)")
    parser.add_argument("--sources", nargs="*", help="Listing sources (default: all enabled)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    property_type = PropertyType.from_string(args.property_type)
    if property_type is None:
        parser.error(f"unknown property type: {args.property_type}")

    street, city, state, zip_code = split_address_line(args.address)
    subject = SubjectProperty(
        address=Address(street=street, city=city, state=state, zip_code=zip_code),
        bedrooms=args.beds,
        bathrooms=args.baths,
        sqft=args.sqft,
        property_type=property_type,
    )

    async with httpx.AsyncClient(timeout=settings.source_timeout_seconds) as client:
        service = CMAService(
            PropertyAggregator(build_sources(client, args.sources)),
            geocoder=CensusGeocoder(client),
            crime=CrimeClient(client),
            fmr=HUDClient(client),
        )
        try:
            report = await service.generate_cma(subject)
        except InsufficientComparables as e:
            print(f"No estimate: {e}", file=sys.stderr)
            return 2
        except InvalidQuery as e:
            print(f"Invalid request: {e}", file=sys.stderr)
            return 1

    print_report(report)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
