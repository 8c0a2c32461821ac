"""FastAPI dependency injection."""

import httpx
from fastapi import Depends, Request

from rentaliq.data.aggregator import PropertyAggregator, build_sources
from rentaliq.data.cache import ReportCache
from rentaliq.data.cma_service import CMAService
from rentaliq.data.crime import CrimeClient
from rentaliq.data.geocode import CensusGeocoder
from rentaliq.data.hud import HUDClient


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_report_cache(request: Request) -> ReportCache | None:
    return getattr(request.app.state, "report_cache", None)


def get_aggregator(client: httpx.AsyncClient = Depends(get_http_client)) -> PropertyAggregator:
    return PropertyAggregator(build_sources(client))


def get_hud_client(client: httpx.AsyncClient = Depends(get_http_client)) -> HUDClient:
    return HUDClient(client)


def get_cma_service(
    aggregator: PropertyAggregator = Depends(get_aggregator),
    client: httpx.AsyncClient = Depends(get_http_client),
    hud: HUDClient = Depends(get_hud_client),
) -> CMAService:
    return CMAService(
        aggregator,
        geocoder=CensusGeocoder(client),
        crime=CrimeClient(client),
        fmr=hud,
    )
