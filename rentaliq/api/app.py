"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rentaliq.api.routes import analysis, cma, search, section8
from rentaliq.config import settings
from rentaliq.data.cache import ReportCache

logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One pooled client per process; each source still gets its own time box
    app.state.http_client = httpx.AsyncClient(timeout=settings.source_timeout_seconds)
    app.state.report_cache = ReportCache.from_url() if settings.report_cache_enabled else None
    logger.info("Enabled listing sources: %s", ", ".join(settings.enabled_sources))
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        if app.state.report_cache is not None:
            await app.state.report_cache.close()


app = FastAPI(
    title="RentalIQ",
    description="Property aggregation and comparative market analysis",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router)
app.include_router(cma.router)
app.include_router(section8.router)
app.include_router(analysis.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
