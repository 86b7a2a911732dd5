"""
CRM dashboard backend.
Wires the CRM client, fetchers and dashboard service into the FastAPI app.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.routes import health, metrics
from app.services.crm.client import CrmApiClient
from app.services.crm.fetchers import build_fetchers
from app.services.metrics.dashboard_service import DashboardService

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared CRM client on startup and release it on shutdown."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        api_generation=settings.GHL_API_GENERATION,
    )

    try:
        client = CrmApiClient(settings)
    except ValueError as e:
        logger.error("Invalid CRM configuration", error=str(e))
        raise

    fetchers = build_fetchers(settings, client)

    app.state.fetchers = fetchers
    app.state.dashboard_service = DashboardService(fetchers, settings)

    yield

    logger.info("Application shutting down")
    try:
        await client.close()
    except Exception as e:
        logger.error("Error closing CRM client", error=str(e))


app = FastAPI(
    title="CRM Dashboard",
    description="Dashboard metrics aggregated from the GoHighLevel CRM API",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(metrics.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
