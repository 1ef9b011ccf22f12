"""
FastAPI application factory with New Relic APM, CORS, lifespan, and all routers.
"""
import logging
import os

# New Relic must be initialized BEFORE any other imports that it instruments.
if os.getenv("NEW_RELIC_LICENSE_KEY"):
    import newrelic.agent
    newrelic.agent.initialize("newrelic.ini")

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetdesk.config import get_settings
from fleetdesk.redis_client import get_redis, close_redis
from fleetdesk.routers import analytics, consignments, deviations, drivers, settlements, trips
from fleetdesk.services.errors import FleetError

settings = get_settings()
logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s [%s]", settings.app_name, settings.env)
    await get_redis()
    yield
    await close_redis()
    logger.info("%s stopped", settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="Fleet operations backend: trip settlement, route deviation, analytics",
    lifespan=lifespan,
)

# CORS (admin web app + driver app)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Domain errors carry a stable code; map it to an HTTP status
_NOT_FOUND_CODES = {"trip_not_found", "consignment_not_found", "vehicle_not_found", "driver_not_found"}
_CONFLICT_CODES = {
    "trip_already_closed",
    "consignment_not_pending",
    "vehicle_unavailable",
    "driver_unavailable",
    "duplicate_consignment_code",
}


@app.exception_handler(FleetError)
async def fleet_error_handler(request: Request, exc: FleetError):
    if exc.code in _NOT_FOUND_CODES:
        code = status.HTTP_404_NOT_FOUND
    elif exc.code == "trip_mismatch":
        code = status.HTTP_403_FORBIDDEN
    elif exc.code in _CONFLICT_CODES:
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    logger.warning("Rejected %s %s code=%s: %s", request.method, request.url.path, exc.code, exc.message)
    return JSONResponse(status_code=code, content={"detail": exc.message, "code": exc.code})


# Global error handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url, exc, exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Health check (no auth)
@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok"}


# Register routers
app.include_router(consignments.router)
app.include_router(trips.router)
app.include_router(drivers.router)
app.include_router(deviations.router)
app.include_router(settlements.router)
app.include_router(analytics.router)
