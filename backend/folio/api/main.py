"""
FastAPI application entry point.

Main API server for the Folio portfolio tracker.
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from folio.core.config import settings
from folio.core.logging import setup_logging
from folio.core.database import close_db
from folio.core.errors import (
    DuplicateHoldingError,
    HoldingNotFoundError,
    InvalidRegionError,
    UpstreamUnavailableError,
)
from folio.core.metrics import metrics
from folio.core.redis import close_redis, get_async_redis

# Setup logging
setup_logging()

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Regional portfolio tracking - valuation and trailing performance",
    debug=settings.DEBUG,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(InvalidRegionError)
async def invalid_region_handler(request: Request, exc: InvalidRegionError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(HoldingNotFoundError)
async def holding_not_found_handler(request: Request, exc: HoldingNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(DuplicateHoldingError)
async def duplicate_holding_handler(request: Request, exc: DuplicateHoldingError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(UpstreamUnavailableError)
async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.on_event("startup")
async def startup() -> None:
    """Run on application startup."""
    # Database schema handled by Alembic
    if settings.METRICS_STREAM_ENABLED:
        metrics.set_redis(get_async_redis())


@app.on_event("shutdown")
async def shutdown() -> None:
    """Run on application shutdown."""
    await close_db()
    await close_redis()


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


from folio.api.portfolio import router as portfolio_router
from folio.api.performance import router as performance_router
from folio.api.metrics import router as metrics_router

app.include_router(portfolio_router, prefix="/api/v1/portfolios", tags=["portfolios"])
app.include_router(performance_router, prefix="/api/v1/performance", tags=["performance"])
app.include_router(metrics_router, prefix="/api/v1/metrics", tags=["metrics"])
