"""
FastAPI application entry point.

Main API server for the TradeMind portfolio tracker.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trademind.core.config import settings
from trademind.core.database import close_db, init_db
from trademind.core.exceptions import (
    InvalidArgument,
    MarketDataUnavailable,
    NotFound,
    PersistenceUnavailable,
)
from trademind.core.logging import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Portfolio tracker with position ledger and fail-soft market data",
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


@app.exception_handler(InvalidArgument)
async def invalid_argument_handler(request: Request, exc: InvalidArgument) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PersistenceUnavailable)
@app.exception_handler(MarketDataUnavailable)
async def unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.on_event("startup")
async def startup() -> None:
    """Run on application startup."""
    try:
        await init_db()
    except Exception as exc:
        # Holdings are served from the local store until the database is back
        logger.warning(f"Database unavailable at startup, running degraded: {exc}")


@app.on_event("shutdown")
async def shutdown() -> None:
    """Run on application shutdown."""
    if get_market_data_service.cache_info().currsize:
        await get_market_data_service().close()
    await close_db()


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


from trademind.api.deps import get_market_data_service  # noqa: E402
from trademind.api.holdings import router as holdings_router  # noqa: E402
from trademind.api.market import router as market_router  # noqa: E402

app.include_router(holdings_router, prefix="/api/v1/holdings", tags=["holdings"])
app.include_router(market_router, prefix="/api/v1/market", tags=["market"])
