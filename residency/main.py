"""
Residency Booking API - Main Application Entry Point

Booking and payment reconciliation core for a student residence:
- Server-side pricing from trusted catalog rows
- Double-booking prevention with a PostgreSQL exclusion constraint
- Idempotent payment confirmation (signed gateway webhook, staff verification)
- Append-only audit trail, structured logging and Prometheus metrics
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from residency.core.config import get_settings
from residency.core.exceptions import ResidencyError, StoreUnavailable, Unauthorized
from residency.core.logging import setup_logging, get_logger
from residency.core.metrics import metrics_endpoint
from residency.api.router import api_router
from residency.api.middleware import RequestLoggingMiddleware
from residency.db.session import engine
from residency.services.cache_service import get_redis, close_redis, get_cache_stats

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Serving catalog without cache")

    yield

    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Student residency booking and payment reconciliation API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Custom middleware
app.add_middleware(RequestLoggingMiddleware)


@app.exception_handler(ResidencyError)
async def residency_error_handler(request: Request, exc: ResidencyError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    if exc.status_code >= 500:
        logger.error("request_error", code=exc.code.value, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    # Every mutation is a single transaction, so a failed request left nothing behind
    logger.error("store_error", error=str(exc), error_type=type(exc).__name__, exc_info=exc)
    body = StoreUnavailable().to_dict()
    body["retryable"] = True
    return JSONResponse(status_code=StoreUnavailable.status_code, content=body)


# Routes
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
