"""
Main FastAPI application for the wagerbook ingestion and settlement engine.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from prometheus_fastapi_instrumentator import Instrumentator

from wagerbook.core.config import settings
from wagerbook.core.database import init_db
from wagerbook.core.logging import configure_logging, get_logger
from wagerbook.core.middleware import CorrelationIdMiddleware
from wagerbook.core import metrics
from wagerbook.api.routes import engine, games, users, wagers

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


def get_rate_limit_key(request: Request) -> str:
    """
    Get the rate limit key for a request.

    Uses IP address, with fallback to X-Forwarded-For for proxied requests.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_rate_limit_key,
    default_limits=["60/minute"],
    enabled=settings.RATE_LIMIT_ENABLED and not settings.is_test(),
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan events."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    init_db()

    if settings.SCHEDULER_ENABLED:
        from wagerbook.core.scheduler import start_scheduler
        await start_scheduler()
        logger.info("Engine scheduler started")
    metrics.update_scheduler_metrics()

    logger.info("Application started")

    yield

    from wagerbook.core.scheduler import stop_scheduler
    await stop_scheduler()
    metrics.update_scheduler_metrics()
    logger.info("Shutting down application")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Feed ingestion, game lifecycle and exactly-once wager settlement",
    lifespan=lifespan
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Correlation ID middleware (added before CORS so the header survives)
app.add_middleware(CorrelationIdMiddleware)

# Prometheus metrics must be initialized before routes are included
instrumentator = Instrumentator()
instrumentator.instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(games.router, prefix="/api")
app.include_router(wagers.router, prefix="/api")
app.include_router(users.router, prefix="/api")
app.include_router(engine.router, prefix="/api")


@app.get("/health")
@limiter.limit("120/minute")
async def health_check(request: Request):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "wagerbook.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
