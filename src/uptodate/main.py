"""FastAPI application factory and entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from uptodate import __version__
from uptodate.config import get_settings
from uptodate.db.engine import dispose_engine, init_db
from uptodate.errors import InvalidPayload, UpstreamError, UptodateError
from uptodate.routers import admin, events, feed, health
from uptodate.services.rate_limit import InMemoryRateLimiter
from uptodate.stores.affinity import KeyedLocks

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown."""
    # Startup
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if settings.environment == "development" else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting Upto Date API v%s in %s mode", __version__, settings.environment)

    # Reject insecure settings in production
    settings.validate_production()

    # Create tables (for SQLite dev mode; production uses Alembic migrations)
    if settings.environment == "development":
        await init_db()
        logger.info("Database tables created/verified")

    yield

    # Shutdown
    await dispose_engine()
    logger.info("Upto Date API shut down")


def _wants_debug(request: Request) -> bool:
    """Verbose errors only when the operator enabled them and the caller asked."""
    if not get_settings().expose_error_details:
        return False
    return request.query_params.get("debug") in ("1", "true")


async def handle_domain_error(request: Request, exc: UptodateError) -> JSONResponse:
    body = {"error": exc.kind, "detail": exc.message}
    if isinstance(exc, UpstreamError) and _wants_debug(request):
        body["upstreamStatus"] = exc.upstream_status
        body["upstreamMessage"] = exc.upstream_message
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc)
    return JSONResponse(status_code=exc.status_code, content=body)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = InvalidPayload()
    return JSONResponse(
        status_code=error.status_code,
        content={
            "error": error.kind,
            "detail": error.message,
            "fields": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg", "")}
                for e in exc.errors()
            ],
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    # Disable interactive docs in production to reduce attack surface
    docs_url = "/docs" if settings.environment == "development" else None
    redoc_url = "/redoc" if settings.environment == "development" else None
    openapi_url = "/openapi.json" if settings.environment == "development" else None

    app = FastAPI(
        title="Upto Date API",
        description="Location-aware daily topic feed",
        version=__version__,
        lifespan=lifespan,
        docs_url=docs_url,
        redoc_url=redoc_url,
        openapi_url=openapi_url,
    )

    # Explicit per-app state; nothing here is a module-level singleton
    app.state.affinity_locks = KeyedLocks()
    app.state.feed_limiter = InMemoryRateLimiter(
        max_requests=settings.feed_rate_limit_per_minute, window_seconds=60
    )
    app.state.events_limiter = InMemoryRateLimiter(
        max_requests=settings.events_rate_limit_per_minute, window_seconds=60
    )

    origins = [o.strip() for o in settings.cors_origins.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Security headers middleware
    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Cache-Control"] = "no-store"
        return response

    app.add_exception_handler(UptodateError, handle_domain_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    # Include routers
    app.include_router(health.router)
    app.include_router(feed.router)
    app.include_router(events.router)
    app.include_router(admin.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "uptodate.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=(settings.environment == "development"),
    )
