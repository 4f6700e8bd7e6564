"""FastAPI application entrypoint for the e-commerce search API."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from starlette.concurrency import run_in_threadpool
import uvicorn

from app.api.admin import router as admin_router
from app.api.placeholders import router as placeholders_router
from app.api.system import AVAILABLE_ENDPOINTS
from app.api.system import API_VERSION
from app.api.system import router as system_router
from app.core.config import Settings
from app.core.config import get_settings
from app.core.errors import ErrorNormalizer
from app.core.errors import register_error_handlers
from app.core.logging import configure_logging
from app.core.middleware import RequestLoggingMiddleware
from app.core.middleware import SecurityHeadersMiddleware
from app.core.rate_limiting import ApiRateLimitMiddleware
from app.core.rate_limiting import build_limiter
from app.db.base import build_engine
from app.db.base import close_connection
from app.db.base import verify_connection
from app.search.client import build_search_client
from app.search.client import verify_search_connection

logger = logging.getLogger(__name__)

CORS_METHODS = ["GET", "POST", "PUT", "DELETE"]
CORS_HEADERS = ["Content-Type", "Authorization"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Verify backends on startup and release them on shutdown."""
    settings: Settings = app.state.settings
    if settings.startup_checks:
        await run_in_threadpool(verify_connection, app.state.engine)
        await run_in_threadpool(verify_search_connection, app.state.search_client)
    logger.info("E-Commerce Search API ready: environment=%s port=%s", settings.app_env, settings.port)

    yield

    logger.info("Shutting down")
    close_connection(app.state.engine)
    app.state.search_client.close()


def _cors_origins(settings: Settings) -> list[str]:
    raw = settings.api.cors_origin.strip()
    if raw == "*":
        return ["*"]
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Middleware runs outer to inner as: CORS, GZip, security headers,
    request logging, rate limiting, terminal error handling.
    """
    settings = settings or get_settings()
    configure_logging(level=settings.logging.level, log_file=settings.logging.file)

    app = FastAPI(
        title="E-Commerce Search API",
        description="Comparing Elasticsearch vs SQL search performance",
        version=API_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.search_client = build_search_client(settings)
    app.state.limiter = build_limiter()

    # Registered first so the terminal error stage is the innermost middleware.
    register_error_handlers(
        app,
        ErrorNormalizer(debug=settings.is_development),
        available_endpoints=AVAILABLE_ENDPOINTS,
    )

    app.add_middleware(ApiRateLimitMiddleware, limiter=app.state.limiter, rate_limit=settings.api.rate_limit)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    if settings.performance.enable_compression:
        app.add_middleware(GZipMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_methods=CORS_METHODS,
        allow_headers=CORS_HEADERS,
    )

    app.include_router(system_router)
    app.include_router(admin_router)
    app.include_router(placeholders_router)
    return app


def main() -> None:
    """Run the API with uvicorn on the configured port."""
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
