"""
TaskQuest analytics API.

``create_app`` wires the routers, CORS, request tracing and the error
envelopes; ``app`` is the instance served by uvicorn.
"""

import os
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskquest.config import get_settings
from taskquest.connectors.oauth import OAuthExchangeError
from taskquest.routers import (
    ai,
    contacts,
    dashboard,
    gamification,
    goals,
    integrations,
    notifications,
    predictive,
    productivity,
    reports,
    wellness,
)
from taskquest.services.base import AuthenticationError
from taskquest.storage import get_storage
from taskquest.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

API_PREFIX = "/api/v1"
ROUTERS = [
    (dashboard.router, "dashboard", "Dashboard"),
    (wellness.router, "wellness", "Wellness"),
    (goals.router, "goals", "Goals"),
    (contacts.router, "contacts", "Contacts"),
    (reports.router, "reports", "Reports"),
    (productivity.router, "productivity", "Productivity"),
    (predictive.router, "predictive", "Predictive"),
    (ai.router, "ai", "AI"),
    (gamification.router, "gamification", "Gamification"),
    (notifications.router, "notifications", "Notifications"),
    (integrations.router, "integrations", "Integrations"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the DuckDB directory and schema up front; release storage on shutdown."""
    settings = get_settings()

    if settings.storage_backend == "duckdb":
        db_dir = os.path.dirname(settings.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    storage = get_storage()
    logger.info(
        "application_startup",
        version=app.version,
        storage_backend=type(storage).__name__,
        dev_mode=settings.dev_mode,
    )

    yield

    storage.close()
    get_storage.cache_clear()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="TaskQuest Analytics API",
        description="Productivity, wellness and relationship analytics for TaskQuest",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    @app.middleware("http")
    async def request_tracing_middleware(request: Request, call_next):
        """Bind a request id to the log context and time the request."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                error_type=type(e).__name__,
                error=str(e),
                exc_info=True,
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "success": False,
                    "error": "Internal server error",
                    "request_id": request_id,
                },
                headers={"X-Request-ID": request_id},
            )

        response.headers["X-Request-ID"] = request_id
        logger.info(
            "request_completed",
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        logger.warning("authentication_error", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"success": False, "error": str(exc)},
            headers={"WWW-Authenticate": "Bearer"},
        )

    @app.exception_handler(OAuthExchangeError)
    async def oauth_exchange_error_handler(request: Request, exc: OAuthExchangeError):
        # Provider rejected the exchange; surface it as an upstream failure
        logger.warning("oauth_exchange_error", error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"success": False, "error": str(exc)},
        )

    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "healthy",
            "version": app.version,
            "storage_backend": settings.storage_backend,
        }

    for router, name, tag in ROUTERS:
        app.include_router(router, prefix=f"{API_PREFIX}/{name}", tags=[tag])

    logger.info("application_configured", routers_count=len(ROUTERS))
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "taskquest.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_level=settings.log_level.lower(),
    )
