"""
FastAPI application for carebase.

This is the HTTP surface over the repository and auth core.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from carebase.api.fhir import router as fhir_router
from carebase.api.storage import router as storage_router
from carebase.api.outcomes import send_outcome
from carebase.auth.routes import router as auth_router
from carebase.config import configure_logging, get_settings
from carebase.core import outcome as outcomes
from carebase.integrations.sentry import init_sentry
from carebase.storage import StorageProvider, create_local_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings = get_settings()
    configure_logging(settings)

    if init_sentry():
        logger.info("Sentry error tracking enabled")

    if getattr(app.state, "storage", None) is None:
        app.state.storage = create_local_storage()

    logger.info(f"carebase API starting in {settings.environment} mode")

    yield

    logger.info("carebase API shutting down")


# =============================================================================
# App Setup
# =============================================================================


def create_app(storage: StorageProvider | None = None) -> FastAPI:
    """
    Build the application.

    Pass a StorageProvider to wire the app to existing storage (tests do);
    otherwise local storage is created at startup.
    """
    settings = get_settings()

    app = FastAPI(
        title="carebase API",
        description="Clinical data server: resource repository, login profile binding and binary storage",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.storage = storage

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        expression = ".".join(str(p) for p in first.get("loc", ()) if p != "body") or None
        return send_outcome(outcomes.bad_request(first.get("msg", "Invalid request"), expression))

    @app.get("/health")
    async def health_check():
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(storage_router)
    app.include_router(fhir_router)

    return app


app = create_app()
