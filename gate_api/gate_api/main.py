"""FastAPI application entry-point for the schemagate API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gate_engine.errors import InputError, SnapshotNotFoundError

from gate_api import __version__
from gate_api.config import APISettings, load_api_settings
from gate_api.dependencies import (
    dispose_llm_client,
    dispose_snapshot_store,
    init_llm_client,
    init_snapshot_store,
)
from gate_api.middleware.auth import AuthenticationMiddleware
from gate_api.middleware.logging import CORRELATION_HEADER, RequestLoggingMiddleware
from gate_api.routers import health, schemas, sql
from gate_api.services.llm_client import LLMError
from gate_api.services.schema_introspector import CatalogAccessError, IntrospectionError
from gate_api.services.snapshot_store import StorageError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup the LLM client and the snapshot store are created and, when
    enabled, structured JSON logging replaces the default handlers.  Both
    collaborators are closed on shutdown.
    """
    settings: APISettings = app.state.settings

    if settings.structured_logging:
        from gate_api.middleware.json_formatter import configure_json_logging

        configure_json_logging()
        logger.info("Structured JSON logging enabled")

    init_llm_client(settings)
    logger.info(
        "LLM client initialised (%s, model=%s, key %s)",
        settings.llm_base_url,
        settings.llm_model,
        "set" if settings.is_llm_configured() else "missing",
    )

    init_snapshot_store(settings)
    logger.info("Snapshot store initialised (%s)", settings.storage_backend.value)

    yield

    await dispose_llm_client()
    await dispose_snapshot_store()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: APISettings | None = None) -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = settings or load_api_settings()

    app = FastAPI(
        title="schemagate API",
        description="Natural-language SQL generation with danger screening and schema validation.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # -- Middleware (last added runs first) ---------------------------------

    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=settings.jwt_secret.get_secret_value() if settings.jwt_secret else None,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Correlation-ID",
            "X-Client-Info",
            "apikey",
            "Accept",
        ],
        expose_headers=[CORRELATION_HEADER],
    )

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(sql.router, prefix="/api/v1")
    app.include_router(schemas.router, prefix="/api/v1")

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(InputError)
    async def input_error_handler(request: Request, exc: InputError) -> JSONResponse:
        logger.info("InputError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(SnapshotNotFoundError)
    async def not_found_handler(request: Request, exc: SnapshotNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(CatalogAccessError)
    async def catalog_access_handler(request: Request, exc: CatalogAccessError) -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={"blocked": True, "code": exc.code, "reason": exc.reason},
        )

    @app.exception_handler(LLMError)
    async def llm_error_handler(request: Request, exc: LLMError) -> JSONResponse:
        logger.warning("LLMError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("StorageError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    @app.exception_handler(IntrospectionError)
    async def introspection_error_handler(request: Request, exc: IntrospectionError) -> JSONResponse:
        logger.warning("IntrospectionError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=502, content={"error": str(exc)})

    return app


# Module-level application instance used by ``uvicorn gate_api.main:app``.
app = create_app()
