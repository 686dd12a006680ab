"""
REST API Layer for PlanForge.

Provides:
- FastAPI application with CORS middleware
- One route per application channel under the /api/v1 prefix
- Exception handlers translating PlanForgeException into error envelopes
- Root-level health check
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from planforge import __version__
from planforge.api.context import AppContext, build_context
from planforge.api.routes import router
from planforge.api.schemas import error_response
from planforge.config.settings import APP_NAME, AppConfig
from planforge.lib.errors import (
    INTERNAL_ERROR,
    VALIDATION_ERROR,
    error_code_for,
    http_status_for,
)
from planforge.lib.exceptions import PlanForgeException

logger = logging.getLogger(__name__)

_ALLOWED_HEADERS: list[str] = [
    "Content-Type",
    "Accept",
    "Accept-Language",
    "X-Request-ID",
]


def create_app(context: AppContext | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Includes:
    - Global exception handlers (domain, request validation, unhandled)
    - CORS middleware with origins from PLANFORGE_CORS_ORIGINS
    - API v1 router with all endpoints
    - Root-level health check

    Args:
        context: Pre-built application context. Built from the
            environment when omitted.

    Returns:
        Configured FastAPI application instance.
    """
    if context is None:
        context = build_context(AppConfig.from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await context.aclose()
        logger.info("PlanForge API shut down")

    app = FastAPI(
        title=APP_NAME,
        description="Goal planning with AI-generated milestones and tasks",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if context.config.dev_mode else None,
        redoc_url=None,
    )
    app.state.context = context

    # -------------------------------------------------------------------------
    # Exception handlers
    # -------------------------------------------------------------------------
    @app.exception_handler(PlanForgeException)
    async def planforge_exception_handler(
        request: Request, exc: PlanForgeException,
    ) -> JSONResponse:
        code = error_code_for(exc)
        status = http_status_for(code)
        log = logger.error if status >= 500 else logger.warning
        log(
            "%s %s failed: %s",
            request.method,
            request.url.path,
            exc,
            extra={"error_code": code, "status": status},
        )
        return JSONResponse(status_code=status, content=error_response(code, str(exc)))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError,
    ) -> JSONResponse:
        logger.warning("Invalid request on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=http_status_for(VALIDATION_ERROR),
            content=error_response(
                VALIDATION_ERROR,
                details={"errors": jsonable_encoder(exc.errors())},
            ),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception,
    ) -> JSONResponse:
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path,
        )
        return JSONResponse(status_code=500, content=error_response(INTERNAL_ERROR))

    # -------------------------------------------------------------------------
    # CORS Middleware
    # -------------------------------------------------------------------------
    cors_origins = list(context.config.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
        allow_headers=_ALLOWED_HEADERS,
    )
    if cors_origins:
        logger.info("CORS enabled for origins: %s", cors_origins)

    app.include_router(router)

    @app.get("/health")
    async def root_health_check() -> dict[str, object]:
        """Liveness check; reports whether the database is available."""
        return {
            "status": "ok",
            "database": context.db is not None and context.db.is_initialized,
        }

    return app


__all__ = ["create_app", "router", "AppContext", "build_context"]
