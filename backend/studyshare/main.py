"""
StudyShare Backend - FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() wires middleware, exception handlers and routers;
       uvicorn serves the module-level `app` (uvicorn studyshare.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │  Middleware:  Request ID → Access Log → GZip → CORS      │
    │  Routes:      POST /api/recommend-notes                  │
    │               GET  /api/notes, /api/notes/{id}           │
    │               GET  /health                               │
    │  Errors:      StudyShareError → its status_code          │
    │               anything else   → 500                      │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, report missing configuration
    Shutdown: close HTTP clients, dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from studyshare import __version__
from studyshare.config import settings
from studyshare.database import dispose_engine
from studyshare.exceptions import ConfigurationError, StudyShareError
from studyshare.middleware.logging import RequestLoggingMiddleware
from studyshare.middleware.request_id import RequestIDMiddleware, request_id_var
from studyshare.routes import health, notes, recommend
from studyshare.services.ai_gateway_service import ai_gateway_service
from studyshare.services.auth_service import auth_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2026-01-15T12:00:00 [INFO] studyshare.access: POST /api/... 200 ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("StudyShare backend %s starting up", __version__)

    # Missing settings do not stop the server: /health reports them and each
    # recommendation request fails with a configuration error.
    try:
        settings.validate_required()
    except ConfigurationError as e:
        logger.error("Configuration error: %s %s", e.message, e.context.get("missing"))

    logger.info("AI model: %s via %s", settings.ai_model, settings.ai_gateway_url)

    yield

    logger.info("StudyShare backend shutting down")
    await ai_gateway_service.close()
    await auth_service.close()
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exceptions to `{"error": message, "request_id": id}` responses.

        ValidationError         → 400
        NotFoundError           → 404
        AIQuotaExceededError    → 402
        AIRateLimitError        → 429
        other StudyShareError   → 500
        Exception (fallback)    → 500, generic message, traceback logged
    """

    @app.exception_handler(StudyShareError)
    async def handle_studyshare_error(request: Request, exc: StudyShareError):
        rid = request_id_var.get("")
        status = exc.status_code
        log_level = logging.ERROR if status >= 500 else logging.WARNING
        logger.log(
            log_level,
            "[%s] %s (%d): %s | Context: %s",
            rid,
            type(exc).__name__,
            status,
            exc.message,
            exc.context,
        )
        headers = {"Retry-After": "60"} if status == 429 else None
        return JSONResponse(
            status_code=status,
            content={"error": exc.message, "request_id": rid},
            headers=headers,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "An unexpected error occurred. Please try again later.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="StudyShare API",
        description=(
            "Backend of the StudyShare note-sharing app: AI-ranked note "
            "recommendations plus read access to public notes."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", "x-request-id"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(recommend.router)
    app.include_router(notes.router)
    app.include_router(health.router)

    return app


app = create_app()
