"""
SmartBrief Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() builds every core component once, stores
       them on `app.state`, registers middleware, exception handlers and
       routes, and returns the app.
Who:   uvicorn (`uvicorn smartbrief.main:app`) and the test suite, which calls
       create_app() with its own gateway.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                         FastAPI App                          │
    │  Middleware:  Request ID → Access Log → GZip → CORS          │
    │  Routes:      /api/summaries/*   /api/users/*   /health      │
    │  app.state:   auth_gate, orchestrator                        │
    │                 └─ gateway (Gemini, OpenAI + breakers)       │
    │                 └─ ledger, store, ingestor                   │
    │  Errors:      SmartBriefError → {error, message, details,    │
    │                                   request_id}                │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, report configuration problems (the server
              keeps running so /health can show them)
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from smartbrief import __version__
from smartbrief.config import Settings, settings
from smartbrief.database import dispose_engine
from smartbrief.exceptions import (
    AuthError,
    CircuitBreakerOpenError,
    InternalError,
    SmartBriefError,
    UnauthenticatedError,
)
from smartbrief.middleware.logging import RequestLoggingMiddleware
from smartbrief.middleware.request_id import RequestIDMiddleware, request_id_var
from smartbrief.models.summary import AIProvider
from smartbrief.routes import health, summaries, users
from smartbrief.services.ai_gateway import AiProviderGateway
from smartbrief.services.auth_service import AuthGate
from smartbrief.services.credit_service import CreditLedger
from smartbrief.services.file_service import FileIngestor
from smartbrief.services.gemini_service import GeminiProvider
from smartbrief.services.openai_service import OpenAIProvider
from smartbrief.services.orchestrator import RequestOrchestrator
from smartbrief.services.summary_service import SummaryStore

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging(level: str = "INFO") -> None:
    """
    Configure application-wide logging once, to stdout.

    Format: 2024-01-15T12:00:00 [INFO] smartbrief.services.credit_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party libraries that log every operation
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Component Wiring
# ══════════════════════════════════════════════════════════════════════════

def build_gateway(app_settings: Settings) -> AiProviderGateway:
    return AiProviderGateway(
        providers={
            AIProvider.GEMINI: GeminiProvider(
                api_key=app_settings.gemini_api_key, base_url=app_settings.gemini_base_url
            ),
            AIProvider.OPENAI: OpenAIProvider(
                api_key=app_settings.openai_api_key, base_url=app_settings.openai_base_url
            ),
        },
        default_provider=AIProvider(app_settings.default_ai_provider),
        timeout_seconds=app_settings.ai_timeout_seconds,
        failure_threshold=app_settings.cb_failure_threshold,
        recovery_timeout=app_settings.cb_recovery_timeout,
    )


def build_orchestrator(
    app_settings: Settings, gateway: Optional[AiProviderGateway] = None
) -> RequestOrchestrator:
    return RequestOrchestrator(
        gateway=gateway or build_gateway(app_settings),
        ledger=CreditLedger(),
        store=SummaryStore(list_visible_roles=app_settings.list_visible_roles_set),
        ingestor=FileIngestor(),
    )


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    app_settings: Settings = app.state.settings
    setup_logging(app_settings.log_level)
    logger.info("SmartBrief Backend %s starting up...", __version__)

    try:
        app_settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health and the descriptor endpoints still explain the problem
        logger.error("Configuration error: %s", e)

    for provider, info in app.state.orchestrator.gateway.check_configuration().items():
        logger.info("AI provider %s configured=%s", provider, info["configured"])
    logger.info("Server ready at http://%s:%d", app_settings.backend_host, app_settings.backend_port)

    yield

    logger.info("SmartBrief Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or request_id_var.get("")


# Context of these stays in the server log
_OPAQUE_ERRORS = (AuthError, InternalError)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Render every SmartBriefError as {error, message, details, request_id}.

    The exception class decides code and status; nothing here inspects
    messages. FastAPI's own 422 for malformed bodies is left as is.
    """

    @app.exception_handler(SmartBriefError)
    async def handle_smartbrief_error(request: Request, exc: SmartBriefError):
        rid = _request_id(request)
        headers = {}

        if isinstance(exc, _OPAQUE_ERRORS):
            logger.error("[%s] %s: %s | Context: %s", rid, exc.code, exc.message, exc.context)
            details = None
        else:
            level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
            logger.log(level, "[%s] %s: %s", rid, exc.code, exc.message)
            details = exc.context or None

        if isinstance(exc, UnauthenticatedError):
            headers["WWW-Authenticate"] = "Bearer"
        if isinstance(exc, CircuitBreakerOpenError):
            headers["Retry-After"] = str(exc.recovery_time)

        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.code,
                "message": exc.message,
                "details": details,
                "request_id": rid,
            },
            headers=headers or None,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Catch-all; the stack trace is logged, never returned."""
        rid = _request_id(request)
        logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": InternalError.code,
                "message": "An unexpected error occurred. Please try again or contact support.",
                "details": None,
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    app_settings: Optional[Settings] = None,
    gateway: Optional[AiProviderGateway] = None,
) -> FastAPI:
    """
    Assemble the application.

    Args:
        app_settings: Defaults to the environment-derived `settings`
        gateway:      Replaces the real provider gateway (tests)
    """
    app_settings = app_settings or settings

    app = FastAPI(
        title="SmartBrief API",
        description=(
            "Credit-metered AI summarization. Submit text or a .txt/.docx document "
            "and receive a summary from Gemini or OpenAI; each generation costs one credit."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Built here rather than in lifespan so every app instance, including
    # ones driven without a lifespan, has its components
    app.state.settings = app_settings
    app.state.auth_gate = AuthGate(app_settings.jwt_secret, app_settings.jwt_algorithm)
    app.state.orchestrator = build_orchestrator(app_settings, gateway)

    # ── Middleware (last added runs first) ────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(summaries.router)
    app.include_router(users.router)
    app.include_router(health.router)

    return app


app = create_app()
