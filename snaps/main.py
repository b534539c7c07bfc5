"""Main application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from snaps.api.rate_limit import RateLimiter
from snaps.api.routes import snaps as snap_routes
from snaps.api.routes import verify as verify_routes
from snaps.config import Settings, settings as default_settings
from snaps.db.session import create_engine, create_session_factory, init_models
from snaps.errors import (
    InvalidUrl,
    InvalidWeight,
    MissingEmail,
    StorageUnavailable,
    SubmissionError,
)
from snaps.logging_config import setup_logging
from snaps.notify.mailer import Mailer, build_mailer
from snaps.services.migration import MigrationEngine
from snaps.services.submission import SubmissionService
from snaps.services.verification import VerificationService
from snaps.store.aggregate import AggregateStore
from snaps.store.pending import PendingStore
from snaps.verification.tokens import get_signing_key
from snaps.worker.scheduler import replay_intents, setup_scheduler

logger = logging.getLogger(__name__)

# Body fields in validation order, with the message reported for each
FIELD_ERRORS = (
    ("email", MissingEmail.message),
    ("snaps", InvalidWeight.message),
    ("url", InvalidUrl.message),
)


def _validation_message(exc: RequestValidationError) -> str:
    locations = {str(part) for error in exc.errors() for part in error.get("loc", ())}
    for field, message in FIELD_ERRORS:
        if field in locations:
            return message
    return "Request body must be a JSON object with url, snaps and email"


def create_app(settings: Settings | None = None, mailer: Mailer | None = None) -> FastAPI:
    """
    Build the FastAPI application.

    Storage, services and collaborators are created in the lifespan and kept
    on ``app.state``; nothing is held in module globals.

    Args:
        settings: Settings to use, defaults to the environment settings
        mailer: Mail transport override, defaults to one built from settings
    """
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Snaps...")

        engine = create_engine(settings.database_url, echo=settings.debug)
        await init_models(engine)
        session_factory = create_session_factory(engine)

        pending = PendingStore(session_factory)
        aggregates = AggregateStore(session_factory)
        migration_engine = MigrationEngine(pending, aggregates)
        app_mailer = mailer or build_mailer(settings)

        app.state.pending_store = pending
        app.state.aggregate_store = aggregates
        app.state.migration_engine = migration_engine
        app.state.mailer = app_mailer
        app.state.submission_service = SubmissionService(
            pending,
            app_mailer,
            secret=get_signing_key(settings.verification_secret),
            public_base_url=settings.public_base_url,
        )
        app.state.verification_service = VerificationService(
            pending, aggregates, migration_engine
        )
        app.state.rate_limiter = RateLimiter(
            settings.redis_url,
            limit=settings.rate_limit_per_window,
            window_seconds=settings.rate_limit_window_seconds,
            enabled=settings.rate_limit_enabled,
        )

        # Finish anything a previous process removed but never counted
        await replay_intents(migration_engine)

        scheduler = None
        if settings.scheduler_enabled:
            scheduler = setup_scheduler(settings, pending, migration_engine)
            scheduler.start()
            logger.info("Scheduler started")

        yield

        logger.info("Shutting down...")

        if scheduler:
            scheduler.shutdown(wait=False)

        await app.state.submission_service.drain()
        await app_mailer.close()
        await app.state.rate_limiter.close()
        await engine.dispose()

        logger.info("Shutdown complete")

    app = FastAPI(
        title="Snaps",
        description="Email-verified weighted votes for URLs",
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            {"error": exc.detail}, status_code=exc.status_code, headers=exc.headers
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse({"error": _validation_message(exc)}, status_code=400)

    @app.exception_handler(SubmissionError)
    async def submission_error(request: Request, exc: SubmissionError):
        return JSONResponse({"error": exc.message}, status_code=400)

    @app.exception_handler(StorageUnavailable)
    async def storage_error(request: Request, exc: StorageUnavailable):
        logger.error(f"Storage unavailable handling {request.url.path}: {exc}")
        return JSONResponse(
            {"error": "Service temporarily unavailable, please retry"}, status_code=503
        )

    app.include_router(snap_routes.router)
    app.include_router(verify_routes.router)

    @app.get("/ping")
    async def ping():
        """Liveness probe."""
        return Response(status_code=200)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()

# Add Prometheus instrumentation
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    excluded_handlers=["/metrics", "/health", "/ping"],
)
instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["monitoring"])


def run():
    """Configure logging and run with uvicorn."""
    setup_logging(default_settings.log_dir or None, default_settings.log_level)
    uvicorn.run(
        "snaps.main:app",
        host=default_settings.app_host,
        port=default_settings.app_port,
        reload=default_settings.debug,
        log_level=default_settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
