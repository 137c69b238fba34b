from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from pulse.config.logging import get_logger, setup_logging
from pulse.config.settings import Settings, get_settings
from pulse.config.settings import settings as default_settings
from pulse.infra.database import Database
from pulse.v1.core.clock import Clock
from pulse.v1.core.exceptions import (
    PulseException,
    RequestContextMiddleware,
    general_exception_handler,
    http_exception_handler,
    pulse_exception_handler,
    request_validation_handler,
)
from pulse.v1.engine.pulse import PulseEngine
from pulse.v1.healthz import router as health_router
from pulse.v1.jobs.routes import router as jobs_router
from pulse.v1.notifications.routes import router as notifications_router
from pulse.v1.reminders.routes import router as reminders_router

logger = get_logger(__name__)


def create_app(settings: Settings | None = None, clock: Clock | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or default_settings

    # Initialize structured logging
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        database = Database(settings)
        await database.create_all()
        engine = PulseEngine(settings, database, clock=clock)

        app.state.database = database
        app.state.engine = engine

        if settings.engine_enabled:
            await engine.start()
        else:
            logger.info("Background engine disabled")

        try:
            yield
        finally:
            await engine.aclose()
            await database.close()

    app = FastAPI(
        title=settings.app_name,
        description="Background engine for scheduled jobs and deduplicated notifications",
        version=settings.version,
        debug=settings.debug,
        lifespan=lifespan,
        # All endpoints live under the /v1/ prefix
        openapi_url="/v1/openapi.json" if settings.debug else None,
        docs_url="/v1/docs" if settings.debug else None,
        redoc_url="/v1/redoc" if settings.debug else None,
    )

    # Add middleware
    app.add_middleware(RequestContextMiddleware)

    # Add CORS middleware for development
    if settings.debug:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    # Add exception handlers
    app.add_exception_handler(PulseException, pulse_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # Request-scoped dependencies see the settings this app was built with
    app.dependency_overrides[get_settings] = lambda: settings

    # Include routers with /v1 prefix
    app.include_router(health_router, prefix="/v1", tags=["health"])
    app.include_router(jobs_router, prefix="/v1")
    app.include_router(reminders_router, prefix="/v1")
    app.include_router(notifications_router, prefix="/v1")

    return app


# Create the app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "pulse.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )
