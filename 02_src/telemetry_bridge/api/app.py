"""FastAPI application setup."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..app import Application
from .routes import correlation, dependencies, health, traces


# Global application instance
_app: Application | None = None


def get_app() -> Application:
    """Get the global application instance."""
    global _app
    if not _app:
        _app = Application()
    return _app


def create_fastapi_app(application: Application | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    application = application or get_app()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await application.start()
        yield
        await application.stop()

    fastapi_app = FastAPI(
        title="Telemetry Bridge API",
        description="Trace reconstruction, dependency graphs and telemetry correlation",
        version="0.1.0",
        lifespan=lifespan,
    )

    fastapi_app.include_router(traces.create_traces_router(application))
    fastapi_app.include_router(dependencies.create_dependencies_router(application))
    fastapi_app.include_router(correlation.create_correlation_router(application))
    fastapi_app.include_router(health.create_health_router(application))

    return fastapi_app
