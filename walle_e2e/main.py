"""
Walle E2E - FastAPI Application

Runs registered end-to-end flows against the Walle web app and keeps their
reports.
"""

import structlog
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from walle_e2e import __version__
from walle_e2e.api import api_router
from walle_e2e.config import get_settings, settings
from walle_e2e.flows import FLOWS
from walle_e2e.logging_config import configure_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.
    """
    logger = structlog.get_logger()

    logger.info(
        "application_starting",
        version=__version__,
        environment=settings.app_env,
        base_url=settings.base_url or None,
    )

    yield

    logger.info("application_shutting_down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    configure_logging(settings)

    app = FastAPI(
        title="Walle E2E",
        description="""
## End-to-end flows for the Walle agent product

- **Resilient locators**: every element is an intent with ranked strategies
- **Two-phase actions**: standard interaction, then one forced fallback
- **Remediated flows**: known interstitials are recovered by retrying

### Quick Start

1. **List flows**: `GET /api/v1/flows`
2. **Run one**: `POST /api/v1/flows/run {"flow": "agent-selection"}`
3. **View reports**: `GET /api/v1/flows/history`
        """,
        version=__version__,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/", include_in_schema=False)
    async def root():
        current = get_settings()
        return {
            "name": "Walle E2E",
            "version": __version__,
            "docs": "/docs" if settings.is_development else "Disabled in production",
            "api": "/api/v1",
            "base_url": current.base_url or None,
            "flows": sorted(FLOWS),
            "ledger_path": str(current.ledger_path),
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger = structlog.get_logger()
        logger.exception("unhandled_exception", error=str(exc))

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "detail": str(exc) if settings.is_development else "An error occurred",
            },
        )

    return app


app = create_app()


def run() -> None:
    import uvicorn

    uvicorn.run(
        "walle_e2e.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
