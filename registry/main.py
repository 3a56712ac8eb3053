"""FastAPI application entrypoint for the customer registry."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from registry.api.customers import router as customers_router
from registry.core.config import get_settings
from registry.core.correlation import CorrelationMiddleware
from registry.core.errors import register_error_handlers
from registry.core.logging import configure_logging
from registry.core.reporting import FaultReporter
from registry.core.reporting import reporter_from_settings
from registry.db.base import engine
from registry.db.models import Base

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Create missing tables before serving requests."""
    Base.metadata.create_all(bind=engine)
    logger.info("Registry started with settings=%s", get_settings().safe_for_logging())
    yield


def create_app(reporter: FaultReporter | None = None) -> FastAPI:
    """Build the registry application.

    The correlation middleware is added last so it wraps everything else,
    including the error handlers.
    """
    app = FastAPI(title="Customer Registry", lifespan=lifespan)
    register_error_handlers(app, reporter if reporter is not None else reporter_from_settings(get_settings()))
    app.add_middleware(CorrelationMiddleware)
    app.include_router(customers_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        """Health check stub endpoint for service readiness."""
        return {"status": "ok"}

    return app


configure_logging(get_settings().log_level)
app = create_app()
