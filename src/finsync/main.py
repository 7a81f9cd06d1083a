from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import IntegrityError

from finsync.api.middleware.error_handler import (
    handle_finance_sync_error,
    handle_generic_error,
    handle_integrity_error,
    handle_validation_error,
)
from finsync.api.middleware.logging import RequestLoggingMiddleware
from finsync.api.v1 import router as v1_router
from finsync.api.v1.health import router as health_router
from finsync.config import settings
from finsync.core.exceptions import FinanceSyncError
from finsync.core.logging import setup_logging


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging(settings.log_level)
    yield
    # Shutdown


def create_app() -> FastAPI:
    app = FastAPI(
        title="Household Finance Sync API",
        description="Bank synchronization and transaction categorization",
        version="0.1.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    # Add request logging middleware
    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers (order matters - most specific first)
    app.add_exception_handler(FinanceSyncError, handle_finance_sync_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
    app.add_exception_handler(Exception, handle_generic_error)

    # Register routers
    app.include_router(health_router)
    app.include_router(v1_router)

    return app


app = create_app()
