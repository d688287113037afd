"""
FastAPI application factory.

Usage:
    app = create_app(build_container())
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from campus import __version__
from campus.api.container import Container, build_container
from campus.api.responses import campus_exception_handler, validation_exception_handler
from campus.api.routes import router
from campus.common.error_handling import CampusError
from campus.common.logger import app_logger
from campus.config import settings

logger = app_logger.getChild("api.app")


def create_app(container: Optional[Container] = None, prefix: Optional[str] = None) -> FastAPI:
    """
    Build the HTTP application over a service container.

    Args:
        container: Services to expose; defaults to an in-memory container
        prefix: Route prefix; defaults to settings.API_V1_STR

    Returns:
        The FastAPI application
    """
    container = container or build_container()
    prefix = settings.API_V1_STR if prefix is None else prefix

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        create_schema = getattr(container.persistence, "create_schema", None)
        if create_schema is not None:
            await create_schema()
        logger.info("Application startup complete")
        yield
        container.attempts.shutdown()
        dispose = getattr(container.persistence, "dispose", None)
        if dispose is not None:
            await dispose()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Quiz taking, auto-scoring and gradebook API",
        version=__version__,
        lifespan=lifespan
    )
    app.state.container = container

    app.add_exception_handler(CampusError, campus_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(router, prefix=prefix)

    logger.info(f"Application initialized with {len(app.routes)} routes")
    return app
