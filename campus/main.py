"""
Main application entry point for the campus assessment engine.

Usage:
    - Direct: python -m campus.main
    - ASGI server: uvicorn campus.main:app
"""

import logging

from campus.api import build_container, create_app
from campus.collaborators.persistence import MemoryPersistence
from campus.common.config import get_config
from campus.common.logger import app_logger, configure_logger
from campus.config import settings

# Setup module logger
logger = app_logger.getChild("main")


def setup_logging() -> None:
    """Apply the logging section of the configuration to the campus logger."""
    log_config = get_config().logging
    configure_logger(
        name="campus",
        level=log_config.level,
        format_string=log_config.format,
        use_json=log_config.json_output,
        log_file=log_config.file_path,
    )
    # Keep per-request access lines out of the application log
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def build_persistence():
    """Storage selected by STORAGE_BACKEND."""
    if settings.STORAGE_BACKEND == "sql":
        from campus.collaborators.sql_persistence import SqlPersistence
        return SqlPersistence(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    return MemoryPersistence()


setup_logging()
app = create_app(build_container(persistence=build_persistence()))

logger.info(f"Storage backend: {settings.STORAGE_BACKEND}")

# Entry point for running the application directly
if __name__ == "__main__":
    import uvicorn

    api_config = get_config().api
    logger.info(f"Starting server on {api_config.host}:{api_config.port} (reload: {api_config.reload})")

    uvicorn.run(
        "campus.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.reload,
        log_level="info"
    )
