"""
Application Logger

Logging for the assessment engine: one "campus" logger configured from the
logging section of the configuration, a JSON formatter for structured
output, and an adapter that stamps attempt context onto every record.
"""

import os
import sys
import json
import time
import logging
import datetime
import functools
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

DEFAULT_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

T = TypeVar('T')


class JsonFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.

    Context attached through LoggerAdapter (attempt id, student id, ...)
    is merged into the top-level object.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_object = {
            "timestamp": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "name": record.name,
            "level": record.levelname,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_object["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }

        context = getattr(record, "context", None)
        if isinstance(context, dict):
            log_object.update(context)

        return json.dumps(log_object, default=str)


def configure_logger(
    name: str = "campus",
    level: Union[str, int] = logging.INFO,
    format_string: str = DEFAULT_LOG_FORMAT,
    use_json: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Replace the handlers of a logger with a console handler and, when
    ``log_file`` is set, a file handler.

    Args:
        name: Logger name
        level: Log level name or number
        format_string: Format for plain-text output
        use_json: Emit JSON lines instead of plain text
        log_file: Optional path of a log file; its directory is created

    Returns:
        The configured logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers = []

    formatter = JsonFormatter() if use_json else logging.Formatter(format_string, DEFAULT_DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        try:
            directory = os.path.dirname(log_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError as e:
            logger.warning(f"Could not open log file {log_file}: {e}")

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """
    Adds attempt context to every record.

    Attempt sessions use one so each line carries the attempt, student and
    assessment ids without repeating them in the message.
    """

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        super().__init__(logger, context or {})

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        kwargs = dict(kwargs)
        extra = dict(kwargs.get('extra') or {})
        extra['context'] = {**self.extra, **(extra.get('context') or {})}
        kwargs['extra'] = extra
        return msg, kwargs

    def with_context(self, **context) -> 'LoggerAdapter':
        """Return a new adapter with ``context`` added to this one's."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


app_logger = logging.getLogger("campus")
if not app_logger.handlers:
    configure_logger("campus")


def log_execution_time(
    logger: Optional[logging.Logger] = None
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator that logs how long a coroutine function took, and how long it
    ran before failing.

    Args:
        logger: Logger to use; defaults to app_logger
    """
    log = logger or app_logger

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                log.error(f"{func.__name__} failed after {time.perf_counter() - start_time:.3f}s: {e}")
                raise
            log.debug(f"{func.__name__} took {time.perf_counter() - start_time:.3f}s")
            return result

        return wrapper
    return decorator
