"""Centralized logging configuration for the proxy.

Log records go to stderr: stdout carries the client's protocol frames.
"""

import inspect
import logging
import os
import sys
import time
from contextlib import contextmanager
from functools import wraps
from typing import Callable, Generator, Optional, TextIO, TypeVar

from config.defaults import DEFAULT_LOG_LEVEL, ENV_LOG_LEVEL

# Log format constants
SIMPLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s"
)

# Third-party loggers kept at WARNING unless DEBUG is requested
NOISY_LOGGERS = ("git", "asyncio")

T = TypeVar("T")


def setup_logging(level: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    """Configure logging for the entire application.

    Args:
        level: Log level override. If not provided, uses LOG_LEVEL env var or INFO.
        stream: Destination for log records (default: stderr)
    """
    level_name = (level or os.environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL)).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    # Use simple format for INFO+, detailed format with line numbers for DEBUG
    fmt = DETAILED_FORMAT if log_level == logging.DEBUG else SIMPLE_FORMAT

    logging.basicConfig(
        level=log_level,
        format=fmt,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=stream or sys.stderr,
        force=True,
    )

    quiet_level = logging.DEBUG if log_level == logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def _log_duration(
    logger: logging.Logger, level: int, operation: str, start: float, failed: bool
) -> None:
    duration_ms = (time.perf_counter() - start) * 1000
    if failed:
        logger.log(level, "%s failed after %.1fms", operation, duration_ms)
    else:
        logger.log(level, "%s completed in %.1fms", operation, duration_ms)


@contextmanager
def log_timing(
    logger: logging.Logger, operation: str, level: int = logging.DEBUG
) -> Generator[None, None, None]:
    """Context manager for timing operations.

    Example:
        with log_timing(logger, "Backend startup", logging.INFO):
            await backend.start()
    """
    start = time.perf_counter()
    try:
        yield
    except BaseException:
        _log_duration(logger, level, operation, start, failed=True)
        raise
    _log_duration(logger, level, operation, start, failed=False)


def timed(
    operation: Optional[str] = None, level: int = logging.DEBUG
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator for timing sync or async functions.

    The record is logged on the decorated function's module logger.

    Args:
        operation: Name of the operation. Defaults to function name.
        level: Log level for the timing message (default: DEBUG).
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        op_name = operation or func.__name__
        logger = logging.getLogger(func.__module__)

        if inspect.iscoroutinefunction(func):

            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with log_timing(logger, op_name, level):
                    return await func(*args, **kwargs)

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            with log_timing(logger, op_name, level):
                return func(*args, **kwargs)

        return wrapper

    return decorator
