"""Logging setup and step-logging helpers."""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional, TypeVar

from .config import Settings, get_settings

T = TypeVar("T")

ROOT_LOGGER_NAME = "tutor_guard"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger(__name__)


def configure_logging(settings: Optional[Settings] = None) -> logging.Logger:
    """
    Attach handlers to the package logger.

    Safe to call more than once; handlers are only installed the first time.

    Args:
        settings: Settings to read LOG_LEVEL / LOG_FILE from

    Returns:
        The configured package logger
    """
    settings = settings or get_settings()
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(settings.LOG_LEVEL.upper())

    if getattr(package_logger, "_tutor_guard_configured", False):
        return package_logger

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    package_logger.addHandler(stream_handler)

    if settings.LOG_FILE:
        file_handler = logging.FileHandler(settings.LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    package_logger._tutor_guard_configured = True  # type: ignore[attr-defined]
    return package_logger


def log_pipeline_step(step_name: str):
    """
    Decorator to log pipeline step execution.

    Args:
        step_name: Name of the pipeline stage for logging

    Usage:
        @log_pipeline_step("post_process")
        async def validate_memory(state):
            ...
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        async def async_wrapper(*args: Any, **kwargs: Any):
            logger.debug(f"[{step_name}] Starting {func.__name__}")
            try:
                result = await func(*args, **kwargs)
                logger.debug(f"[{step_name}] Completed {func.__name__}")
                return result
            except Exception as e:
                logger.error(f"[{step_name}] Error in {func.__name__}: {e}")
                raise

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any):
            logger.debug(f"[{step_name}] Starting {func.__name__}")
            try:
                result = func(*args, **kwargs)
                logger.debug(f"[{step_name}] Completed {func.__name__}")
                return result
            except Exception as e:
                logger.error(f"[{step_name}] Error in {func.__name__}: {e}")
                raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def truncate_text(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate text to a maximum length.

    The suffix is appended after the cut, so the result can be up to
    ``max_length + len(suffix)`` characters long.

    Args:
        text: Text to truncate
        max_length: Number of characters to keep
        suffix: Suffix to add when truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix
