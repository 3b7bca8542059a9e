"""
Error Handling Utility Module

Reusable error handling patterns with structured context, so that failures
are logged the same way across collectors, discovery and startup.

1. log_and_continue() - Log error and continue execution (per-resource failures)
2. log_and_raise() - Log error with context and re-raise (startup and defects)
"""

import logging
from typing import Any


def log_and_continue(
    logger: logging.Logger,
    error: Exception,
    context: dict[str, Any],
    error_type: str = "Operation",
) -> None:
    """
    Log an error with structured context and continue execution gracefully.

    Use this for expected failures that must not halt the surrounding work,
    e.g. one project failing while its siblings are still being collected.

    Args:
        logger: Logger instance from logging.getLogger(__name__)
        error: The caught exception
        context: Structured data about what failed (project, path, status, ...)
        error_type: Human-readable description of the operation

    Example:
        try:
            await plugin.collect(context, logger, queue, project)
        except APIError as e:
            log_and_continue(logger, e, {"project": project.name}, "Project collection")
    """
    logger.warning(
        f"{error_type} failed: {error}",
        extra={
            "error_type": error_type,
            "exception_class": error.__class__.__name__,
            "context": context,
        },
    )


def log_and_raise(
    logger: logging.Logger,
    error: Exception,
    context: dict[str, Any],
    error_type: str = "Operation",
) -> None:
    """
    Log an error with context and re-raise it (for fatal or unexpected errors).

    Args:
        logger: Logger instance
        error: The caught exception
        context: Structured data about what failed
        error_type: Human-readable description

    Raises:
        The original exception after logging
    """
    logger.error(
        f"{error_type} failed critically: {error}",
        exc_info=True,
        extra={
            "error_type": error_type,
            "exception_class": error.__class__.__name__,
            "context": context,
        },
    )
    raise error
