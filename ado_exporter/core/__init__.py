"""
Core Infrastructure - Logging, Errors, Registry, Self-Observability

Usage:
    from ado_exporter.core import get_logger, ConfigurationError

    logger = get_logger(__name__)
"""

from .exceptions import (
    APIError,
    ApplyError,
    AuthError,
    ConfigurationError,
    DiscoveryError,
    ExporterError,
    PermanentAPIError,
    TransientAPIError,
)
from .logging_config import get_logger, log_with_context, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    "log_with_context",
    # Errors
    "ExporterError",
    "ConfigurationError",
    "APIError",
    "TransientAPIError",
    "PermanentAPIError",
    "AuthError",
    "DiscoveryError",
    "ApplyError",
]
