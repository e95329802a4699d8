"""
Custom exception classes and error handling utilities.
"""

from typing import Optional, Dict, Any
import traceback


class LabirintParserError(Exception):
    """Base exception for all labirint parser errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class CrawlerError(LabirintParserError):
    """Exception raised when a book page cannot be retrieved."""
    pass


class ConfigurationError(LabirintParserError):
    """Exception raised for configuration or input list issues."""
    pass


class ValidationError(LabirintParserError):
    """Exception raised for invalid in-memory values."""
    pass


class ExportError(LabirintParserError):
    """Exception raised when a result sink cannot persist records."""
    pass


def handle_error(
    error: Exception,
    logger,
    context: Optional[Dict[str, Any]] = None,
    reraise: bool = True
) -> None:
    """
    Handle and log errors with context information.

    Args:
        error: The exception that occurred
        logger: Logger instance to use for logging
        context: Additional context information
        reraise: Whether to reraise the exception after logging
    """
    error_context = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "traceback": traceback.format_exc(),
        **(context or {})
    }

    if isinstance(error, LabirintParserError):
        error_context.update(error.details)

    logger.error("Error occurred", **error_context)

    if reraise:
        raise error
