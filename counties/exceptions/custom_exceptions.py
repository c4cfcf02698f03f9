"""
Custom exception classes for the county lookup system.

This module defines domain-specific exceptions to provide clear error handling
and debugging information throughout the system. A point that no county
contains is a normal lookup outcome and has no exception here.
"""

from typing import Optional, Dict, Any


class CountiesBaseException(Exception):
    """Base exception class for all county lookup exceptions."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class CountiesConfigurationError(CountiesBaseException):
    """
    Exception raised when configuration loading or validation fails.

    This exception is raised when:
    - Configuration files are missing or invalid
    - Environment configuration is malformed
    - Required configuration values are missing
    """
    pass


class CountiesValidationError(CountiesBaseException):
    """
    Exception raised when configuration or dataset validation fails.
    """
    pass


class InvalidGeometryError(CountiesBaseException):
    """
    Exception raised when a polygon or bounding box cannot be built.

    This exception is raised at load/build time when:
    - A polygon has fewer vertices than a closed ring needs
    - A vertex coordinate is not a finite number
    - A bounding box has min greater than max
    """
    pass


class InvalidPointError(CountiesBaseException, ValueError):
    """Exception raised when a query point has non-finite coordinates."""
    pass


class DuplicateIDError(CountiesBaseException):
    """Exception raised when two region records share an id."""
    pass


class IndexFrozenError(CountiesBaseException):
    """Exception raised when adding to an index that has been frozen."""
    pass


class DecodeError(CountiesBaseException):
    """
    Exception raised when a persisted searcher or dataset cache cannot be decoded.

    This exception is raised when:
    - The byte stream is truncated or not gzip data
    - The payload is not valid JSON
    - The payload does not match the expected snapshot schema
    """
    pass
