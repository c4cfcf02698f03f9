"""
Custom exceptions for the county lookup system.

This module provides domain-specific exception classes for error handling
and debugging throughout the system.
"""

from .custom_exceptions import (
    CountiesBaseException,
    CountiesConfigurationError,
    CountiesValidationError,
    InvalidGeometryError,
    InvalidPointError,
    DuplicateIDError,
    IndexFrozenError,
    DecodeError,
)

__all__ = [
    "CountiesBaseException",
    "CountiesConfigurationError",
    "CountiesValidationError",
    "InvalidGeometryError",
    "InvalidPointError",
    "DuplicateIDError",
    "IndexFrozenError",
    "DecodeError",
]
