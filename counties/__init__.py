"""
Counties Framework Core Package

This package contains the shared infrastructure for the county lookup system:
configuration loading, the exception hierarchy and logging utilities used by
the processing modules.
"""

from .exceptions import CountiesBaseException

__version__ = "1.0.0"
__all__ = ['CountiesBaseException']
