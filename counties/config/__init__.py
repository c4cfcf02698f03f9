"""
Configuration management module for the county lookup system.

This module provides configuration loading and validation for
multi-environment deployments (development and production).
"""

from .config_loader import ConfigLoader
from .config_models import DataPaths, LookupConfig, InvalidGeometryPolicy

__all__ = ["ConfigLoader", "DataPaths", "LookupConfig", "InvalidGeometryPolicy"]
