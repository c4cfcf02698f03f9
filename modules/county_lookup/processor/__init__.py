"""County Lookup Processing Logic

This package contains the query service that owns the shared searcher and
the performance monitor wrapping its build, load and batch operations.
"""

from .county_lookup_service import CountyLookupService, summarize_batch
from .performance_monitor import PerformanceMonitor, PerformanceMetrics, performance_timer

__all__ = [
    'CountyLookupService',
    'summarize_batch',
    'PerformanceMonitor',
    'PerformanceMetrics',
    'performance_timer',
]
