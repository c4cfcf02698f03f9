"""Performance monitoring for index builds, snapshot loads and batch lookups."""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

import psutil

logger = logging.getLogger(__name__)

SLOW_OPERATION_SECONDS = 5.0


@dataclass
class PerformanceMetrics:
    """Performance metrics for one monitored operation."""
    operation_name: str
    execution_time: float
    memory_usage_mb: float
    cpu_usage_percent: float
    records_processed: int
    processing_rate: float

    def get_summary(self) -> Dict[str, Any]:
        return {
            "operation": self.operation_name,
            "execution_time_seconds": round(self.execution_time, 3),
            "memory_usage_mb": round(self.memory_usage_mb, 2),
            "cpu_usage_percent": round(self.cpu_usage_percent, 2),
            "records_processed": self.records_processed,
            "processing_rate_per_second": round(self.processing_rate, 2)
        }


class OperationCounter:
    """Mutable record count handed to the body of ``monitor_operation``."""

    def __init__(self, records: int = 0):
        self.records = records


class PerformanceMonitor:
    """Tracks execution time, memory growth and CPU use of lookup operations.

    Memory is the growth in resident set size over the operation, which for
    an index build approximates the size of the new index.
    """

    def __init__(self, slow_threshold: float = SLOW_OPERATION_SECONDS):
        self.slow_threshold = slow_threshold
        self.metrics_history: List[PerformanceMetrics] = []
        self.process = psutil.Process()

    @contextmanager
    def monitor_operation(self, operation_name: str, records_count: int = 0):
        """Context manager for monitoring an operation.

        Args:
            operation_name: Name of the operation being monitored
            records_count: Number of records known up front

        Yields:
            OperationCounter whose ``records`` the body may update
        """
        counter = OperationCounter(records_count)
        start_time = time.time()
        start_memory = self.process.memory_info().rss / 1024 / 1024  # MB
        start_cpu_times = self.process.cpu_times()

        try:
            yield counter
        finally:
            end_time = time.time()
            end_memory = self.process.memory_info().rss / 1024 / 1024  # MB
            end_cpu_times = self.process.cpu_times()

            execution_time = end_time - start_time
            cpu_seconds = ((end_cpu_times.user - start_cpu_times.user) +
                           (end_cpu_times.system - start_cpu_times.system))
            cpu_usage = cpu_seconds / execution_time * 100 if execution_time > 0 else 0.0
            processing_rate = counter.records / execution_time if execution_time > 0 else 0.0

            metrics = PerformanceMetrics(
                operation_name=operation_name,
                execution_time=execution_time,
                memory_usage_mb=max(end_memory - start_memory, 0),
                cpu_usage_percent=cpu_usage,
                records_processed=counter.records,
                processing_rate=processing_rate
            )
            self.metrics_history.append(metrics)

            if execution_time > self.slow_threshold:
                logger.warning(f"Slow operation detected: {operation_name} took {execution_time:.2f}s "
                               f"for {counter.records} records ({processing_rate:.1f} records/sec)")
            else:
                logger.debug(f"Operation {operation_name}: {execution_time:.2f}s, "
                             f"{counter.records} records, {processing_rate:.1f} records/sec")

    def get_operation_metrics(self, operation_name: str) -> List[PerformanceMetrics]:
        return [m for m in self.metrics_history if m.operation_name == operation_name]

    def last(self, operation_name: Optional[str] = None) -> Optional[PerformanceMetrics]:
        history = self.get_operation_metrics(operation_name) if operation_name else self.metrics_history
        return history[-1] if history else None

    def get_performance_summary(self) -> Dict[str, Any]:
        """Totals per operation type."""
        if not self.metrics_history:
            return {"message": "No performance data collected"}

        operations: Dict[str, List[PerformanceMetrics]] = {}
        for metric in self.metrics_history:
            operations.setdefault(metric.operation_name, []).append(metric)

        total_time = sum(m.execution_time for m in self.metrics_history)
        total_records = sum(m.records_processed for m in self.metrics_history)
        return {
            "total_operations": len(self.metrics_history),
            "total_execution_time": round(total_time, 2),
            "total_records_processed": total_records,
            "operation_breakdown": {
                name: {
                    "total_executions": len(metrics),
                    "total_time": sum(m.execution_time for m in metrics),
                    "total_records": sum(m.records_processed for m in metrics),
                    "peak_memory_mb": max(m.memory_usage_mb for m in metrics),
                }
                for name, metrics in operations.items()
            }
        }

    def clear_metrics(self):
        self.metrics_history.clear()
        logger.debug("Performance metrics history cleared")


def performance_timer(operation_name: str = None):
    """Decorator logging a function's execution time at DEBUG.

    Args:
        operation_name: Name of the operation (defaults to function name)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            op_name = operation_name or func.__name__
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                logger.debug(f"Performance: {op_name} completed in {time.time() - start_time:.3f}s")
                return result
            except Exception as e:
                logger.warning(f"Performance: {op_name} failed after {time.time() - start_time:.3f}s: {e}")
                raise

        return wrapper
    return decorator
