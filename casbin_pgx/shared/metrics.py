"""
Prometheus metrics for adapter operations.
"""

import functools
import time
import uuid
from typing import Callable, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY

from .logging import get_logger, operation_id_var


class MetricsCollector:
    """Operation counters and latency histograms for the adapter."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY

        self.operations_total = Counter(
            "casbin_adapter_operations_total",
            "Total adapter operations",
            ["operation", "status"],
            registry=self.registry
        )

        self.operation_duration_seconds = Histogram(
            "casbin_adapter_operation_duration_seconds",
            "Adapter operation duration in seconds",
            ["operation"],
            registry=self.registry
        )

    def record_operation(self, operation: str, status: str, duration: float):
        """Record one finished operation."""
        self.operations_total.labels(operation=operation, status=status).inc()
        self.operation_duration_seconds.labels(operation=operation).observe(duration)


_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the process-wide metrics collector."""
    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector


def observe_operation(operation: str) -> Callable:
    """Decorator timing and counting an async adapter operation.

    Each call gets a fresh operation id in the logging context, so every
    event logged during the operation can be correlated.
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            token = operation_id_var.set(uuid.uuid4().hex[:16])
            start_time = time.perf_counter()
            status = "error"
            try:
                result = await func(*args, **kwargs)
                status = "ok"
                return result
            except Exception as e:
                get_logger("casbin_pgx.metrics").error(
                    "Adapter operation failed",
                    operation=operation,
                    error=str(e),
                    error_type=type(e).__name__
                )
                raise
            finally:
                get_metrics_collector().record_operation(
                    operation, status, time.perf_counter() - start_time
                )
                operation_id_var.reset(token)

        return wrapper
    return decorator
