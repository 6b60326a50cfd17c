"""Observability utilities for logging, tracing and metrics."""

from .logger import setup_logging  # noqa: F401
from .metrics import get_metrics_registry  # noqa: F401
from .tracing import CorrelationContext, get_correlation_id  # noqa: F401

__all__ = [
    "setup_logging",
    "get_metrics_registry",
    "CorrelationContext",
    "get_correlation_id",
]
