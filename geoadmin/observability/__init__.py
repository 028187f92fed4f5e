"""
Observability module - Logging, Metrics, and Tracing.
"""

from geoadmin.observability.logging import get_logger, setup_logging
from geoadmin.observability.metrics import metrics
from geoadmin.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
