"""
Observability module - Logging, Metrics, and Tracing.
"""

from scripthub.observability.logging import get_logger, log_context, setup_logging
from scripthub.observability.metrics import metrics
from scripthub.observability.tracing import setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
]
