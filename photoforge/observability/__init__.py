"""
Observability module - Logging, Metrics, and Tracing.
"""

from photoforge.observability.logging import get_logger, log_context, setup_logging
from photoforge.observability.metrics import metrics
from photoforge.observability.tracing import setup_tracing, trace_operation

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
    "trace_operation",
]
