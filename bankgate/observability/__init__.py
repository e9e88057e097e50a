"""
Observability module - Logging and Metrics.
"""

from bankgate.observability.logging import get_logger, log_context, setup_logging
from bankgate.observability.metrics import metrics, track_remote_call

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "track_remote_call",
]
