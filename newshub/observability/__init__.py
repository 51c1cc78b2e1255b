"""Observability layer - logging and metrics."""

from newshub.observability.logging import setup_logging
from newshub.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
