"""Structured logging and Prometheus metrics."""

from .logging import LoggingConfig, get_logger, setup_structured_logging
from .metrics import ValidationMetricsCollector, validation_metrics

__all__ = [
    'LoggingConfig',
    'get_logger',
    'setup_structured_logging',
    'ValidationMetricsCollector',
    'validation_metrics',
]
