"""Observability - Tracing, Metrics and Logging"""
from .tracing import setup_tracing, get_tracer
from .metrics import setup_metrics
from .logging import setup_logging, get_logger

__all__ = [
    "setup_tracing", "get_tracer",
    "setup_metrics",
    "setup_logging", "get_logger",
]
