"""Prometheus metrics module."""

from common.metrics.service import MetricsService

__all__ = [
    "MetricsService",
]
