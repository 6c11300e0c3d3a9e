"""
Monitoring subpackage for the aggregator.

This package handles:
- Performance metrics collection
"""

from .metrics import MetricsCollector, MetricSummary

__all__ = ["MetricsCollector", "MetricSummary"]
