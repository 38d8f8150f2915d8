"""
Incremental analytics: the engine and its statistic processors.
"""

from quakewatch.analytics.engine import (
    AdvancedAnalytics,
    AnalyticsCache,
    AnalyticsStats,
    BatchResult,
    IncrementalAnalytics,
)
from quakewatch.analytics.processors import RiskMetrics

__all__ = [
    "AdvancedAnalytics",
    "AnalyticsCache",
    "AnalyticsStats",
    "BatchResult",
    "IncrementalAnalytics",
    "RiskMetrics",
]
