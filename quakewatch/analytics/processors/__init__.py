"""
Statistic processors, each independently updatable and recomputable.
"""

from quakewatch.analytics.processors.base import AnalyticsProcessor
from quakewatch.analytics.processors.geographic_hotspots import GeographicHotspotsProcessor
from quakewatch.analytics.processors.gutenberg_richter import GutenbergRichterProcessor
from quakewatch.analytics.processors.magnitude_depth import MagnitudeDepthProcessor
from quakewatch.analytics.processors.magnitude_distribution import MagnitudeDistributionProcessor
from quakewatch.analytics.processors.risk_assessment import RiskAssessmentProcessor, RiskMetrics
from quakewatch.analytics.processors.temporal_patterns import TemporalPatternsProcessor

__all__ = [
    "AnalyticsProcessor",
    "GeographicHotspotsProcessor",
    "GutenbergRichterProcessor",
    "MagnitudeDepthProcessor",
    "MagnitudeDistributionProcessor",
    "RiskAssessmentProcessor",
    "RiskMetrics",
    "TemporalPatternsProcessor",
]
