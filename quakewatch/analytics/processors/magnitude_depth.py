"""
Magnitude-depth pairs for scatter plots and correlation analysis.

Raw (magnitude, depth) pairs, one per event, no bucketing. Deep
events cluster in subduction zones, so the scatter doubles as a
rough tectonic-setting indicator.
"""

import pandas as pd

from quakewatch.analytics.processors.base import AnalyticsProcessor, describe_column
from quakewatch.events.record import SeismicEvent


class MagnitudeDepthProcessor(AnalyticsProcessor):
    """Collects (magnitude, depth) pairs."""
    
    name = "magnitude_depth_pairs"
    title = "Depth Statistics"
    
    def __init__(self) -> None:
        super().__init__()
        self._pairs: list[tuple[float, float]] = []
    
    def update(self, event: SeismicEvent) -> None:
        with self._lock:
            self._pairs.append((event.magnitude, event.depth))
    
    def prepare(self, frame: pd.DataFrame) -> list[tuple[float, float]]:
        magnitudes = self._float_column(frame, "mag")
        depths = self._float_column(frame, "depth")
        return list(zip(magnitudes.tolist(), depths.tolist()))
    
    def install(self, state: list[tuple[float, float]]) -> None:
        with self._lock:
            self._pairs = state
    
    def clear(self) -> None:
        with self._lock:
            self._pairs = []
    
    def get_result(self) -> list[tuple[float, float]]:
        with self._lock:
            return list(self._pairs)
    
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        return describe_column(frame["depth"], "depth")
