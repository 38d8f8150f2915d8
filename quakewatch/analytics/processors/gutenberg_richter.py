"""
Gutenberg-Richter law: magnitude-frequency relationship and b-value.

    log10(N) = a - b * M

- N: number of earthquakes at magnitude M
- a: activity rate parameter
- b: slope, typically ~1.0 (b < 1 suggests a higher-stress regime
  with relatively more large events)

The fit is a least-squares regression of ln(count) against magnitude
over 0.1-unit buckets at or above the magnitude of completeness
(default Mc = 2.0). Buckets below Mc are under-detected and would
flatten the slope. At least 3 qualifying buckets are required;
otherwise the previous b/a values are kept.

Incremental updates only refit every `recompute_every` events. The
b-value is exact only right after a full recompute.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Optional
import structlog

import numpy as np
import pandas as pd

from quakewatch.analytics.processors.base import AnalyticsProcessor
from quakewatch.events.record import SeismicEvent

logger = structlog.get_logger(__name__)

DEFAULT_B_VALUE = 1.0
DEFAULT_A_VALUE = 0.0
MIN_REGRESSION_POINTS = 3


def magnitude_key(magnitude: float) -> int:
    """0.1-unit bucket key. round() is half-to-even, same as np.rint."""
    return int(round(magnitude * 10.0))


def magnitude_keys(magnitudes: np.ndarray) -> np.ndarray:
    return np.rint(magnitudes * 10.0).astype(np.int64)


def fit_gutenberg_richter(
    counts: dict[int, int],
    completeness_magnitude: float,
) -> Optional[tuple[float, float]]:
    """
    Least-squares fit of ln(count) against magnitude.
    
    Args:
        counts: 0.1-unit magnitude key -> event count
        completeness_magnitude: Lowest magnitude included in the fit
    
    Returns:
        (b_value, a_value), or None with fewer than 3 usable buckets
    """
    completeness_key = magnitude_key(completeness_magnitude)
    points = [
        (key / 10.0, count)
        for key, count in counts.items()
        if key >= completeness_key and count > 0
    ]
    if len(points) < MIN_REGRESSION_POINTS:
        return None
    
    m = np.array([p[0] for p in points], dtype="float64")
    log_n = np.log(np.array([p[1] for p in points], dtype="float64"))
    n = float(len(points))
    
    sum_m = m.sum()
    sum_log_n = log_n.sum()
    sum_m_log_n = (m * log_n).sum()
    sum_m_squared = (m * m).sum()
    
    slope = (n * sum_m_log_n - sum_m * sum_log_n) / (sum_m * sum_m - n * sum_m_squared)
    intercept = (sum_log_n - slope * sum_m) / n
    
    # Frequency falls with magnitude, so the fitted slope is negative
    return float(-slope), float(intercept)


@dataclass
class GutenbergRichterState:
    """Counts plus the fit, or None when there were too few buckets to fit."""
    counts: Counter
    total: int
    fit: Optional[tuple[float, float]]


class GutenbergRichterProcessor(AnalyticsProcessor):
    """
    b-value estimation and magnitude-frequency data.
    
    Args:
        completeness_magnitude: Magnitude of completeness Mc
        recompute_every: Refit cadence on the incremental path
    """
    
    name = "gutenberg_richter"
    title = "Gutenberg-Richter Analysis"
    
    def __init__(
        self,
        completeness_magnitude: float = 2.0,
        recompute_every: int = 100,
    ) -> None:
        super().__init__()
        if recompute_every <= 0:
            raise ValueError("recompute_every must be positive")
        self.completeness_magnitude = completeness_magnitude
        self.recompute_every = recompute_every
        self._counts: Counter = Counter()
        self._total = 0
        self._b_value = DEFAULT_B_VALUE
        self._a_value = DEFAULT_A_VALUE
    
    def update(self, event: SeismicEvent) -> None:
        key = magnitude_key(event.magnitude)
        with self._lock:
            self._counts[key] += 1
            self._total += 1
            if self._total % self.recompute_every == 0:
                self._refit_locked()
    
    def _refit_locked(self) -> None:
        fit = fit_gutenberg_richter(self._counts, self.completeness_magnitude)
        if fit is None:
            logger.debug("b_value_fit_skipped", buckets=len(self._counts))
            return
        self._b_value, self._a_value = fit
    
    def prepare(self, frame: pd.DataFrame) -> GutenbergRichterState:
        magnitudes = self._float_column(frame, "mag")
        keys, counts = np.unique(magnitude_keys(magnitudes), return_counts=True)
        state_counts = Counter({int(k): int(c) for k, c in zip(keys, counts)})
        
        return GutenbergRichterState(
            counts=state_counts,
            total=len(magnitudes),
            fit=fit_gutenberg_richter(state_counts, self.completeness_magnitude),
        )
    
    def install(self, state: GutenbergRichterState) -> None:
        """Install counts. Without a fit the current b/a stay in place."""
        with self._lock:
            self._counts = state.counts
            self._total = state.total
            if state.fit is not None:
                self._b_value, self._a_value = state.fit
    
    def reset(self, state: GutenbergRichterState) -> None:
        """Install counts. Without a fit b/a fall back to the defaults."""
        with self._lock:
            self._counts = state.counts
            self._total = state.total
            self._b_value, self._a_value = state.fit or (DEFAULT_B_VALUE, DEFAULT_A_VALUE)
    
    def clear(self) -> None:
        with self._lock:
            self._counts = Counter()
            self._total = 0
            self._b_value = DEFAULT_B_VALUE
            self._a_value = DEFAULT_A_VALUE
    
    def get_b_value(self) -> float:
        with self._lock:
            return self._b_value
    
    def get_a_value(self) -> float:
        with self._lock:
            return self._a_value
    
    def get_magnitude_frequency_data(self) -> list[tuple[float, int, int]]:
        """
        Per observed magnitude (ascending): count and cumulative count N(>=M).
        
        The cumulative column is non-increasing.
        """
        with self._lock:
            items = sorted(self._counts.items())
        
        result = []
        remaining = sum(count for _, count in items)
        for key, count in items:
            result.append((key / 10.0, count, remaining))
            remaining -= count
        return result
    
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        return pd.DataFrame({
            "b_value": [self.get_b_value()],
            "a_value": [self.get_a_value()],
            "completeness_magnitude": [self.completeness_magnitude],
            "total_events": [len(frame)],
        })
