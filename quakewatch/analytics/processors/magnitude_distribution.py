"""
Magnitude distribution: a histogram in 0.2 magnitude-unit buckets.

A bucket key is the magnitude times ten, truncated, minus its
remainder modulo 2. So 2.0 and 2.1 share bucket 20 (label "2"),
2.3 lands in bucket 22 (label "2.2").

The incremental and recompute paths use the same truncating cast,
so a value stored as 2.1999999 goes to the same bucket both ways.
"""

from collections import Counter

import numpy as np
import pandas as pd

from quakewatch.analytics.processors.base import AnalyticsProcessor, describe_column
from quakewatch.events.record import SeismicEvent


def bucket_key(magnitude: float) -> int:
    """Truncating 0.2-unit bucket key for a single magnitude."""
    key = int(magnitude * 10.0)
    return key - key % 2


def bucket_keys(magnitudes: np.ndarray) -> np.ndarray:
    """Vectorized bucket_key(). np.mod matches Python's % for negatives."""
    keys = np.trunc(magnitudes * 10.0).astype(np.int64)
    return keys - np.mod(keys, 2)


def bucket_label(key: int) -> str:
    """Decimal label for a bucket key: 20 -> "2", 22 -> "2.2"."""
    return f"{key / 10:g}"


class MagnitudeDistributionProcessor(AnalyticsProcessor):
    """Counts events per 0.2-unit magnitude bucket."""
    
    name = "magnitude_distribution"
    title = "Magnitude Statistics"
    
    def __init__(self) -> None:
        super().__init__()
        self._buckets: Counter = Counter()
    
    def update(self, event: SeismicEvent) -> None:
        key = bucket_key(event.magnitude)
        with self._lock:
            self._buckets[key] += 1
    
    def prepare(self, frame: pd.DataFrame) -> Counter:
        magnitudes = self._float_column(frame, "mag")
        keys, counts = np.unique(bucket_keys(magnitudes), return_counts=True)
        return Counter({int(k): int(c) for k, c in zip(keys, counts)})
    
    def install(self, state: Counter) -> None:
        with self._lock:
            self._buckets = state
    
    def clear(self) -> None:
        with self._lock:
            self._buckets = Counter()
    
    def get_result(self) -> list[tuple[str, int]]:
        """Bucket label and count, ascending by bucket."""
        with self._lock:
            items = sorted(self._buckets.items())
        return [(bucket_label(key), count) for key, count in items]
    
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        return describe_column(frame["mag"], "magnitude")
