"""
Geographic hotspots: named regions and a 0.5-degree coordinate grid.

1. Region counts keyed by Flynn region name, ranked descending for
   hotspot lists ("HAWAII REGION, HAWAII", "GREECE", ...).
2. Coordinate clusters: each event's lat/lon rounded to the nearest
   0.5-degree cell center, with per-cell counts for mapping.

Cell identity is the integer grid key (round(lat*2), round(lon*2)) on
both the incremental and the recompute path, with halves rounded away
from zero. Cell centers are exact multiples of 0.5, so two rounded
centers within 0.01 degrees of each other always share a key; keying
on it makes both paths converge on the same partition whatever the
insertion order.
"""

import math
from collections import Counter
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from quakewatch.analytics.processors.base import AnalyticsProcessor
from quakewatch.events.record import SeismicEvent

CELLS_PER_DEGREE = 2


def _half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _half_away_array(values: np.ndarray) -> np.ndarray:
    return (np.sign(values) * np.floor(np.abs(values) + 0.5)).astype(np.int64)


def grid_key(latitude: float, longitude: float) -> tuple[int, int]:
    """Grid cell of a coordinate; ties round away from zero."""
    return (
        _half_away(latitude * CELLS_PER_DEGREE),
        _half_away(longitude * CELLS_PER_DEGREE),
    )


@dataclass
class HotspotCounts:
    regions: Counter = field(default_factory=Counter)
    cells: Counter = field(default_factory=Counter)


class GeographicHotspotsProcessor(AnalyticsProcessor):
    """Region counts plus coordinate grid cell counts."""
    
    name = "geographic_hotspots"
    title = "Geographic Hotspots"
    
    def __init__(self, top_regions: int = 10) -> None:
        super().__init__()
        self.top_regions = top_regions
        self._counts = HotspotCounts()
    
    def update(self, event: SeismicEvent) -> None:
        key = grid_key(event.latitude, event.longitude)
        with self._lock:
            self._counts.regions[event.flynn_region] += 1
            self._counts.cells[key] += 1
    
    def prepare(self, frame: pd.DataFrame) -> HotspotCounts:
        regions = self._series(frame, "flynn_region")
        lats = self._float_column(frame, "lat")
        lons = self._float_column(frame, "lon")
        
        lat_keys = _half_away_array(lats * CELLS_PER_DEGREE)
        lon_keys = _half_away_array(lons * CELLS_PER_DEGREE)
        
        return HotspotCounts(
            regions=Counter(regions.tolist()),
            cells=Counter(zip(lat_keys.tolist(), lon_keys.tolist())),
        )
    
    def install(self, state: HotspotCounts) -> None:
        with self._lock:
            self._counts = state
    
    def clear(self) -> None:
        with self._lock:
            self._counts = HotspotCounts()
    
    def get_region_hotspots(self) -> list[tuple[str, int]]:
        """Regions by count, descending (ties by name)."""
        with self._lock:
            items = list(self._counts.regions.items())
        return sorted(items, key=lambda item: (-item[1], item[0]))
    
    def get_coordinate_clusters(self) -> list[tuple[float, float, int]]:
        """(lat, lon, count) per occupied cell, ordered by cell."""
        with self._lock:
            items = sorted(self._counts.cells.items())
        return [
            (lat_key / CELLS_PER_DEGREE, lon_key / CELLS_PER_DEGREE, count)
            for (lat_key, lon_key), count in items
        ]
    
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        if frame.empty:
            return pd.DataFrame(columns=["flynn_region", "event_count", "avg_magnitude"])
        grouped = (
            frame.groupby("flynn_region")
            .agg(event_count=("mag", "size"), avg_magnitude=("mag", "mean"))
            .reset_index()
            .sort_values(["event_count", "flynn_region"], ascending=[False, True])
            .head(self.top_regions)
            .reset_index(drop=True)
        )
        return grouped
