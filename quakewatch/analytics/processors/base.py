"""
Statistic processor interface.

Every processor owns its aggregate state behind its own lock and
supports two ways of keeping it current:
- update(event): cheap incremental step for a brand-new event
- recompute(frame): full rebuild from the event table

Aggregates are monotonic (counts, sums, appended pairs). There is no
subtraction path, so revisions and deletions go through recompute.

recompute() is split into prepare() and install() so the engine can
build every processor's new state first and only install them once
all of them succeeded.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any

import numpy as np
import pandas as pd

from quakewatch.errors import ComputationError
from quakewatch.events.record import SeismicEvent


class AnalyticsProcessor(ABC):
    """Base class for the engine's statistic processors."""
    
    name: str = "processor"
    title: str = "Statistics"
    
    def __init__(self) -> None:
        self._lock = threading.Lock()
    
    @abstractmethod
    def update(self, event: SeismicEvent) -> None:
        """Fold one new event into the aggregates."""
    
    @abstractmethod
    def prepare(self, frame: pd.DataFrame) -> Any:
        """Compute fresh aggregate state from the table without installing it."""
    
    @abstractmethod
    def install(self, state: Any) -> None:
        """Replace the aggregates with state returned by prepare()."""
    
    @abstractmethod
    def clear(self) -> None:
        """Reset to the empty state."""
    
    @abstractmethod
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Summary table shown alongside the main statistic."""
    
    def recompute(self, frame: pd.DataFrame) -> None:
        """Rebuild the aggregates from the table."""
        self.install(self.prepare(frame))
    
    def reset(self, state: Any) -> None:
        """Install state built from a table that replaces the old one."""
        self.install(state)
    
    def _float_column(self, frame: pd.DataFrame, name: str) -> np.ndarray:
        series = self._series(frame, name)
        if not pd.api.types.is_float_dtype(series) and not pd.api.types.is_integer_dtype(series):
            raise ComputationError(
                f"column {name!r} has dtype {series.dtype}, expected float64",
                context=self.name,
            )
        return series.to_numpy(dtype="float64")
    
    def _time_column(self, frame: pd.DataFrame, name: str = "time") -> np.ndarray:
        series = self._series(frame, name)
        if not pd.api.types.is_integer_dtype(series):
            raise ComputationError(
                f"column {name!r} has dtype {series.dtype}, expected int64 nanoseconds",
                context=self.name,
            )
        return series.to_numpy(dtype="int64")
    
    def _series(self, frame: pd.DataFrame, name: str) -> pd.Series:
        try:
            return frame[name]
        except KeyError as e:
            raise ComputationError(f"missing column {name!r}", context=self.name) from e
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def describe_column(values: pd.Series, prefix: str) -> pd.DataFrame:
    """One-row mean/median/std/min/max table for a numeric column."""
    if values.empty:
        stats = {key: [None] for key in ("mean", "median", "std", "min", "max")}
    else:
        stats = {
            "mean": [float(values.mean())],
            "median": [float(values.median())],
            "std": [float(values.std(ddof=1)) if len(values) > 1 else None],
            "min": [float(values.min())],
            "max": [float(values.max())],
        }
    return pd.DataFrame({f"{key}_{prefix}": value for key, value in stats.items()})
