"""
Temporal patterns across several time scales.

Four independent counters, all keyed off the event's UTC time:
- Calendar date: daily counts for trend and swarm detection
- Hour of day (0-23): circadian patterns
- Month of year (1-12): seasonal variation
- Weekday (Mon..Sun): day-of-week frequency

Daily, hourly and monthly outputs only include observed keys. The
weekly output always has all seven days in Mon..Sun order.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date

import pandas as pd

from quakewatch.analytics.processors.base import AnalyticsProcessor
from quakewatch.events.record import SeismicEvent

WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass
class TemporalCounts:
    """The four counters, built together by a recompute."""
    dates: Counter = field(default_factory=Counter)
    hours: Counter = field(default_factory=Counter)
    months: Counter = field(default_factory=Counter)
    weekdays: Counter = field(default_factory=Counter)


class TemporalPatternsProcessor(AnalyticsProcessor):
    """Daily, hourly, monthly and weekly event counts."""
    
    name = "temporal_patterns"
    title = "Temporal Patterns Analysis"
    
    def __init__(self) -> None:
        super().__init__()
        self._counts = TemporalCounts()
    
    def update(self, event: SeismicEvent) -> None:
        t = event.time
        with self._lock:
            self._counts.dates[t.date()] += 1
            self._counts.hours[t.hour] += 1
            self._counts.months[t.month] += 1
            self._counts.weekdays[t.weekday()] += 1
    
    def prepare(self, frame: pd.DataFrame) -> TemporalCounts:
        nanos = self._time_column(frame, "time")
        times = pd.DatetimeIndex(pd.to_datetime(nanos, unit="ns", utc=True))
        
        return TemporalCounts(
            dates=Counter(times.date.tolist()),
            hours=Counter(int(h) for h in times.hour),
            months=Counter(int(m) for m in times.month),
            weekdays=Counter(int(d) for d in times.dayofweek),
        )
    
    def install(self, state: TemporalCounts) -> None:
        with self._lock:
            self._counts = state
    
    def clear(self) -> None:
        with self._lock:
            self._counts = TemporalCounts()
    
    def get_daily_counts(self) -> list[tuple[date, int]]:
        with self._lock:
            return sorted(self._counts.dates.items())
    
    def get_result(self) -> list[tuple[date, int]]:
        return self.get_daily_counts()
    
    def get_hourly_distribution(self) -> list[tuple[int, int]]:
        with self._lock:
            return sorted(self._counts.hours.items())
    
    def get_monthly_distribution(self) -> list[tuple[int, int]]:
        with self._lock:
            return sorted(self._counts.months.items())
    
    def get_weekly_distribution(self) -> list[tuple[str, int]]:
        """All seven weekdays, Mon..Sun, zero-filled."""
        with self._lock:
            weekdays = self._counts.weekdays
            return [(label, weekdays.get(i, 0)) for i, label in enumerate(WEEKDAYS)]
    
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        if frame.empty:
            return pd.DataFrame(columns=["date", "daily_count"])
        times = pd.to_datetime(frame["time"], unit="ns", utc=True)
        daily = times.dt.date.value_counts().sort_index()
        return pd.DataFrame({
            "date": [d.isoformat() for d in daily.index],
            "daily_count": daily.to_numpy(dtype="int64"),
        })
