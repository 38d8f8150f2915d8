"""
Risk assessment: Poisson occurrence probabilities and energy release.

Probability of at least one event at or above a magnitude within a
future window, assuming a stationary Poisson process:

    rate = N(M >= threshold) / observed_span_days
    P = 1 - exp(-rate * days)

Released energy per event (Joules):

    log10(E) = 11.8 + 1.5 * M

so one magnitude unit is ~31.6x the energy.

The observed span is the distance between the earliest and latest
event times, floored at one day so a burst of events within the same
instant does not divide by zero.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from typing import NamedTuple, Optional

import numpy as np
import pandas as pd

from quakewatch.analytics.processors.base import AnalyticsProcessor
from quakewatch.analytics.processors.gutenberg_richter import magnitude_key, magnitude_keys
from quakewatch.events.record import SeismicEvent

NANOS_PER_DAY = 86_400 * 1_000_000_000
MIN_SPAN_DAYS = 1.0


def magnitude_to_energy(magnitude: float) -> float:
    """Seismic energy in Joules for a magnitude."""
    return 10.0 ** (11.8 + 1.5 * magnitude)


class RiskMetrics(NamedTuple):
    """The four headline risk numbers."""
    prob_m5_30_days: float
    prob_m6_365_days: float
    prob_m7_365_days: float
    total_energy_joules: float


@dataclass
class RiskState:
    total_events: int = 0
    counts: Counter = field(default_factory=Counter)
    total_energy: float = 0.0
    min_time_ns: Optional[int] = None
    max_time_ns: Optional[int] = None
    
    @property
    def time_span_days(self) -> float:
        if self.min_time_ns is None or self.max_time_ns is None:
            return MIN_SPAN_DAYS
        span = (self.max_time_ns - self.min_time_ns) / NANOS_PER_DAY
        return max(span, MIN_SPAN_DAYS)


class RiskAssessmentProcessor(AnalyticsProcessor):
    """Event counts by magnitude, time span and cumulative energy."""
    
    name = "risk_assessment"
    title = "Risk Assessment"
    
    def __init__(self) -> None:
        super().__init__()
        self._state = RiskState()
    
    def update(self, event: SeismicEvent) -> None:
        key = magnitude_key(event.magnitude)
        energy = magnitude_to_energy(event.magnitude)
        t = event.time_ns
        with self._lock:
            state = self._state
            state.total_events += 1
            state.counts[key] += 1
            state.total_energy += energy
            state.min_time_ns = t if state.min_time_ns is None else min(state.min_time_ns, t)
            state.max_time_ns = t if state.max_time_ns is None else max(state.max_time_ns, t)
    
    def prepare(self, frame: pd.DataFrame) -> RiskState:
        magnitudes = self._float_column(frame, "mag")
        times = self._time_column(frame, "time")
        
        if len(magnitudes) == 0:
            return RiskState()
        
        energies = np.power(10.0, 11.8 + 1.5 * magnitudes)
        
        keys, counts = np.unique(magnitude_keys(magnitudes), return_counts=True)
        return RiskState(
            total_events=len(magnitudes),
            counts=Counter({int(k): int(c) for k, c in zip(keys, counts)}),
            total_energy=math.fsum(energies.tolist()),
            min_time_ns=int(times.min()),
            max_time_ns=int(times.max()),
        )
    
    def install(self, state: RiskState) -> None:
        with self._lock:
            self._state = state
    
    def clear(self) -> None:
        with self._lock:
            self._state = RiskState()
    
    @property
    def time_span_days(self) -> float:
        with self._lock:
            return self._state.time_span_days
    
    @property
    def total_events(self) -> int:
        with self._lock:
            return self._state.total_events
    
    def probability_magnitude_in_days(self, magnitude_threshold: float, days: float) -> float:
        """
        P(at least one event >= magnitude_threshold within `days`).
        
        Args:
            magnitude_threshold: Minimum magnitude
            days: Forecast window in days
        
        Returns:
            Probability in [0, 1]
        """
        threshold_key = magnitude_key(magnitude_threshold)
        with self._lock:
            above = sum(
                count for key, count in self._state.counts.items()
                if key >= threshold_key
            )
            span = self._state.time_span_days
        
        rate_per_day = above / span
        return 1.0 - math.exp(-rate_per_day * days)
    
    def get_total_energy(self) -> float:
        with self._lock:
            return self._state.total_energy
    
    def get_risk_metrics(self) -> RiskMetrics:
        return RiskMetrics(
            prob_m5_30_days=self.probability_magnitude_in_days(5.0, 30.0),
            prob_m6_365_days=self.probability_magnitude_in_days(6.0, 365.0),
            prob_m7_365_days=self.probability_magnitude_in_days(7.0, 365.0),
            total_energy_joules=self.get_total_energy(),
        )
    
    def auxiliary_stats(self, frame: pd.DataFrame) -> pd.DataFrame:
        metrics = self.get_risk_metrics()
        return pd.DataFrame({
            "prob_mag5_30days": [metrics.prob_m5_30_days],
            "prob_mag6_365days": [metrics.prob_m6_365_days],
            "prob_mag7_365days": [metrics.prob_m7_365_days],
            "total_energy_joules": [metrics.total_energy_joules],
            "total_events": [len(frame)],
        })
