"""
Retention controller.

Decides when the event table has outgrown its policy and rebuilds the
engine from a pruned copy of it.

Policy (either limit may be disabled with None):
- max_events: keep only the most recent N events by event time
- retention_days: drop events older than now - retention_days

Pruning is a full stop-the-world rebuild. Processor aggregates have
no subtraction path, so there is no incremental eviction.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Callable, Optional
import structlog

import pandas as pd

from quakewatch.config import RetentionSettings

if TYPE_CHECKING:
    from quakewatch.analytics.engine import IncrementalAnalytics

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RetentionPolicy:
    """Count and age limits for the event table."""
    max_events: Optional[int] = 50000
    retention_days: Optional[float] = 30.0
    
    def __post_init__(self):
        if self.max_events is not None and self.max_events <= 0:
            raise ValueError(f"max_events must be positive, got {self.max_events}")
        if self.retention_days is not None and self.retention_days <= 0:
            raise ValueError(f"retention_days must be positive, got {self.retention_days}")
    
    @classmethod
    def from_settings(cls, settings: RetentionSettings) -> "RetentionPolicy":
        return cls(
            max_events=settings.max_events,
            retention_days=settings.retention_days,
        )
    
    @property
    def enabled(self) -> bool:
        return self.max_events is not None or self.retention_days is not None
    
    def cutoff(self, now: datetime) -> Optional[datetime]:
        """Oldest event time still retained, or None without an age limit."""
        if self.retention_days is None:
            return None
        return now - timedelta(days=self.retention_days)
    
    def cutoff_ns(self, now: datetime) -> Optional[int]:
        cutoff = self.cutoff(now)
        if cutoff is None:
            return None
        return int(pd.Timestamp(cutoff).value)


@dataclass
class CleanupReport:
    """What one enforcement pass did."""
    events_before: int
    events_after: int
    cutoff: Optional[datetime] = None
    performed_at: datetime = field(default_factory=_utcnow)
    
    @property
    def removed(self) -> int:
        return self.events_before - self.events_after
    
    def to_dict(self) -> dict:
        return {
            "events_before": self.events_before,
            "events_after": self.events_after,
            "removed": self.removed,
            "cutoff": self.cutoff.isoformat() if self.cutoff else None,
            "performed_at": self.performed_at.isoformat(),
        }


class RetentionController:
    """
    Applies a RetentionPolicy to an analytics engine.
    
    Args:
        policy: Count and age limits
        clock: Returns "now" as an aware UTC datetime (injectable for tests)
    """
    
    def __init__(
        self,
        policy: Optional[RetentionPolicy] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.policy = policy or RetentionPolicy()
        self._clock = clock or _utcnow
        self.last_report: Optional[CleanupReport] = None
    
    def needs_cleanup(self, event_count: int, oldest_event_ns: Optional[int]) -> bool:
        """
        Whether the table is beyond policy.
        
        Args:
            event_count: Rows currently stored
            oldest_event_ns: Earliest event time in the table, if any
        """
        if self.policy.max_events is not None and event_count > self.policy.max_events:
            return True
        
        cutoff_ns = self.policy.cutoff_ns(self._clock())
        if cutoff_ns is not None and oldest_event_ns is not None:
            return oldest_event_ns < cutoff_ns
        return False
    
    def build_retained_frame(self, frame: pd.DataFrame) -> pd.DataFrame:
        """
        Rows that survive the policy, in their original table order.
        
        Newest events win when the count limit applies; ties on event
        time keep the earlier-inserted row.
        """
        retained = frame
        
        cutoff_ns = self.policy.cutoff_ns(self._clock())
        if cutoff_ns is not None:
            retained = retained[retained["time"] >= cutoff_ns]
        
        if self.policy.max_events is not None and len(retained) > self.policy.max_events:
            retained = (
                retained
                .sort_values("time", ascending=False, kind="mergesort")
                .head(self.policy.max_events)
                .sort_index()
            )
        
        return retained.reset_index(drop=True)
    
    def enforce(self, engine: "IncrementalAnalytics") -> Optional[CleanupReport]:
        """
        Prune the engine's table if it is beyond policy.
        
        Returns:
            CleanupReport if anything was removed, else None
        """
        if not self.policy.enabled:
            return None
        if not self.needs_cleanup(engine.event_count, engine.oldest_event_ns()):
            return None
        
        now = self._clock()
        counts = {}
        
        def transform(frame: pd.DataFrame) -> Optional[pd.DataFrame]:
            retained = self.build_retained_frame(frame)
            if len(retained) == len(frame):
                return None
            counts["before"] = len(frame)
            counts["after"] = len(retained)
            return retained
        
        removed = engine.prune(transform)
        if removed is None:
            return None
        
        report = CleanupReport(
            events_before=counts["before"],
            events_after=counts["after"],
            cutoff=self.policy.cutoff(now),
            performed_at=now,
        )
        self.last_report = report
        
        logger.info(
            "retention_cleanup_applied",
            events_before=report.events_before,
            events_after=report.events_after,
            removed=report.removed,
            max_events=self.policy.max_events,
            retention_days=self.policy.retention_days,
        )
        return report
