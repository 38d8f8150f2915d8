"""
Data-management layer that owns the analytics engine.

SeismicData is what ingestion clients and query handlers talk to:
- validates records before they reach the engine
- forwards single events and batches
- consults the retention controller after every ingestion
- serves every statistic plus summary stats about the table
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable, Optional
import structlog

import pandas as pd

from quakewatch.analytics import AdvancedAnalytics, BatchResult, IncrementalAnalytics, RiskMetrics
from quakewatch.config import Settings
from quakewatch.events import SeismicEvent, validate_event
from quakewatch.retention import CleanupReport, RetentionController, RetentionPolicy

logger = structlog.get_logger(__name__)


@dataclass
class DataStats:
    """Summary of what the table currently holds."""
    total_events: int
    unique_regions: int
    oldest_event: Optional[datetime]
    newest_event: Optional[datetime]
    min_magnitude: Optional[float]
    max_magnitude: Optional[float]
    needs_recompute: bool
    last_cleanup: Optional[CleanupReport] = None
    
    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_events": self.total_events,
            "unique_regions": self.unique_regions,
            "time_range": {
                "oldest": self.oldest_event.isoformat() if self.oldest_event else None,
                "newest": self.newest_event.isoformat() if self.newest_event else None,
            },
            "magnitude_range": {
                "min": self.min_magnitude,
                "max": self.max_magnitude,
            },
            "needs_recompute": self.needs_recompute,
            "last_cleanup": self.last_cleanup.to_dict() if self.last_cleanup else None,
        }


class SeismicData:
    """
    Validated ingestion and queries over one analytics engine.
    
    Args:
        settings: Parsed settings (defaults if omitted)
        clock: "now" provider for retention (injectable for tests)
    """
    
    def __init__(
        self,
        settings: Optional[Settings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings or Settings()
        self.analytics = IncrementalAnalytics.from_settings(self.settings.analytics)
        self.retention = RetentionController(
            RetentionPolicy.from_settings(self.settings.retention),
            clock=clock,
        )
    
    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    
    def _validate(self, event: SeismicEvent) -> SeismicEvent:
        if not self.settings.validate_events:
            return event
        return validate_event(event)
    
    def add_or_update_event(self, event: SeismicEvent) -> bool:
        """
        Validate and ingest one event.
        
        Returns:
            True if the event was new, False if it revised a known id
        
        Raises:
            ValidationError: If the record fails range checks (nothing stored)
            ComputationError: If the engine could not ingest it
        """
        self._validate(event)
        is_new = self.analytics.add_event(event)
        self.retention.enforce(self.analytics)
        return is_new
    
    def add_events(self, events: Iterable[SeismicEvent]) -> BatchResult:
        """
        Validate a whole batch, then ingest it.
        
        One invalid record rejects the batch before anything is stored.
        """
        batch = [self._validate(event) for event in events]
        if not batch:
            return BatchResult(inserted=0, updated=0)
        
        result = self.analytics.add_events(batch)
        self.retention.enforce(self.analytics)
        
        logger.info(
            "events_ingested",
            received=len(batch),
            inserted=result.inserted,
            updated=result.updated,
            total_events=self.analytics.event_count,
        )
        return result
    
    def clear(self) -> None:
        self.analytics.clear()
        self.retention.last_report = None
    
    def recompute_analytics(self) -> None:
        """Force a full rebuild of every statistic."""
        self.analytics.recompute_all()
    
    def enforce_retention(self) -> Optional[CleanupReport]:
        return self.retention.enforce(self.analytics)
    
    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    
    def get_events(self) -> list[SeismicEvent]:
        """Every retained event, in table order."""
        frame = self.analytics.get_dataframe()
        return [SeismicEvent.from_row(row) for row in frame.to_dict("records")]
    
    def get_chronological_events(self) -> list[SeismicEvent]:
        """Every retained event, oldest first."""
        return sorted(self.get_events(), key=lambda event: event.time)
    
    def get_dataframe(self) -> pd.DataFrame:
        return self.analytics.get_dataframe()
    
    def get_stats(self) -> DataStats:
        frame = self.analytics.get_dataframe()
        
        if frame.empty:
            return DataStats(
                total_events=0,
                unique_regions=0,
                oldest_event=None,
                newest_event=None,
                min_magnitude=None,
                max_magnitude=None,
                needs_recompute=self.analytics.needs_recompute,
                last_cleanup=self.retention.last_report,
            )
        
        return DataStats(
            total_events=len(frame),
            unique_regions=int(frame["flynn_region"].nunique()),
            oldest_event=pd.Timestamp(int(frame["time"].min()), unit="ns", tz="UTC").to_pydatetime(),
            newest_event=pd.Timestamp(int(frame["time"].max()), unit="ns", tz="UTC").to_pydatetime(),
            min_magnitude=float(frame["mag"].min()),
            max_magnitude=float(frame["mag"].max()),
            needs_recompute=self.analytics.needs_recompute,
            last_cleanup=self.retention.last_report,
        )
    
    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    
    def get_magnitude_distribution(self) -> list[tuple[str, int]]:
        return self.analytics.get_magnitude_distribution()
    
    def get_count_by_date(self) -> list[tuple[date, int]]:
        return self.analytics.get_count_by_date()
    
    def get_hourly_frequency(self) -> list[tuple[int, int]]:
        return self.analytics.get_hourly_frequency()
    
    def get_monthly_frequency(self) -> list[tuple[int, int]]:
        return self.analytics.get_monthly_frequency()
    
    def get_weekly_frequency(self) -> list[tuple[str, int]]:
        return self.analytics.get_weekly_frequency()
    
    def get_mag_depth_pairs(self) -> list[tuple[float, float]]:
        return self.analytics.get_mag_depth_pairs()
    
    def get_region_hotspots(self) -> list[tuple[str, int]]:
        return self.analytics.get_region_hotspots()
    
    def get_coordinate_clusters(self) -> list[tuple[float, float, int]]:
        return self.analytics.get_coordinate_clusters()
    
    def get_b_value(self) -> float:
        return self.analytics.get_b_value()
    
    def get_a_value(self) -> float:
        return self.analytics.get_a_value()
    
    def get_magnitude_frequency_data(self) -> list[tuple[float, int, int]]:
        return self.analytics.get_magnitude_frequency_data()
    
    def get_risk_metrics(self) -> RiskMetrics:
        return self.analytics.get_risk_metrics()
    
    def get_total_energy(self) -> float:
        return self.analytics.get_total_energy()
    
    def probability_of_magnitude(self, magnitude_threshold: float, days: float) -> float:
        return self.analytics.probability_of_magnitude(magnitude_threshold, days)
    
    def get_advanced_analytics(self) -> AdvancedAnalytics:
        return self.analytics.get_advanced_analytics()
    
    def get_regional_summary(self, top_n: int = 10) -> pd.DataFrame:
        return self.analytics.get_regional_summary(top_n=top_n)
