"""
Incremental analytics engine.

Orchestrates the columnar store, the id index and the six statistic
processors, and owns the consistency contract between cheap
incremental updates and full recomputation:

- A new id is appended to the store, indexed, and folded into every
  processor incrementally.
- A known id (an upstream revision) replaces its row in the store
  and marks the engine stale. Processors are left alone; their
  aggregates have no subtraction path.
- Every statistic accessor checks staleness first. If stale, all
  processors are rebuilt from one snapshot of the store before the
  answer is read.

Locking:
- store.lock (read-write): writers are add_event, add_events, clear,
  replace_store_and_rebuild; they hold it across store + index +
  processor updates so table readers never see one without the others.
- A statistic read takes only its processor's lock, so readers of one
  statistic never block ingestion. The store read lock is taken only
  to rebuild a stale engine and to read the table itself; a recompute
  therefore never races a swap of the table or a concurrent feed.
- Each processor guards its own aggregates with its own lock, and a
  replacement installs each processor's new state in one step.
"""

import threading
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, NamedTuple, Optional, TypeVar
import structlog

import pandas as pd

from quakewatch.analytics.processors import (
    AnalyticsProcessor,
    GeographicHotspotsProcessor,
    GutenbergRichterProcessor,
    MagnitudeDepthProcessor,
    MagnitudeDistributionProcessor,
    RiskAssessmentProcessor,
    RiskMetrics,
    TemporalPatternsProcessor,
)
from quakewatch.concurrency import StalenessFlag
from quakewatch.config import AnalyticsSettings
from quakewatch.errors import ComputationError, QuakeWatchError, StateError
from quakewatch.events.record import SeismicEvent
from quakewatch.storage import ColumnarEventStore, EventIndex, EventQueries
from quakewatch.storage.columnar_store import coerce_frame

logger = structlog.get_logger(__name__)

T = TypeVar("T")

REGIONAL_ANALYSIS_TITLE = "Regional Analysis"


@dataclass(frozen=True)
class AnalyticsCache:
    """When the engine last changed, and how many events it holds."""
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    total_events: int = 0


@dataclass
class AnalyticsStats:
    """One titled summary table."""
    title: str
    data: pd.DataFrame
    
    def to_dict(self) -> dict[str, Any]:
        return {"title": self.title, "data": self.data.to_dict("records")}


@dataclass
class AdvancedAnalytics:
    """Every processor's summary table plus the regional analysis."""
    stats: list[AnalyticsStats] = field(default_factory=list)
    
    def get(self, title: str) -> Optional[pd.DataFrame]:
        for entry in self.stats:
            if entry.title == title:
                return entry.data
        return None
    
    def to_dict(self) -> dict[str, Any]:
        return {"stats": [entry.to_dict() for entry in self.stats]}


class BatchResult(NamedTuple):
    """Outcome of one add_events call."""
    inserted: int
    updated: int


class IncrementalAnalytics:
    """
    Incremental analytics over a growing set of seismic events.
    
    Args:
        completeness_magnitude: Mc for the Gutenberg-Richter fit
        b_value_recompute_every: b-value refit cadence on the incremental path
    """
    
    def __init__(
        self,
        completeness_magnitude: float = 2.0,
        b_value_recompute_every: int = 100,
    ):
        self.store = ColumnarEventStore()
        self.index = EventIndex()
        self.queries = EventQueries()
        
        self._stale = StalenessFlag()
        self._recompute_lock = threading.Lock()
        self._cache_lock = threading.Lock()
        self._cache = AnalyticsCache()
        
        self.magnitude_distribution = MagnitudeDistributionProcessor()
        self.temporal_patterns = TemporalPatternsProcessor()
        self.magnitude_depth = MagnitudeDepthProcessor()
        self.geographic_hotspots = GeographicHotspotsProcessor()
        self.gutenberg_richter = GutenbergRichterProcessor(
            completeness_magnitude=completeness_magnitude,
            recompute_every=b_value_recompute_every,
        )
        self.risk_assessment = RiskAssessmentProcessor()
        
        self.processors: list[AnalyticsProcessor] = [
            self.magnitude_distribution,
            self.temporal_patterns,
            self.magnitude_depth,
            self.geographic_hotspots,
            self.gutenberg_richter,
            self.risk_assessment,
        ]
        
        logger.info(
            "analytics_engine_initialized",
            processors=[p.name for p in self.processors],
            completeness_magnitude=completeness_magnitude,
            b_value_recompute_every=b_value_recompute_every,
        )
    
    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> "IncrementalAnalytics":
        return cls(
            completeness_magnitude=settings.completeness_magnitude,
            b_value_recompute_every=settings.b_value_recompute_every,
        )
    
    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    
    def add_event(self, event: SeismicEvent) -> bool:
        """
        Add one event, or update it if its id is already known.
        
        Args:
            event: Validated event record
        
        Returns:
            True if the event was new, False if it updated a known id
        
        Raises:
            ComputationError: If the record cannot be stored, or a
                processor failed to fold it in (engine is left stale)
        """
        with self.store.lock.write():
            position = self.index.get(event.id)
            if position is not None:
                self.store.replace_row(position, event)
                self._mark_stale(event.id)
                self._touch_cache()
                return False
            
            start = self.store.append([event])
            self.index.insert(event.id, start)
            self._touch_cache()
            self._feed([event])
        
        logger.debug("event_added", event_id=event.id, magnitude=event.magnitude)
        return True
    
    def add_events(self, events: Iterable[SeismicEvent]) -> BatchResult:
        """
        Add a batch of events with a single append.
        
        Duplicate ids within the batch collapse to one: the first
        occurrence fixes the row position, the last one supplies
        the values.
        
        Args:
            events: Validated event records
        
        Returns:
            BatchResult with counts of inserted and updated ids
        """
        latest: dict[str, SeismicEvent] = {}
        for event in events:
            latest[event.id] = event
        if not latest:
            return BatchResult(inserted=0, updated=0)
        
        with self.store.lock.write():
            new_events = []
            updates = []
            for event_id, event in latest.items():
                position = self.index.get(event_id)
                if position is None:
                    new_events.append(event)
                else:
                    updates.append((position, event))
            
            previous = self.store.snapshot()
            try:
                self.store.replace_rows(updates)
                start = self.store.append(new_events)
            except QuakeWatchError:
                self.store.install(previous)
                raise
            
            self.index.insert_many(
                (event.id, start + offset) for offset, event in enumerate(new_events)
            )
            if updates:
                self._mark_stale(updates[0][1].id, count=len(updates))
            self._touch_cache()
            self._feed(new_events)
        
        logger.debug(
            "events_batch_added",
            received=len(latest),
            inserted=len(new_events),
            updated=len(updates),
        )
        return BatchResult(inserted=len(new_events), updated=len(updates))
    
    def recompute_all(self) -> None:
        """
        Rebuild every processor from the store, then clear staleness.
        
        Raises:
            ComputationError: If any processor fails; nothing is
                installed and the engine stays stale
        """
        with self.store.lock.read():
            with self._recompute_lock:
                self._recompute_locked()
    
    def clear(self) -> None:
        """Back to the empty state."""
        with self.store.lock.write():
            self.store.clear()
            self.index.clear()
            for processor in self.processors:
                processor.clear()
            self._stale.clear()
            with self._cache_lock:
                self._cache = AnalyticsCache()
        
        logger.info("analytics_cleared")
    
    def replace_store_and_rebuild(self, frame: pd.DataFrame) -> None:
        """
        Swap in a new event table and rebuild everything from it.
        
        Stop-the-world: the write lock is held while the new processor
        state is prepared, and nothing is swapped unless every
        processor succeeded. Readers see either the old table with old
        statistics or the new table with new statistics.
        
        Args:
            frame: Event table with every store column
        
        Raises:
            ComputationError: If the frame cannot be coerced or a
                processor fails; the engine is left unchanged
            StateError: If the frame contains duplicate ids
        """
        with self.store.lock.write():
            self._replace_locked(frame)
    
    def _replace_locked(self, frame: pd.DataFrame) -> None:
        """Caller holds the store write lock."""
        table = coerce_frame(frame)
        duplicated = table["unid"][table["unid"].duplicated()]
        if not duplicated.empty:
            raise StateError(
                f"replacement table has {len(duplicated)} duplicate ids "
                f"(first: {duplicated.iloc[0]!r})",
                context="analytics_engine",
            )
        
        states = self._prepare_all(table)
        
        old_count = len(self.store)
        self.store.install(table)
        self.index.rebuild(table["unid"].tolist())
        for processor, state in zip(self.processors, states):
            processor.reset(state)
        self._stale.clear()
        self._touch_cache()
        
        logger.info("event_store_replaced", previous_events=old_count, events=len(table))
    
    def prune(self, transform: Callable[[pd.DataFrame], Optional[pd.DataFrame]]) -> Optional[int]:
        """
        Replace the table with transform(current table).
        
        The transform runs under the write lock, so no event can arrive
        between reading the table and swapping in its replacement.
        Returning None means no change.
        
        Returns:
            Number of events removed, or None if nothing changed
        """
        with self.store.lock.write():
            snapshot = self.store.snapshot()
            pruned = transform(snapshot)
            if pruned is None:
                return None
            self._replace_locked(pruned)
        
        return len(snapshot) - len(pruned)
    
    # ------------------------------------------------------------------
    # Consistency protocol
    # ------------------------------------------------------------------
    
    def _mark_stale(self, event_id: str, count: int = 1) -> None:
        if not self._stale.is_set():
            logger.info("analytics_marked_stale", event_id=event_id, updated=count)
        self._stale.set()
    
    def _feed(self, events: list[SeismicEvent]) -> None:
        """Fold new events into every processor. Caller holds the write lock."""
        for processor in self.processors:
            try:
                for event in events:
                    processor.update(event)
            except Exception as e:
                self._stale.set()
                logger.error(
                    "processor_update_failed",
                    processor=processor.name,
                    error=str(e),
                )
                raise ComputationError(
                    f"{processor.name} update failed: {e}",
                    context="analytics_engine",
                ) from e
    
    def _prepare_all(self, frame: pd.DataFrame) -> list[Any]:
        states = []
        for processor in self.processors:
            try:
                states.append(processor.prepare(frame))
            except ComputationError:
                logger.error("analytics_recompute_failed", processor=processor.name, rows=len(frame))
                raise
            except (ArithmeticError, TypeError, ValueError, KeyError) as e:
                logger.error(
                    "analytics_recompute_failed",
                    processor=processor.name,
                    rows=len(frame),
                    error=str(e),
                )
                raise ComputationError(
                    f"{processor.name} recompute failed: {e}",
                    context="analytics_engine",
                ) from e
        return states
    
    def _install_all(self, states: list[Any]) -> None:
        for processor, state in zip(self.processors, states):
            processor.install(state)
    
    def _recompute_locked(self) -> None:
        """Caller holds the store read lock and _recompute_lock."""
        snapshot = self.store.snapshot()
        states = self._prepare_all(snapshot)
        self._install_all(states)
        self._stale.clear()
        logger.info("analytics_recomputed", events=len(snapshot))
    
    def _ensure_fresh(self) -> None:
        """Rebuild if stale. Caller holds the store read lock."""
        if not self._stale.is_set():
            return
        with self._recompute_lock:
            # Another reader may have rebuilt while we waited
            if self._stale.is_set():
                self._recompute_locked()
    
    def _query(self, reader: Callable[[], T]) -> T:
        if self._stale.is_set():
            with self.store.lock.read():
                self._ensure_fresh()
        return reader()
    
    def _touch_cache(self) -> None:
        with self._cache_lock:
            self._cache = AnalyticsCache(
                last_updated=datetime.now(timezone.utc),
                total_events=len(self.store),
            )
    
    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    
    @property
    def cache(self) -> AnalyticsCache:
        with self._cache_lock:
            return replace(self._cache)
    
    @property
    def needs_recompute(self) -> bool:
        return self._stale.is_set()
    
    @property
    def event_count(self) -> int:
        with self.store.lock.read():
            return len(self.store)
    
    def contains(self, event_id: str) -> bool:
        return self.index.contains(event_id)
    
    def __len__(self) -> int:
        return self.event_count
    
    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    
    def get_magnitude_distribution(self) -> list[tuple[str, int]]:
        return self._query(self.magnitude_distribution.get_result)
    
    def get_count_by_date(self) -> list[tuple[Any, int]]:
        return self._query(self.temporal_patterns.get_daily_counts)
    
    def get_hourly_frequency(self) -> list[tuple[int, int]]:
        return self._query(self.temporal_patterns.get_hourly_distribution)
    
    def get_monthly_frequency(self) -> list[tuple[int, int]]:
        return self._query(self.temporal_patterns.get_monthly_distribution)
    
    def get_weekly_frequency(self) -> list[tuple[str, int]]:
        return self._query(self.temporal_patterns.get_weekly_distribution)
    
    def get_mag_depth_pairs(self) -> list[tuple[float, float]]:
        return self._query(self.magnitude_depth.get_result)
    
    def get_region_hotspots(self) -> list[tuple[str, int]]:
        return self._query(self.geographic_hotspots.get_region_hotspots)
    
    def get_coordinate_clusters(self) -> list[tuple[float, float, int]]:
        return self._query(self.geographic_hotspots.get_coordinate_clusters)
    
    def get_b_value(self) -> float:
        return self._query(self.gutenberg_richter.get_b_value)
    
    def get_a_value(self) -> float:
        return self._query(self.gutenberg_richter.get_a_value)
    
    def get_magnitude_frequency_data(self) -> list[tuple[float, int, int]]:
        return self._query(self.gutenberg_richter.get_magnitude_frequency_data)
    
    def get_risk_metrics(self) -> RiskMetrics:
        return self._query(self.risk_assessment.get_risk_metrics)
    
    def get_total_energy(self) -> float:
        return self._query(self.risk_assessment.get_total_energy)
    
    def probability_of_magnitude(self, magnitude_threshold: float, days: float) -> float:
        """P(at least one event >= magnitude_threshold within `days`)."""
        return self._query(
            lambda: self.risk_assessment.probability_magnitude_in_days(magnitude_threshold, days)
        )
    
    def get_advanced_analytics(self) -> AdvancedAnalytics:
        """Each processor's summary table, then the top-10 regional analysis."""
        def collect() -> AdvancedAnalytics:
            with self.store.lock.read():
                frame = self.store.snapshot()
            stats = [
                AnalyticsStats(title=p.title, data=p.auxiliary_stats(frame))
                for p in self.processors
            ]
            stats.append(AnalyticsStats(
                title=REGIONAL_ANALYSIS_TITLE,
                data=self.queries.regional_summary(frame, top_n=10),
            ))
            return AdvancedAnalytics(stats=stats)
        
        return self._query(collect)
    
    # ------------------------------------------------------------------
    # Raw table access
    # ------------------------------------------------------------------
    
    def get_dataframe(self) -> pd.DataFrame:
        """Copy of the event table."""
        with self.store.lock.read():
            return self.store.snapshot().copy()
    
    def get_regional_summary(self, top_n: int = 10) -> pd.DataFrame:
        """Top regions by event count with mean magnitude and depth."""
        with self.store.lock.read():
            frame = self.store.snapshot()
        return self.queries.regional_summary(frame, top_n=top_n)
    
    def get_daily_counts_sql(self) -> pd.DataFrame:
        """Per-day counts straight from the table (no processor involved)."""
        with self.store.lock.read():
            frame = self.store.snapshot()
        return self.queries.daily_counts(frame)
    
    def get_events_between(self, start: datetime, end: datetime) -> pd.DataFrame:
        """Rows with start <= time <= end, oldest first."""
        with self.store.lock.read():
            frame = self.store.snapshot()
        return self.queries.events_between(
            frame,
            int(pd.Timestamp(start).value),
            int(pd.Timestamp(end).value),
        )
    
    def oldest_event_ns(self) -> Optional[int]:
        with self.store.lock.read():
            frame = self.store.snapshot()
        if frame.empty:
            return None
        return int(frame["time"].min())
