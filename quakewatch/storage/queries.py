"""
Ad hoc aggregate queries over the event table using DuckDB.

The engine's processors answer the fixed set of statistics. Anything
else (regional summaries, top-N regions, per-day counts, time-window
slices) runs as SQL against a read-only snapshot of the table, so
the processors never need to grow for one-off questions.
"""

import threading
from typing import Optional
import structlog

import duckdb
import pandas as pd

from quakewatch.errors import ComputationError

logger = structlog.get_logger(__name__)


class EventQueries:
    """
    DuckDB query runner over event DataFrames.
    
    Design principles:
    - In-memory connection, nothing persisted
    - Each query registers the snapshot as the `events` view
    - One query at a time per runner (DuckDB connections are not
      shared across threads)
    """
    
    REGIONAL_COLUMNS = ["flynn_region", "event_count", "avg_magnitude", "avg_depth"]
    
    def __init__(self):
        self.conn = duckdb.connect(":memory:")
        self._lock = threading.Lock()
    
    def _run(self, frame: pd.DataFrame, query: str, params: Optional[list] = None) -> pd.DataFrame:
        with self._lock:
            self.conn.register("events", frame)
            try:
                if params:
                    return self.conn.execute(query, params).fetchdf()
                return self.conn.execute(query).fetchdf()
            except duckdb.Error as e:
                logger.error("event_query_failed", error=str(e))
                raise ComputationError(f"query failed: {e}", context="event_queries") from e
            finally:
                self.conn.unregister("events")
    
    def regional_summary(self, frame: pd.DataFrame, top_n: int = 10) -> pd.DataFrame:
        """
        Top regions by event count with mean magnitude and depth.
        
        Args:
            frame: Event table snapshot
            top_n: Number of regions to return
        
        Returns:
            DataFrame with columns flynn_region, event_count,
            avg_magnitude, avg_depth (descending by event_count)
        """
        if frame.empty:
            return pd.DataFrame(columns=self.REGIONAL_COLUMNS)
        
        return self._run(frame, f"""
            SELECT
                flynn_region,
                COUNT(*) AS event_count,
                AVG(mag) AS avg_magnitude,
                AVG(depth) AS avg_depth
            FROM events
            GROUP BY flynn_region
            ORDER BY event_count DESC, flynn_region
            LIMIT {int(top_n)}
        """)
    
    def daily_counts(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Events per UTC calendar day, ascending by date."""
        if frame.empty:
            return pd.DataFrame(columns=["date", "daily_count"])
        
        return self._run(frame, """
            SELECT
                CAST(epoch_ms(time // 1000000) AS DATE) AS date,
                COUNT(*) AS daily_count
            FROM events
            GROUP BY 1
            ORDER BY 1
        """)
    
    def events_between(self, frame: pd.DataFrame, start_ns: int, end_ns: int) -> pd.DataFrame:
        """Rows with start_ns <= time <= end_ns, oldest first."""
        if frame.empty:
            return frame.copy()
        
        return self._run(frame, """
            SELECT *
            FROM events
            WHERE time >= ? AND time <= ?
            ORDER BY time
        """, [int(start_ns), int(end_ns)])
    
    def close(self) -> None:
        self.conn.close()
