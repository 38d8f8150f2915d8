"""
In-memory storage for seismic events.

- ColumnarEventStore: typed pandas table, source of truth for recomputes
- EventIndex: striped id -> row position map
- EventQueries: DuckDB SQL over the table for ad hoc aggregates
"""

from quakewatch.storage.columnar_store import ColumnarEventStore, empty_frame
from quakewatch.storage.event_index import EventIndex
from quakewatch.storage.queries import EventQueries

__all__ = ["ColumnarEventStore", "EventIndex", "EventQueries", "empty_frame"]
