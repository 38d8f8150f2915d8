"""
Columnar event store backed by a pandas DataFrame.

Every retained event is one row. Columns are typed:
- strings (object): unid, magtype, evtype, flynn_region,
  source_id, source_catalog, author
- float64: lat, lon, mag, depth
- int64 nanoseconds since epoch (UTC): time, lastupdate

Design principles:
- Append-oriented: rows are never reordered in place
- Copy-on-write: a frame handed out by snapshot() is never mutated;
  every mutation builds a new frame and swaps it in
- One concat per batch, not per record
- The store is not thread-safe on its own; callers hold `lock`
"""

from typing import Iterable, Sequence
import structlog

import numpy as np
import pandas as pd

from quakewatch.concurrency.rwlock import ReadWriteLock
from quakewatch.errors import ComputationError, StateError
from quakewatch.events.record import SeismicEvent

logger = structlog.get_logger(__name__)

STRING_COLUMNS = (
    "unid", "magtype", "evtype", "flynn_region",
    "source_id", "source_catalog", "author",
)
FLOAT_COLUMNS = ("lat", "lon", "mag", "depth")
TIME_COLUMNS = ("time", "lastupdate")

COLUMNS = (
    "unid", "lat", "lon", "time", "mag", "magtype", "depth", "evtype",
    "flynn_region", "source_id", "source_catalog", "lastupdate", "author",
)

_EPOCH = pd.Timestamp(0, tz="UTC")


def _column_dtype(name: str) -> str:
    if name in FLOAT_COLUMNS:
        return "float64"
    if name in TIME_COLUMNS:
        return "int64"
    return "object"


def empty_frame() -> pd.DataFrame:
    """Typed, zero-row event table."""
    return pd.DataFrame(
        {name: pd.Series([], dtype=_column_dtype(name)) for name in COLUMNS}
    )


def _to_nanos(series: pd.Series) -> pd.Series:
    """Coerce a time column (ints or datetimes) to int64 nanoseconds."""
    if pd.api.types.is_integer_dtype(series):
        return series.astype("int64")
    converted = pd.to_datetime(series, utc=True)
    if converted.isna().any():
        raise ValueError("time column contains missing values")
    return ((converted - _EPOCH) // pd.Timedelta(1, "ns")).astype("int64")


def coerce_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Project an arbitrary DataFrame onto the store's schema.
    
    Args:
        frame: Frame with (at least) every store column
    
    Returns:
        New frame with exactly the store columns, typed, index 0..n-1
    
    Raises:
        ComputationError: If a column is missing or cannot be cast
    """
    missing = [name for name in COLUMNS if name not in frame.columns]
    if missing:
        raise ComputationError(
            f"frame is missing columns: {', '.join(missing)}",
            context="columnar_store",
        )
    
    columns = {}
    try:
        for name in COLUMNS:
            series = frame[name].reset_index(drop=True)
            if name in FLOAT_COLUMNS:
                columns[name] = series.astype("float64")
            elif name in TIME_COLUMNS:
                columns[name] = _to_nanos(series)
            else:
                columns[name] = series.map(str).astype("object")
    except (TypeError, ValueError, OverflowError) as e:
        raise ComputationError(
            f"cannot cast column {name!r}: {e}",
            context="columnar_store",
        ) from e
    
    return pd.DataFrame(columns, columns=list(COLUMNS))


def records_to_frame(records: Sequence[SeismicEvent]) -> pd.DataFrame:
    """Build a typed frame from records, one column list per field."""
    if not records:
        return empty_frame()
    
    rows = [record.to_row() for record in records]
    data = {name: [row[name] for row in rows] for name in COLUMNS}
    try:
        return pd.DataFrame(
            {name: pd.Series(values, dtype=_column_dtype(name)) for name, values in data.items()}
        )
    except (TypeError, ValueError, OverflowError) as e:
        raise ComputationError(
            f"cannot project records into columns: {e}",
            context="columnar_store",
        ) from e


class ColumnarEventStore:
    """
    Append-oriented columnar table of seismic events.
    
    Row positions are stable between whole-table replacements, so the
    EventIndex can map ids to positions.
    """
    
    def __init__(self) -> None:
        self.lock = ReadWriteLock()
        self._frame = empty_frame()
        # True once the current frame may be referenced outside the store
        self._shared = False
    
    def __len__(self) -> int:
        return len(self._frame)
    
    def append(self, records: Sequence[SeismicEvent]) -> int:
        """
        Append records as new rows with a single concat.
        
        Returns:
            Row position of the first appended record
        """
        start = len(self._frame)
        if not records:
            return start
        
        new_rows = records_to_frame(records)
        if start == 0:
            self._frame = new_rows
        else:
            self._frame = pd.concat([self._frame, new_rows], ignore_index=True)
        self._shared = False
        
        logger.debug("rows_appended", count=len(records), total=len(self._frame))
        return start
    
    def replace_rows(self, updates: Iterable[tuple[int, SeismicEvent]]) -> int:
        """
        Replace the values of existing rows, keeping their positions.
        
        Copy-on-write: if a snapshot of the current frame has been
        handed out, the whole frame is copied once (O(rows)) before the
        first write, and the holder keeps the old values. Otherwise rows
        are rewritten in place. Batch revisions into one call to pay for
        at most one copy.
        
        Returns:
            Number of rows replaced
        
        Raises:
            StateError: If a position is out of range or holds another id
        """
        updates = list(updates)
        if not updates:
            return 0
        
        # Check every position before touching a row
        for position, record in updates:
            if position < 0 or position >= len(self._frame):
                raise StateError(
                    f"row {position} out of range for {len(self._frame)} rows",
                    context="columnar_store",
                )
            stored_id = self._frame.at[position, "unid"]
            if stored_id != record.id:
                raise StateError(
                    f"row {position} holds {stored_id!r}, not {record.id!r}",
                    context="columnar_store",
                )
        
        if self._shared:
            self._frame = self._frame.copy()
            self._shared = False
        for position, record in updates:
            for name, value in record.to_row().items():
                self._frame.at[position, name] = value
        
        return len(updates)
    
    def replace_row(self, position: int, record: SeismicEvent) -> None:
        """Replace one row's values at an unchanged position."""
        self.replace_rows([(position, record)])
    
    def snapshot(self) -> pd.DataFrame:
        """
        Current table. Treat as read-only: later mutations copy or swap
        the frame first, so a snapshot never changes underneath its holder.
        """
        self._shared = True
        return self._frame
    
    def replace(self, frame: pd.DataFrame) -> None:
        """Swap in a whole new table (coerced to the store schema)."""
        self._frame = coerce_frame(frame)
        self._shared = True
    
    def install(self, frame: pd.DataFrame) -> None:
        """Swap in a frame already produced by coerce_frame()."""
        self._frame = frame
        self._shared = True
    
    def clear(self) -> None:
        self._frame = empty_frame()
        self._shared = False
    
    def ids(self) -> list[str]:
        return self._frame["unid"].tolist()
    
    def column(self, name: str) -> np.ndarray:
        """
        Raw values of one column.
        
        Raises:
            ComputationError: If the column does not exist
        """
        self._shared = True
        try:
            return self._frame[name].to_numpy()
        except KeyError as e:
            raise ComputationError(f"unknown column {name!r}", context="columnar_store") from e
    
    def row(self, position: int) -> SeismicEvent:
        """Rebuild the record stored at a row position."""
        return SeismicEvent.from_row(self._frame.iloc[position].to_dict())
    
    def records(self) -> list[SeismicEvent]:
        return [SeismicEvent.from_row(row) for row in self._frame.to_dict("records")]
