"""
Canonical seismic event record.

Records are immutable. Resubmitting a record with an id the engine
has already seen is an update of that event, not a new event.

Field names on the wire (to_dict / from_dict) follow the EMSC
FDSN event feed: unid, lat, lon, mag, magtype, evtype, auth, ...
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Optional, Union

import pandas as pd


def _to_utc(value: Union[datetime, str, int, pd.Timestamp]) -> datetime:
    """Normalize a timestamp-like value to an aware UTC datetime."""
    if isinstance(value, datetime) and not isinstance(value, pd.Timestamp):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    
    if isinstance(value, int):
        ts = pd.Timestamp(value, unit="ns", tz="UTC")
    else:
        ts = pd.Timestamp(value)
        ts = ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")
    return ts.to_pydatetime()


def to_nanos(value: datetime) -> int:
    """Nanoseconds since the Unix epoch for an aware datetime."""
    return int(pd.Timestamp(value).value)


@dataclass(frozen=True)
class SeismicEvent:
    """
    A single seismic event.
    
    Timestamps are always stored as aware UTC datetimes; naive inputs
    are interpreted as UTC.
    """
    id: str
    time: datetime
    latitude: float
    longitude: float
    depth: float
    magnitude: float
    
    last_update: Optional[datetime] = None
    magnitude_type: str = ""
    event_type: str = ""
    flynn_region: str = ""
    source_id: str = ""
    source_catalog: str = ""
    author: str = ""
    
    def __post_init__(self):
        """Normalize timestamps and numeric fields."""
        object.__setattr__(self, "time", _to_utc(self.time))
        last_update = self.last_update if self.last_update is not None else self.time
        object.__setattr__(self, "last_update", _to_utc(last_update))
        for name in ("latitude", "longitude", "depth", "magnitude"):
            object.__setattr__(self, name, float(getattr(self, name)))
    
    @property
    def time_ns(self) -> int:
        return to_nanos(self.time)
    
    @property
    def last_update_ns(self) -> int:
        return to_nanos(self.last_update)
    
    def with_changes(self, **changes: Any) -> "SeismicEvent":
        """Copy of this record with some fields replaced (an upstream revision)."""
        return replace(self, **changes)
    
    def to_dict(self) -> dict[str, Any]:
        """Convert to a feed-style dictionary."""
        return {
            "unid": self.id,
            "time": self.time.isoformat(),
            "lastupdate": self.last_update.isoformat(),
            "lat": self.latitude,
            "lon": self.longitude,
            "depth": self.depth,
            "mag": self.magnitude,
            "magtype": self.magnitude_type,
            "evtype": self.event_type,
            "flynn_region": self.flynn_region,
            "source_id": self.source_id,
            "source_catalog": self.source_catalog,
            "auth": self.author,
        }
    
    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "SeismicEvent":
        """
        Create a record from a feed-style dictionary.
        
        Accepts the GeoJSON feature "properties" mapping of the EMSC feed.
        """
        return cls(
            id=str(d["unid"]),
            time=d["time"],
            last_update=d.get("lastupdate") or d["time"],
            latitude=d["lat"],
            longitude=d["lon"],
            depth=d["depth"],
            magnitude=d["mag"],
            magnitude_type=d.get("magtype") or "",
            event_type=d.get("evtype") or "",
            flynn_region=d.get("flynn_region") or "",
            source_id=str(d.get("source_id") or ""),
            source_catalog=d.get("source_catalog") or "",
            author=d.get("auth") or "",
        )
    
    @classmethod
    def from_feature(cls, feature: dict[str, Any]) -> "SeismicEvent":
        """Create a record from a GeoJSON Feature."""
        return cls.from_dict(feature["properties"])
    
    def to_row(self) -> dict[str, Any]:
        """Project into the columnar store's column names and types."""
        return {
            "unid": self.id,
            "lat": self.latitude,
            "lon": self.longitude,
            "time": self.time_ns,
            "mag": self.magnitude,
            "magtype": self.magnitude_type,
            "depth": self.depth,
            "evtype": self.event_type,
            "flynn_region": self.flynn_region,
            "source_id": self.source_id,
            "source_catalog": self.source_catalog,
            "lastupdate": self.last_update_ns,
            "author": self.author,
        }
    
    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SeismicEvent":
        """Rebuild a record from a store row."""
        return cls(
            id=row["unid"],
            time=int(row["time"]),
            last_update=int(row["lastupdate"]),
            latitude=row["lat"],
            longitude=row["lon"],
            depth=row["depth"],
            magnitude=row["mag"],
            magnitude_type=row["magtype"],
            event_type=row["evtype"],
            flynn_region=row["flynn_region"],
            source_id=row["source_id"],
            source_catalog=row["source_catalog"],
            author=row["author"],
        )
