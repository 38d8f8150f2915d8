"""
Event index: event id -> row position in the columnar store.

The index is how the engine tells a new event from a revision of
one it has already seen. Entries are created on first insertion and
never moved; a whole-table replacement rebuilds the index from the
new table's id column.

Keys are spread over lock stripes (stripe = hash(id) & mask) so
concurrent lookups and inserts from several ingestion threads only
contend when they land on the same stripe.
"""

from typing import Iterable, Optional

from quakewatch.concurrency.rwlock import ReadWriteLock


class EventIndex:
    """
    Striped concurrent map of event id to row position.
    
    Args:
        num_stripes: Number of lock stripes (power of two)
    """
    
    def __init__(self, num_stripes: int = 16) -> None:
        if num_stripes <= 0 or (num_stripes & (num_stripes - 1)) != 0:
            raise ValueError("num_stripes must be a positive power of 2")
        self._num_stripes = num_stripes
        self._mask = num_stripes - 1
        self._stripes: list[dict[str, int]] = [{} for _ in range(num_stripes)]
        self._locks = [ReadWriteLock() for _ in range(num_stripes)]
    
    def _stripe(self, event_id: str) -> int:
        return hash(event_id) & self._mask
    
    def get(self, event_id: str) -> Optional[int]:
        idx = self._stripe(event_id)
        with self._locks[idx].read():
            return self._stripes[idx].get(event_id)
    
    def contains(self, event_id: str) -> bool:
        idx = self._stripe(event_id)
        with self._locks[idx].read():
            return event_id in self._stripes[idx]
    
    def __contains__(self, event_id: str) -> bool:
        return self.contains(event_id)
    
    def insert(self, event_id: str, position: int) -> bool:
        """
        Insert an id if absent.
        
        Returns:
            True if inserted, False if the id was already indexed
            (the existing position is kept)
        """
        idx = self._stripe(event_id)
        with self._locks[idx].write():
            if event_id in self._stripes[idx]:
                return False
            self._stripes[idx][event_id] = position
            return True
    
    def insert_many(self, entries: Iterable[tuple[str, int]]) -> int:
        inserted = 0
        for event_id, position in entries:
            if self.insert(event_id, position):
                inserted += 1
        return inserted
    
    def __len__(self) -> int:
        total = 0
        for i in range(self._num_stripes):
            with self._locks[i].read():
                total += len(self._stripes[i])
        return total
    
    def clear(self) -> None:
        for i in range(self._num_stripes):
            with self._locks[i].write():
                self._stripes[i].clear()
    
    def rebuild(self, ids: Iterable[str]) -> None:
        """Replace every entry with ids enumerated in row order."""
        stripes: list[dict[str, int]] = [{} for _ in range(self._num_stripes)]
        for position, event_id in enumerate(ids):
            stripes[self._stripe(event_id)][event_id] = position
        for i in range(self._num_stripes):
            with self._locks[i].write():
                self._stripes[i] = stripes[i]
    
    def to_dict(self) -> dict[str, int]:
        """Snapshot of all entries (not atomic across stripes)."""
        result: dict[str, int] = {}
        for i in range(self._num_stripes):
            with self._locks[i].read():
                result.update(self._stripes[i])
        return result
