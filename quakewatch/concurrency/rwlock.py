"""
Read-write lock guarding the columnar event table.

Shared side: table snapshots, SQL views and staleness rebuilds.
Exclusive side: appends, revisions, pruning and whole-table swaps.

Pending writers hold back new readers, so a steady query load cannot
starve live ingestion. The lock remembers which thread owns the write
side; a nested write from that thread raises StateError instead of
deadlocking. Nested reads are not detected and must be avoided.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from quakewatch.errors import StateError


class ReadWriteLock:
    """Writer-preferring lock over one event table."""
    
    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._pending_writers = 0
        self._owner: Optional[int] = None
    
    def _can_read(self) -> bool:
        return self._owner is None and self._pending_writers == 0
    
    def _can_write(self) -> bool:
        return self._owner is None and self._readers == 0
    
    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            self._cond.wait_for(self._can_read)
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()
    
    @contextmanager
    def write(self) -> Iterator[None]:
        """
        Exclusive access to the table.
        
        Raises:
            StateError: If the calling thread already holds the write side
        """
        me = threading.get_ident()
        with self._cond:
            if self._owner == me:
                raise StateError("event table write lock is not reentrant", context="rwlock")
            self._pending_writers += 1
            try:
                self._cond.wait_for(self._can_write)
            finally:
                self._pending_writers -= 1
            self._owner = me
        try:
            yield
        finally:
            with self._cond:
                self._owner = None
                self._cond.notify_all()
    
    @property
    def readers(self) -> int:
        with self._cond:
            return self._readers
    
    @property
    def write_locked(self) -> bool:
        with self._cond:
            return self._owner is not None
