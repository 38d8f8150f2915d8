"""
Staleness flag shared between ingestion and query paths.

Set when an already-indexed event is resubmitted, cleared only after
every processor has been rebuilt from the store. The flag has its own
tiny lock, independent of the store lock, so setting it never waits
on a long-running reader.
"""

import threading


class StalenessFlag:
    """Thread-safe boolean with set / clear / check."""
    
    def __init__(self, initial: bool = False) -> None:
        self._value = initial
        self._lock = threading.Lock()
    
    def set(self) -> None:
        with self._lock:
            self._value = True
    
    def clear(self) -> None:
        with self._lock:
            self._value = False
    
    def is_set(self) -> bool:
        with self._lock:
            return self._value
    
    def __bool__(self) -> bool:
        return self.is_set()
