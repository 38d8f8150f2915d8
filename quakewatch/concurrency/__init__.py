"""
Concurrency primitives for shared analytics state.

- ReadWriteLock: many readers or one writer over the event table
- StalenessFlag: the engine's "full recompute needed" bit
"""

from quakewatch.concurrency.flag import StalenessFlag
from quakewatch.concurrency.rwlock import ReadWriteLock

__all__ = ["ReadWriteLock", "StalenessFlag"]
