"""
Retention: bound the event table by count and age.
"""

from quakewatch.retention.controller import CleanupReport, RetentionController, RetentionPolicy

__all__ = ["CleanupReport", "RetentionController", "RetentionPolicy"]
