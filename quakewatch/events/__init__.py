"""
Seismic event records and their validation.
"""

from quakewatch.events.record import SeismicEvent
from quakewatch.events.validation import validate_event

__all__ = ["SeismicEvent", "validate_event"]
