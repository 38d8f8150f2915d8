"""
Pytest configuration and fixtures.

Shared fixtures for all tests.
"""

import pytest
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from quakewatch.analytics import IncrementalAnalytics
from quakewatch.config import RetentionSettings, Settings
from quakewatch.events import SeismicEvent
from quakewatch.state import SeismicData

BASE_TIME = datetime(2024, 12, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path)


@pytest.fixture
def base_time():
    """2024-12-10 12:00 UTC (a Tuesday)."""
    return BASE_TIME


@pytest.fixture
def make_event():
    """Factory for events with sensible defaults."""
    counter = {"n": 0}
    
    def _make(
        event_id=None,
        magnitude=3.0,
        depth=10.0,
        latitude=38.0,
        longitude=23.5,
        time=None,
        region="GREECE",
        **kwargs,
    ):
        counter["n"] += 1
        return SeismicEvent(
            id=event_id or f"evt-{counter['n']:05d}",
            time=time or BASE_TIME,
            latitude=latitude,
            longitude=longitude,
            depth=depth,
            magnitude=magnitude,
            flynn_region=region,
            magnitude_type=kwargs.pop("magnitude_type", "ml"),
            event_type=kwargs.pop("event_type", "ke"),
            source_catalog=kwargs.pop("source_catalog", "EMSC-RTS"),
            author=kwargs.pop("author", "EMSC"),
            **kwargs,
        )
    
    return _make


@pytest.fixture
def sample_events(make_event):
    """
    Forty events over ten days, three regions, magnitudes 2.0 to 5.9.
    
    Deterministic: magnitude and location derive from the index.
    """
    regions = ["GREECE", "CENTRAL ITALY", "HAWAII REGION, HAWAII"]
    events = []
    for i in range(40):
        events.append(make_event(
            event_id=f"sample-{i:03d}",
            magnitude=2.0 + (i * 7 % 40) / 10.0,
            depth=5.0 + (i * 13 % 200),
            latitude=35.0 + (i % 8) * 0.7,
            longitude=20.0 + (i % 5) * 1.3,
            time=BASE_TIME + timedelta(hours=6 * i),
            region=regions[i % 3],
        ))
    return events


@pytest.fixture
def engine():
    """Fresh analytics engine with default settings."""
    return IncrementalAnalytics()


@pytest.fixture
def settings_without_retention():
    """Settings with both retention limits disabled."""
    return Settings(retention=RetentionSettings(max_events=None, retention_days=None))


@pytest.fixture
def seismic_data(settings_without_retention):
    """Data layer that never prunes."""
    return SeismicData(settings_without_retention)
