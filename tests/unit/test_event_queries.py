"""
Tests for DuckDB ad hoc queries over the event table.
"""

import pytest
from datetime import date, timedelta

from quakewatch.storage import EventQueries, empty_frame
from quakewatch.storage.columnar_store import records_to_frame


class TestEventQueries:
    """Tests for regional summaries, daily counts and time windows."""
    
    def setup_method(self):
        """Fresh in-memory DuckDB connection per test."""
        self.queries = EventQueries()
    
    def teardown_method(self):
        self.queries.close()
    
    def test_regional_summary(self, make_event):
        frame = records_to_frame([
            make_event(region="GREECE", magnitude=3.0, depth=10.0),
            make_event(region="GREECE", magnitude=5.0, depth=30.0),
            make_event(region="CENTRAL ITALY", magnitude=2.0, depth=8.0),
        ])
        
        summary = self.queries.regional_summary(frame)
        
        assert list(summary.columns) == EventQueries.REGIONAL_COLUMNS
        assert summary["flynn_region"].tolist() == ["GREECE", "CENTRAL ITALY"]
        assert summary["event_count"].tolist() == [2, 1]
        assert summary.loc[0, "avg_magnitude"] == pytest.approx(4.0)
        assert summary.loc[0, "avg_depth"] == pytest.approx(20.0)
    
    def test_regional_summary_top_n(self, make_event):
        frame = records_to_frame([
            make_event(region=f"REGION {i}") for i in range(15)
        ])
        
        assert len(self.queries.regional_summary(frame, top_n=10)) == 10
        assert len(self.queries.regional_summary(frame, top_n=3)) == 3
    
    def test_regional_summary_empty(self):
        summary = self.queries.regional_summary(empty_frame())
        
        assert summary.empty
        assert list(summary.columns) == EventQueries.REGIONAL_COLUMNS
    
    def test_daily_counts(self, make_event, base_time):
        frame = records_to_frame([
            make_event(time=base_time),
            make_event(time=base_time + timedelta(hours=3)),
            make_event(time=base_time + timedelta(days=1)),
        ])
        
        daily = self.queries.daily_counts(frame)
        
        assert [d.date() if hasattr(d, "date") else d for d in daily["date"]] == [
            date(2024, 12, 10),
            date(2024, 12, 11),
        ]
        assert daily["daily_count"].tolist() == [2, 1]
    
    def test_events_between(self, make_event, base_time):
        frame = records_to_frame([
            make_event(event_id="early", time=base_time - timedelta(days=2)),
            make_event(event_id="inside", time=base_time),
            make_event(event_id="late", time=base_time + timedelta(days=2)),
        ])
        start = int((base_time - timedelta(days=1)).timestamp() * 1e9)
        end = int((base_time + timedelta(days=1)).timestamp() * 1e9)
        
        window = self.queries.events_between(frame, start, end)
        
        assert window["unid"].tolist() == ["inside"]
