"""
Tests for the incremental analytics engine.

Covers the consistency contract: new ids are folded in incrementally,
known ids mark the engine stale, and every query after a revision
matches a full recompute of the final data.
"""

import math
import pytest
import pandas as pd
from datetime import date, timedelta

from quakewatch.analytics import IncrementalAnalytics
from quakewatch.analytics.engine import REGIONAL_ANALYSIS_TITLE
from quakewatch.config import AnalyticsSettings
from quakewatch.errors import ComputationError, StateError


def _all_statistics(engine):
    """Every statistic except the b-value, which depends on the refit cadence."""
    return {
        "magnitude_distribution": engine.get_magnitude_distribution(),
        "count_by_date": engine.get_count_by_date(),
        "hourly": engine.get_hourly_frequency(),
        "monthly": engine.get_monthly_frequency(),
        "weekly": engine.get_weekly_frequency(),
        "pairs": sorted(engine.get_mag_depth_pairs()),
        "regions": engine.get_region_hotspots(),
        "clusters": engine.get_coordinate_clusters(),
        "frequency": engine.get_magnitude_frequency_data(),
    }


class TestAddEvent:
    """Tests for single-event ingestion."""
    
    def test_single_event_example(self, engine, make_event, base_time):
        """One M2.0 event on 2024-12-10."""
        assert engine.add_event(make_event(magnitude=2.0, time=base_time))
        
        assert engine.get_magnitude_distribution() == [("2", 1)]
        assert engine.get_count_by_date() == [(date(2024, 12, 10), 1)]
        assert engine.event_count == 1
    
    def test_new_event_updates_cache(self, engine, make_event):
        before = engine.cache
        
        engine.add_event(make_event())
        
        assert engine.cache.total_events == 1
        assert engine.cache.last_updated >= before.last_updated
    
    def test_new_event_not_stale(self, engine, make_event):
        engine.add_event(make_event())
        
        assert not engine.needs_recompute
        assert engine.contains(make_event(event_id="evt-99999").id) is False
    
    def test_known_id_marks_stale(self, engine, make_event):
        """Resubmitting an id is an update: stale, no double count."""
        event = make_event(event_id="dup", magnitude=2.0)
        engine.add_event(event)
        
        is_new = engine.add_event(event.with_changes(magnitude=4.5))
        
        assert is_new is False
        assert engine.needs_recompute
        assert engine.event_count == 1
        assert len(engine.index) == 1
    
    def test_query_after_update_reflects_final_data(self, engine, make_event):
        """The next query equals a recompute on the revised values."""
        event = make_event(event_id="dup", magnitude=2.0, depth=10.0)
        engine.add_event(event)
        engine.add_event(make_event(magnitude=3.0))
        
        engine.add_event(event.with_changes(magnitude=4.5, depth=80.0))
        
        assert engine.get_magnitude_distribution() == [("3", 1), ("4.4", 1)]
        assert sorted(engine.get_mag_depth_pairs()) == [(3.0, 10.0), (4.5, 80.0)]
        assert not engine.needs_recompute
    
    def test_update_replaces_row_in_place(self, engine, make_event):
        event = make_event(event_id="dup", magnitude=2.0)
        engine.add_event(make_event(event_id="first"))
        engine.add_event(event)
        
        engine.add_event(event.with_changes(magnitude=4.5))
        
        frame = engine.get_dataframe()
        assert frame["unid"].tolist() == ["first", "dup"]
        assert frame.loc[1, "mag"] == 4.5
        assert engine.index.get("dup") == 1


class TestAddEvents:
    """Tests for batch ingestion."""
    
    def test_empty_batch_is_noop(self, engine):
        result = engine.add_events([])
        
        assert result.inserted == 0
        assert engine.event_count == 0
        assert engine.cache.total_events == 0
    
    def test_batch_example(self, engine, make_event):
        events = [make_event(magnitude=m) for m in (2.0, 2.0, 2.1, 2.3)]
        
        result = engine.add_events(events)
        
        assert result.inserted == 4
        assert engine.get_magnitude_distribution() == [("2", 3), ("2.2", 1)]
    
    def test_duplicates_within_batch(self, engine, make_event):
        """Last occurrence wins, first occurrence fixes the position."""
        events = [
            make_event(event_id="a", magnitude=2.0),
            make_event(event_id="b", magnitude=3.0),
            make_event(event_id="a", magnitude=5.0),
        ]
        
        result = engine.add_events(events)
        
        assert result.inserted == 2
        assert engine.event_count == 2
        frame = engine.get_dataframe()
        assert frame["unid"].tolist() == ["a", "b"]
        assert frame.loc[0, "mag"] == 5.0
        assert engine.get_magnitude_distribution() == [("3", 1), ("5", 1)]
        assert not engine.needs_recompute
    
    def test_batch_with_known_ids(self, engine, make_event):
        engine.add_events([make_event(event_id="a", magnitude=2.0)])
        
        result = engine.add_events([
            make_event(event_id="a", magnitude=6.0),
            make_event(event_id="c", magnitude=3.0),
        ])
        
        assert result.inserted == 1
        assert result.updated == 1
        assert engine.needs_recompute
        assert engine.get_magnitude_distribution() == [("3", 1), ("6", 1)]
    
    def test_index_matches_store(self, engine, sample_events):
        engine.add_events(sample_events)
        
        assert len(engine.index) == engine.event_count == len(sample_events)
        for position, event_id in enumerate(engine.get_dataframe()["unid"]):
            assert engine.index.get(event_id) == position
    
    def test_incremental_equals_batch(self, sample_events):
        """One-at-a-time and batch ingestion produce the same statistics."""
        one_by_one = IncrementalAnalytics()
        for event in sample_events:
            one_by_one.add_event(event)
        batch = IncrementalAnalytics()
        batch.add_events(sample_events)
        
        assert _all_statistics(one_by_one) == _all_statistics(batch)
        assert one_by_one.get_risk_metrics() == pytest.approx(batch.get_risk_metrics())
    
    def test_incremental_equals_recompute(self, engine, sample_events):
        engine.add_events(sample_events)
        before = _all_statistics(engine)
        
        engine.recompute_all()
        
        assert _all_statistics(engine) == before
    
    def test_b_value_exact_after_recompute(self, make_event):
        """Every path agrees on b once recomputed."""
        events = (
            [make_event(magnitude=2.0) for _ in range(8)]
            + [make_event(magnitude=3.0) for _ in range(4)]
            + [make_event(magnitude=4.0) for _ in range(2)]
        )
        engine = IncrementalAnalytics(b_value_recompute_every=1000)
        engine.add_events(events)
        assert engine.get_b_value() == 1.0
        
        engine.recompute_all()
        
        assert engine.get_b_value() == pytest.approx(math.log(2))
        assert engine.get_a_value() == pytest.approx(5 * math.log(2))


class TestRecompute:
    """Tests for all-or-nothing recomputation."""
    
    def test_recompute_clears_stale(self, engine, make_event):
        event = make_event(event_id="a")
        engine.add_event(event)
        engine.add_event(event.with_changes(magnitude=5.0))
        
        engine.recompute_all()
        
        assert not engine.needs_recompute
    
    def test_failed_recompute_stays_stale(self, engine, make_event, monkeypatch):
        """A failing processor aborts the whole recompute."""
        event = make_event(event_id="a", magnitude=2.0)
        engine.add_event(event)
        engine.add_event(event.with_changes(magnitude=5.0))
        
        def broken_prepare(frame):
            raise ZeroDivisionError("boom")
        
        monkeypatch.setattr(engine.risk_assessment, "prepare", broken_prepare)
        
        with pytest.raises(ComputationError):
            engine.get_magnitude_distribution()
        
        assert engine.needs_recompute
        # Earlier processors were not installed either
        assert engine.magnitude_distribution.get_result() == [("2", 1)]
        
        monkeypatch.undo()
        assert engine.get_magnitude_distribution() == [("5", 1)]
        assert not engine.needs_recompute
    
    def test_failed_incremental_update_marks_stale(self, engine, make_event, monkeypatch):
        def broken_update(event):
            raise ValueError("bad event")
        
        monkeypatch.setattr(engine.temporal_patterns, "update", broken_update)
        
        with pytest.raises(ComputationError):
            engine.add_event(make_event(event_id="a"))
        
        assert engine.needs_recompute
        assert engine.contains("a")
        
        monkeypatch.undo()
        assert engine.get_weekly_frequency()[1] == ("Tue", 1)


class TestClearAndReplace:
    """Tests for clear and replace_store_and_rebuild."""
    
    def test_clear(self, engine, sample_events):
        engine.add_events(sample_events)
        
        engine.clear()
        
        assert engine.event_count == 0
        assert len(engine.index) == 0
        assert engine.cache.total_events == 0
        assert engine.get_magnitude_distribution() == []
        assert engine.get_b_value() == 1.0
        assert not engine.needs_recompute
    
    def test_replace_keeps_filtered_rows(self, engine, make_event):
        """Keeping magnitude >= 4 out of [2, 3, 4, 5, 6] leaves 3 events."""
        engine.add_events([make_event(magnitude=m) for m in (2.0, 3.0, 4.0, 5.0, 6.0)])
        frame = engine.get_dataframe()
        
        engine.replace_store_and_rebuild(frame[frame["mag"] >= 4.0])
        
        assert engine.event_count == 3
        assert len(engine.index) == 3
        assert engine.cache.total_events == 3
        assert engine.get_magnitude_distribution() == [("4", 1), ("5", 1), ("6", 1)]
        assert sorted(m for m, _ in engine.get_mag_depth_pairs()) == [4.0, 5.0, 6.0]
        assert sum(c for _, c in engine.get_region_hotspots()) == 3
        assert engine.get_magnitude_frequency_data()[0][2] == 3
    
    def test_replace_rebuilds_index_positions(self, engine, make_event):
        engine.add_events([make_event(event_id=i) for i in ("a", "b", "c")])
        frame = engine.get_dataframe()
        
        engine.replace_store_and_rebuild(frame[frame["unid"] != "a"])
        
        assert engine.index.to_dict() == {"b": 0, "c": 1}
        assert not engine.contains("a")
    
    def test_replace_clears_stale(self, engine, make_event):
        event = make_event(event_id="a")
        engine.add_event(event)
        engine.add_event(event.with_changes(magnitude=5.0))
        
        engine.replace_store_and_rebuild(engine.get_dataframe())
        
        assert not engine.needs_recompute
    
    def test_replace_with_bad_frame_leaves_engine_unchanged(self, engine, sample_events):
        engine.add_events(sample_events)
        
        with pytest.raises(ComputationError):
            engine.replace_store_and_rebuild(pd.DataFrame({"unid": ["x"]}))
        
        assert engine.event_count == len(sample_events)
    
    def test_replace_with_duplicate_ids(self, engine, make_event):
        engine.add_events([make_event(event_id="a")])
        frame = engine.get_dataframe()
        
        with pytest.raises(StateError):
            engine.replace_store_and_rebuild(pd.concat([frame, frame]))
        
        assert engine.event_count == 1
    
    def test_prune_none_is_noop(self, engine, sample_events):
        engine.add_events(sample_events)
        
        assert engine.prune(lambda frame: None) is None
        assert engine.event_count == len(sample_events)
    
    def test_prune_reports_removed(self, engine, sample_events):
        engine.add_events(sample_events)
        
        removed = engine.prune(lambda frame: frame.head(10))
        
        assert removed == len(sample_events) - 10
        assert engine.event_count == 10


class TestQuerySurface:
    """Tests for summary queries."""
    
    def test_weekly_frequency(self, engine, sample_events):
        engine.add_events(sample_events)
        
        weekly = engine.get_weekly_frequency()
        
        assert len(weekly) == 7
        assert sum(count for _, count in weekly) == len(sample_events)
    
    def test_risk_metrics_monotone(self, engine, sample_events):
        engine.add_events(sample_events)
        
        metrics = engine.get_risk_metrics()
        
        assert metrics.prob_m7_365_days <= metrics.prob_m6_365_days <= 1.0
        assert engine.get_total_energy() == pytest.approx(metrics.total_energy_joules)
        assert engine.probability_of_magnitude(5.0, 30.0) == pytest.approx(metrics.prob_m5_30_days)
    
    def test_advanced_analytics(self, engine, sample_events):
        engine.add_events(sample_events)
        
        analytics = engine.get_advanced_analytics()
        
        titles = [entry.title for entry in analytics.stats]
        assert titles == [
            "Magnitude Statistics",
            "Temporal Patterns Analysis",
            "Depth Statistics",
            "Geographic Hotspots",
            "Gutenberg-Richter Analysis",
            "Risk Assessment",
            REGIONAL_ANALYSIS_TITLE,
        ]
        regional = analytics.get(REGIONAL_ANALYSIS_TITLE)
        assert regional["event_count"].sum() == len(sample_events)
        assert analytics.to_dict()["stats"][0]["title"] == "Magnitude Statistics"
    
    def test_regional_summary(self, engine, sample_events):
        engine.add_events(sample_events)
        
        summary = engine.get_regional_summary(top_n=2)
        
        assert len(summary) == 2
        assert summary["event_count"].is_monotonic_decreasing
    
    def test_get_dataframe_is_a_copy(self, engine, make_event):
        engine.add_event(make_event(magnitude=3.0))
        
        frame = engine.get_dataframe()
        frame.loc[0, "mag"] = 9.0
        
        assert engine.get_dataframe().loc[0, "mag"] == 3.0
    
    def test_events_between(self, engine, make_event, base_time):
        engine.add_events([
            make_event(event_id="old", time=base_time - timedelta(days=5)),
            make_event(event_id="new", time=base_time),
        ])
        
        window = engine.get_events_between(base_time - timedelta(days=1), base_time)
        
        assert window["unid"].tolist() == ["new"]
    
    def test_from_settings(self):
        engine = IncrementalAnalytics.from_settings(
            AnalyticsSettings(completeness_magnitude=3.0, b_value_recompute_every=10)
        )
        
        assert engine.gutenberg_richter.completeness_magnitude == 3.0
        assert engine.gutenberg_richter.recompute_every == 10
