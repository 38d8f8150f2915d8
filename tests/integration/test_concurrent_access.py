"""
Concurrent ingestion and queries against one engine.

One thread ingests (new events and revisions) while others query;
queries must never fail or observe a store without its index.
"""

import threading
from datetime import timedelta

from quakewatch.analytics import IncrementalAnalytics


class TestConcurrentAccess:
    """Readers and writers sharing an engine."""
    
    def test_ingest_while_querying(self, make_event, base_time):
        engine = IncrementalAnalytics()
        events = [
            make_event(
                event_id=f"c{i:04d}",
                magnitude=2.0 + (i % 30) / 10,
                time=base_time + timedelta(minutes=i),
            )
            for i in range(400)
        ]
        errors = []
        done = threading.Event()
        
        def writer():
            try:
                for start in range(0, len(events), 20):
                    engine.add_events(events[start:start + 20])
                    # Revise an earlier event to force recomputes
                    engine.add_event(events[start].with_changes(magnitude=4.0))
            except Exception as e:
                errors.append(e)
            finally:
                done.set()
        
        def reader():
            try:
                while not done.is_set():
                    distribution = engine.get_magnitude_distribution()
                    weekly = engine.get_weekly_frequency()
                    assert len(weekly) == 7
                    assert sum(c for _, c in distribution) <= len(events)
                    engine.get_risk_metrics()
            except Exception as e:
                errors.append(e)
        
        threads = [threading.Thread(target=writer)] + [
            threading.Thread(target=reader) for _ in range(3)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        
        assert errors == []
        assert engine.event_count == len(events)
        assert len(engine.index) == len(events)
        assert sum(c for _, c in engine.get_magnitude_distribution()) == len(events)
    
    def test_parallel_writers(self, make_event, base_time):
        """Writers on disjoint ids never lose events."""
        engine = IncrementalAnalytics()
        
        def ingest(worker):
            for i in range(50):
                engine.add_event(make_event(
                    event_id=f"w{worker}-{i}",
                    time=base_time + timedelta(seconds=i),
                ))
        
        threads = [threading.Thread(target=ingest, args=(w,)) for w in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=60)
        
        assert engine.event_count == 200
        assert engine.index.to_dict() == {
            event_id: position
            for position, event_id in enumerate(engine.get_dataframe()["unid"])
        }
        assert sum(c for _, c in engine.get_weekly_frequency()) == 200
    
    def test_statistic_reader_does_not_block_ingestion(self, make_event, monkeypatch):
        """A slow histogram read leaves add_event free to finish."""
        engine = IncrementalAnalytics()
        engine.add_event(make_event(event_id="first"))
        reader_inside = threading.Event()
        release = threading.Event()
        original = engine.magnitude_distribution.get_result
        
        def slow_get_result():
            reader_inside.set()
            release.wait(timeout=5)
            return original()
        
        monkeypatch.setattr(engine.magnitude_distribution, "get_result", slow_get_result)
        reader = threading.Thread(target=engine.get_magnitude_distribution)
        reader.start()
        assert reader_inside.wait(timeout=5)
        
        writer = threading.Thread(
            target=engine.add_event,
            args=(make_event(event_id="second", magnitude=4.0),),
        )
        writer.start()
        writer.join(timeout=2)
        writer_finished = not writer.is_alive()
        release.set()
        reader.join(timeout=5)
        writer.join(timeout=5)
        
        assert writer_finished
        assert engine.event_count == 2
        assert engine.contains("second")
    
    def test_stale_reader_rebuilds_before_answering(self, make_event):
        """A revision is visible to the next read of any statistic."""
        engine = IncrementalAnalytics()
        engine.add_event(make_event(event_id="a", magnitude=2.1))
        engine.add_event(make_event(event_id="a", magnitude=5.1))
        
        assert engine.needs_recompute
        assert engine.get_magnitude_distribution() == [("5", 1)]
        assert not engine.needs_recompute
