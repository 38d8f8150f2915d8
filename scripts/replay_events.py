#!/usr/bin/env python3
"""
Replay a file of seismic events through the analytics engine.

Usage:
    python scripts/replay_events.py events.jsonl
    python scripts/replay_events.py feed.geojson --batch-size 500

Accepted inputs:
- JSON Lines: one event per line, either a GeoJSON Feature or its
  feed-style "properties" mapping (unid, time, lat, lon, mag, ...)
- GeoJSON FeatureCollection (.json / .geojson)

After ingestion the script logs the headline statistics: magnitude
distribution, b-value, risk metrics and the top regions.
"""

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import structlog

from quakewatch.config import RetentionSettings, load_settings
from quakewatch.errors import QuakeWatchError
from quakewatch.events import SeismicEvent
from quakewatch.logging_config import configure_logging
from quakewatch.state import SeismicData


def _to_event(item: dict[str, Any]) -> SeismicEvent:
    if item.get("type") == "Feature":
        return SeismicEvent.from_feature(item)
    return SeismicEvent.from_dict(item)


def read_events(path: Path) -> Iterator[SeismicEvent]:
    """Yield events from a JSON Lines file or a GeoJSON FeatureCollection."""
    if path.suffix in (".json", ".geojson"):
        with open(path) as f:
            document = json.load(f)
        features = document.get("features", []) if isinstance(document, dict) else document
        for item in features:
            yield _to_event(item)
        return
    
    with open(path) as f:
        for line in f:
            line = line.strip()
            if line:
                yield _to_event(json.loads(line))


def _batches(events: Iterator[SeismicEvent], size: int) -> Iterator[list[SeismicEvent]]:
    batch = []
    for event in events:
        batch.append(event)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def main():
    parser = argparse.ArgumentParser(
        description="QuakeWatch - replay seismic events through the analytics engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", type=Path, help="JSONL or GeoJSON file of events")
    parser.add_argument(
        "--config",
        type=str,
        default="config/settings.yaml",
        help="Path to settings file",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=1000,
        help="Events per add_events call",
    )
    parser.add_argument(
        "--no-retention",
        action="store_true",
        help="Disable retention (useful for historical catalogs)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured logging level",
    )
    
    args = parser.parse_args()
    
    settings = load_settings(args.config)
    if args.no_retention:
        settings = replace(
            settings,
            retention=RetentionSettings(max_events=None, retention_days=None),
        )
    
    configure_logging(args.log_level or settings.log_level, settings.log_format)
    logger = structlog.get_logger(__name__)
    
    if not args.input.exists():
        logger.error("input_not_found", path=str(args.input))
        sys.exit(1)
    
    data = SeismicData(settings)
    
    try:
        for batch in _batches(read_events(args.input), args.batch_size):
            data.add_events(batch)
        
        stats = data.get_stats()
        metrics = data.get_risk_metrics()
        
        logger.info("replay_complete", **stats.to_dict())
        logger.info("magnitude_distribution", buckets=data.get_magnitude_distribution())
        logger.info(
            "gutenberg_richter",
            b_value=round(data.get_b_value(), 3),
            a_value=round(data.get_a_value(), 3),
        )
        logger.info("risk_metrics", **metrics._asdict())
        logger.info(
            "top_regions",
            regions=data.get_regional_summary(top_n=5).to_dict("records"),
        )
    except QuakeWatchError as e:
        logger.error("replay_failed", **e.to_dict())
        sys.exit(1)
    except (OSError, json.JSONDecodeError, KeyError) as e:
        logger.error("input_unreadable", path=str(args.input), error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
