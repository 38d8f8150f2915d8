"""
QuakeWatch - Incremental analytics over a live seismic event feed.

The system keeps a set of statistical summaries consistent with
every event it has seen while staying cheap to query:
- Magnitude histograms and Gutenberg-Richter b-value
- Temporal patterns (daily, hourly, monthly, weekly)
- Geographic hotspots and a coarse coordinate grid
- Poisson occurrence probabilities and released energy

Incremental updates are cheap. Anything they cannot express
(an event revised upstream, a retention prune) falls back to a
full recompute from the columnar store.
"""

__version__ = "0.1.0"
__author__ = "QuakeWatch Team"
