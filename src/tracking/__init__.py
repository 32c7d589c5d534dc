"""
Tracking module.

The session's track table lives in tracking.store; tracking.interval_index
answers frame-range overlap queries for it.
"""

from .interval_index import IntervalIndex
from .store import TrackStore

__all__ = ["IntervalIndex", "TrackStore"]
