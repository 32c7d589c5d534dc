"""
Interval index over track frame ranges.

Entries are kept in parallel numpy arrays sorted by begin frame, so an
overlap query is one searchsorted plus a vectorized mask over the prefix.
"""

from __future__ import annotations

from typing import Optional, Set, Tuple

import numpy as np


class IntervalIndex:
    """
    Maps inclusive [begin, end] ranges to track ids.

    Each track id has at most one entry.
    """

    def __init__(self):
        self._begins = np.empty(0, dtype=np.int64)
        self._ends = np.empty(0, dtype=np.int64)
        self._ids = np.empty(0, dtype=np.int64)

    def __len__(self) -> int:
        return int(self._ids.size)

    def __contains__(self, track_id: int) -> bool:
        return bool(np.any(self._ids == track_id))

    def _position(self, track_id: int) -> Optional[int]:
        hits = np.flatnonzero(self._ids == track_id)
        if hits.size == 0:
            return None
        return int(hits[0])

    def insert(self, begin: int, end: int, track_id: int) -> None:
        """Add an entry. Raises ValueError if the id is already indexed."""
        if begin > end:
            raise ValueError(f"Interval begin {begin} is after end {end}")
        if track_id in self:
            raise ValueError(f"TrackId {track_id} is already indexed")
        pos = int(np.searchsorted(self._begins, begin, side="right"))
        self._begins = np.insert(self._begins, pos, begin)
        self._ends = np.insert(self._ends, pos, end)
        self._ids = np.insert(self._ids, pos, track_id)

    def remove(self, track_id: int) -> bool:
        """Drop the entry for an id. Returns False if it was not indexed."""
        pos = self._position(track_id)
        if pos is None:
            return False
        self._begins = np.delete(self._begins, pos)
        self._ends = np.delete(self._ends, pos)
        self._ids = np.delete(self._ids, pos)
        return True

    def update(self, begin: int, end: int, track_id: int) -> None:
        """Replace the range stored for an id."""
        self.remove(track_id)
        self.insert(begin, end, track_id)

    def interval_of(self, track_id: int) -> Optional[Tuple[int, int]]:
        pos = self._position(track_id)
        if pos is None:
            return None
        return int(self._begins[pos]), int(self._ends[pos])

    def search(self, low: int, high: Optional[int] = None) -> Set[int]:
        """
        Ids whose [begin, end] intersects [low, high].

        Args:
            low: First frame of the query range.
            high: Last frame of the query range (defaults to `low`).
        """
        high = low if high is None else high
        if low > high:
            low, high = high, low
        n = int(np.searchsorted(self._begins, high, side="right"))
        mask = self._ends[:n] >= low
        return set(self._ids[:n][mask].tolist())

    def clear(self) -> None:
        self._begins = np.empty(0, dtype=np.int64)
        self._ends = np.empty(0, dtype=np.int64)
        self._ids = np.empty(0, dtype=np.int64)
