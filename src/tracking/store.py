"""
Track store for an annotation session.

Tracks live in one table keyed by (track_id, camera). The same track id on
several cameras is one multi-camera track with independent features per
camera. Each camera keeps an interval index over frame ranges and a view
of its tracks ordered by id; both are maintained only through this store.
"""

from __future__ import annotations

import logging
import numbers
from bisect import bisect_left
from functools import partial
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple, Union

from errors import CameraNotFoundError, DuplicateTrackIdError, TrackNotFoundError
from models.config import DEFAULT_CAMERA
from models.track import Track, TrackId
from .interval_index import IntervalIndex


ChangeListener = Callable[[str, TrackId, str], None]
FrameRange = Union[int, Tuple[int, int]]


class TrackStore:
    """
    Owns every Track in the session.

    This store is responsible for:
    - Assigning unique, never reused track ids
    - Keeping per-camera interval indexes and ordered views in sync
    - Reporting every structural or track-level change to listeners
    """

    def __init__(self, cameras: Optional[Iterable[str]] = None):
        """
        Initialize the track store.

        Args:
            cameras: Camera names in the session (defaults to a single camera)
        """
        self._tracks: Dict[Tuple[TrackId, str], Track] = {}
        self._indexes: Dict[str, IntervalIndex] = {}
        self._ordered: Dict[str, List[Track]] = {}
        self._listeners: List[ChangeListener] = []
        self._next_id: TrackId = 0
        self.revision = 0

        for camera in list(cameras or [DEFAULT_CAMERA]):
            self.add_camera(camera)
        self.default_camera = next(iter(self._indexes))

    def __len__(self) -> int:
        return len(self._tracks)

    def __contains__(self, key: Tuple[TrackId, str]) -> bool:
        return key in self._tracks

    @property
    def camera_names(self) -> List[str]:
        return list(self._indexes)

    def has_camera(self, camera: str) -> bool:
        return camera in self._indexes

    def add_camera(self, camera: str) -> None:
        if camera in self._indexes:
            return
        self._indexes[camera] = IntervalIndex()
        self._ordered[camera] = []
        logging.debug(f"Camera registered: {camera}")

    def _resolve_camera(self, camera: Optional[str]) -> str:
        camera = self.default_camera if camera is None else camera
        if camera not in self._indexes:
            raise CameraNotFoundError(camera)
        return camera

    def subscribe(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: ChangeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _changed(self, event: str, track_id: TrackId, camera: str) -> None:
        self.revision += 1
        for listener in list(self._listeners):
            listener(event, track_id, camera)

    def _on_track_change(self, camera: str, track: Track, name: str, old_value: Any) -> None:
        if self._tracks.get((track.track_id, camera)) is not track:
            return
        index = self._indexes[camera]
        if index.interval_of(track.track_id) != (track.begin, track.end):
            index.update(track.begin, track.end, track.track_id)
        self._changed(name, track.track_id, camera)

    def _insert_ordered(self, camera: str, track: Track, after_id: Optional[TrackId]) -> None:
        view = self._ordered[camera]
        ids = [t.track_id for t in view]
        lo = 0
        if after_id is not None and after_id < track.track_id:
            anchor = bisect_left(ids, after_id)
            if anchor < len(ids) and ids[anchor] == after_id:
                lo = anchor + 1
        view.insert(bisect_left(ids, track.track_id, lo), track)

    def add_track(
        self,
        frame: int,
        initial_type: str,
        camera: Optional[str] = None,
        after_id: Optional[TrackId] = None,
        override_id: Optional[TrackId] = None,
    ) -> Track:
        """
        Create an empty track at a frame and register it.

        Args:
            frame: Frame the new track starts (and ends) on
            initial_type: Type for the first confidence pair
            camera: Camera to add to (defaults to the first camera)
            after_id: Track the new one is placed after in the ordered view
            override_id: Reuse an id, e.g. to add a multi-camera track to a new camera

        Raises:
            DuplicateTrackIdError: If override_id already exists on that camera
        """
        camera = self._resolve_camera(camera)
        if override_id is not None:
            if (override_id, camera) in self._tracks:
                raise DuplicateTrackIdError(override_id, camera)
            track_id = override_id
            self._next_id = max(self._next_id, override_id + 1)
        else:
            track_id = self._next_id
            self._next_id += 1

        track = Track(
            track_id,
            begin=frame,
            end=frame,
            confidence_pairs=[(initial_type, 1.0)],
            notifier=partial(self._on_track_change, camera),
        )
        self._tracks[(track_id, camera)] = track
        self._indexes[camera].insert(frame, frame, track_id)
        self._insert_ordered(camera, track, after_id)
        logging.debug(f"Track {track_id} added on {camera} at frame {frame}")
        self._changed("add", track_id, camera)
        return track

    def remove_track(self, track_id: TrackId, camera: Optional[str] = None) -> Track:
        """
        Remove one track from one camera.

        Raises:
            TrackNotFoundError: If the track is not on that camera
        """
        camera = self._resolve_camera(camera)
        track = self._tracks.pop((track_id, camera), None)
        if track is None:
            raise TrackNotFoundError(track_id, camera)
        self._indexes[camera].remove(track_id)
        self._ordered[camera].remove(track)
        track.notifier = None
        logging.debug(f"Track {track_id} removed from {camera}")
        self._changed("remove", track_id, camera)
        return track

    def get_track(self, track_id: TrackId, camera: Optional[str] = None) -> Track:
        camera = self._resolve_camera(camera)
        track = self._tracks.get((track_id, camera))
        if track is None:
            raise TrackNotFoundError(track_id, camera)
        return track

    def get_possible_track(self, track_id: TrackId, camera: Optional[str] = None) -> Optional[Track]:
        camera = self.default_camera if camera is None else camera
        return self._tracks.get((track_id, camera))

    def get_any_track(self, track_id: TrackId) -> Track:
        for camera in self._indexes:
            track = self._tracks.get((track_id, camera))
            if track is not None:
                return track
        raise TrackNotFoundError(track_id)

    def get_all_tracks_for_id(self, track_id: TrackId) -> List[Track]:
        """One track per camera that holds this id, in camera order."""
        return [
            self._tracks[(track_id, camera)]
            for camera in self._indexes
            if (track_id, camera) in self._tracks
        ]

    def cameras_for_id(self, track_id: TrackId) -> List[str]:
        return [camera for camera in self._indexes if (track_id, camera) in self._tracks]

    def get_merged_track(self, track_id: TrackId) -> Track:
        """Read-only track spanning every camera's copy of an id."""
        tracks = self.get_all_tracks_for_id(track_id)
        if not tracks:
            raise TrackNotFoundError(track_id)
        return Track.composite(tracks)

    def query_interval(self, frame_range: FrameRange, camera: Optional[str] = None) -> Set[TrackId]:
        """
        Ids of tracks whose [begin, end] overlaps a frame or frame range.

        Args:
            frame_range: A frame, or an inclusive (low, high) pair
            camera: Restrict to one camera; all cameras when None
        """
        if isinstance(frame_range, numbers.Integral):
            low = high = frame_range
        else:
            low, high = frame_range
        if camera is not None:
            return self._indexes[self._resolve_camera(camera)].search(low, high)
        found: Set[TrackId] = set()
        for index in self._indexes.values():
            found |= index.search(low, high)
        return found

    def ordered_view(self, camera: Optional[str] = None) -> List[Track]:
        """Tracks of a camera sorted by id."""
        return list(self._ordered[self._resolve_camera(camera)])

    def track_ids(self, camera: Optional[str] = None) -> List[TrackId]:
        return [t.track_id for t in self._ordered[self._resolve_camera(camera)]]

    def next_track_id(
        self,
        current: Optional[TrackId],
        delta: int = 1,
        camera: Optional[str] = None,
    ) -> Optional[TrackId]:
        """
        Neighbour of `current` in a camera's ordered view.

        With no current track, the first (delta > 0) or last track is
        returned. None when stepping past either end.
        """
        ids = self.track_ids(camera)
        if not ids:
            return None
        if current is None or current not in ids:
            return ids[0] if delta > 0 else ids[-1]
        i = ids.index(current) + delta
        if 0 <= i < len(ids):
            return ids[i]
        return None
