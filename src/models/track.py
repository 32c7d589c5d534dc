"""
Track models for annotated objects.

A Track holds one object's per-frame features over an inclusive frame range.
Every mutation is reported to the owning store through a notifier callback so
the store can keep its interval index and ordered views current.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right, insort
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from errors import InvalidStateError, MergeOverlapError
from .geometry import BoundingBox, GeoShape


TrackId = int
ConfidencePair = Tuple[str, float]
Notifier = Callable[["Track", str, Any], None]


@dataclass
class Feature:
    """
    Geometry recorded for a track at one frame.

    Attributes:
        frame: Frame number.
        bounds: Rectangle around the object, None until first drawn.
        geometry: Keyed interchange shapes (points, polygons, lines).
        keyframe: Whether the feature was set by the user (vs interpolated).
        interpolate: Whether to interpolate forward from this keyframe.
    """
    frame: int
    bounds: Optional[BoundingBox] = None
    geometry: List[GeoShape] = field(default_factory=list)
    keyframe: bool = True
    interpolate: bool = False

    def copy(self) -> "Feature":
        return Feature(
            frame=self.frame,
            bounds=self.bounds,
            geometry=[g.copy() for g in self.geometry],
            keyframe=self.keyframe,
            interpolate=self.interpolate,
        )


@dataclass(frozen=True)
class InterpolationResult:
    """Result of Track.can_interpolate: flag plus [real, lower, upper] features."""
    interpolate: bool
    features: List[Optional[Feature]]


class Track:
    """
    One tracked object with sparse per-frame features.

    The track range [begin, end] follows the min/max frame that has a
    feature. A freshly created track has no features and a one-frame range;
    it is transient and is expected to gain a feature or be removed.
    """

    def __init__(
        self,
        track_id: TrackId,
        begin: int,
        end: Optional[int] = None,
        confidence_pairs: Optional[Sequence[ConfidencePair]] = None,
        attributes: Optional[Dict[str, Any]] = None,
        notifier: Optional[Notifier] = None,
        read_only: bool = False,
    ):
        end = begin if end is None else end
        if begin > end:
            raise ValueError(f"Track {track_id} begin {begin} is after end {end}")
        self.track_id = track_id
        self.begin = begin
        self.end = end
        self.confidence_pairs: List[ConfidencePair] = [
            (str(t), float(s)) for t, s in (confidence_pairs or [])
        ]
        self.attributes: Dict[str, Any] = dict(attributes or {})
        self.notifier = notifier
        self.read_only = read_only

        self._features: Dict[int, Feature] = {}
        self._frames: List[int] = []

    def __repr__(self) -> str:
        return (
            f"Track(track_id={self.track_id}, begin={self.begin}, end={self.end}, "
            f"type={self.type!r}, features={len(self._frames)})"
        )

    @property
    def type(self) -> Optional[str]:
        """Primary type (first confidence pair)."""
        if not self.confidence_pairs:
            return None
        return self.confidence_pairs[0][0]

    @property
    def frames(self) -> List[int]:
        """Frames that have a feature, ascending."""
        return list(self._frames)

    @property
    def features(self) -> Dict[int, Feature]:
        return dict(self._features)

    @property
    def is_empty(self) -> bool:
        """True for a single-frame track with no feature on that frame."""
        return self.begin == self.end and self.begin not in self._features

    def _check_writable(self) -> None:
        if self.read_only:
            raise InvalidStateError(f"Track {self.track_id} is a read-only view")

    def _notify(self, name: str, old_value: Any = None) -> None:
        if self.notifier is not None:
            self.notifier(self, name, old_value)

    def _refresh_range(self) -> None:
        if self._frames:
            self.begin = self._frames[0]
            self.end = self._frames[-1]

    def get_feature(self, frame: int) -> List[Optional[Feature]]:
        """
        Look up the feature at a frame.

        Returns:
            [real, lower, upper]. `real` is the feature at `frame`; when it
            is missing, `lower`/`upper` are the nearest keyframes around it.
            All None outside the track range.
        """
        if frame < self.begin or frame > self.end:
            return [None, None, None]
        real = self._features.get(frame)
        if real is not None:
            return [real, None, None]

        lower = upper = None
        i = bisect_left(self._frames, frame)
        for j in range(i - 1, -1, -1):
            candidate = self._features[self._frames[j]]
            if candidate.keyframe:
                lower = candidate
                break
        for j in range(bisect_right(self._frames, frame), len(self._frames)):
            candidate = self._features[self._frames[j]]
            if candidate.keyframe:
                upper = candidate
                break
        return [None, lower, upper]

    def can_interpolate(self, frame: int) -> InterpolationResult:
        """Decide whether a feature written at `frame` should interpolate."""
        real, lower, upper = self.get_feature(frame)
        interpolate = False
        if real is not None:
            interpolate = real.interpolate
        elif lower is not None and upper is not None:
            interpolate = lower.interpolate
        return InterpolationResult(interpolate=interpolate, features=[real, lower, upper])

    def set_feature(
        self,
        frame: int,
        bounds: Optional[BoundingBox] = None,
        keyframe: bool = True,
        interpolate: bool = False,
        shapes: Optional[Sequence[GeoShape]] = None,
    ) -> Feature:
        """
        Create or update the feature at a frame.

        `bounds=None` keeps the current bounds. Each shape replaces the
        existing shape with the same (type, key) or is appended.
        """
        self._check_writable()
        existing = self._features.get(frame)
        old = existing.copy() if existing is not None else None

        if existing is None:
            feature = Feature(frame=frame, bounds=bounds, keyframe=keyframe, interpolate=interpolate)
            self._features[frame] = feature
            insort(self._frames, frame)
        else:
            feature = existing
            if bounds is not None:
                feature.bounds = bounds
            feature.keyframe = keyframe
            feature.interpolate = interpolate

        for shape in shapes or []:
            _upsert_shape(feature.geometry, shape.copy())

        self._refresh_range()
        self._notify("feature", old)
        return feature

    def delete_feature(self, frame: int) -> bool:
        """Remove the feature at a frame. Returns False if there was none."""
        self._check_writable()
        old = self._features.pop(frame, None)
        if old is None:
            return False
        self._frames.remove(frame)
        self._refresh_range()
        self._notify("feature", old)
        return True

    def get_feature_geometry(
        self,
        frame: int,
        shape_type: Optional[str] = None,
        key: Optional[str] = None,
    ) -> List[GeoShape]:
        feature = self._features.get(frame)
        if feature is None:
            return []
        return [
            g for g in feature.geometry
            if (shape_type is None or g.type == shape_type) and (key is None or g.key == key)
        ]

    def remove_feature_geometry(self, frame: int, shape_type: str, key: str) -> int:
        """Drop shapes of one type and key from a frame. Returns the count removed."""
        self._check_writable()
        feature = self._features.get(frame)
        if feature is None:
            return 0
        old = feature.copy()
        kept = [g for g in feature.geometry if not (g.type == shape_type and g.key == key)]
        removed = len(feature.geometry) - len(kept)
        if removed:
            feature.geometry = kept
            self._notify("feature", old)
        return removed

    def set_type(self, track_type: str, confidence: float = 1.0) -> None:
        """Reassign the primary confidence pair."""
        self._check_writable()
        old = list(self.confidence_pairs)
        rest = [p for p in self.confidence_pairs[1:] if p[0] != track_type]
        self.confidence_pairs = [(track_type, float(confidence))] + rest
        self._notify("type", old)

    def set_attribute(self, key: str, value: Any) -> None:
        self._check_writable()
        old = self.attributes.get(key)
        self.attributes[key] = value
        self._notify("attributes", old)

    def merge(self, others: Sequence["Track"]) -> None:
        """
        Absorb the features of other tracks into this one.

        Raises:
            MergeOverlapError: If any two participants share a frame range.
        """
        self._check_writable()
        participants = [self] + [t for t in others if t is not self]
        spans = sorted((t.begin, t.end, t.track_id) for t in participants)
        for (_, prev_end, prev_id), (begin, _, track_id) in zip(spans, spans[1:]):
            if begin <= prev_end:
                raise MergeOverlapError([prev_id, track_id])

        for other in participants[1:]:
            for frame in other._frames:
                source = other._features[frame]
                self.set_feature(
                    frame,
                    bounds=source.bounds,
                    keyframe=source.keyframe,
                    interpolate=source.interpolate,
                    shapes=source.geometry,
                )
            for key, value in other.attributes.items():
                if key not in self.attributes:
                    self.set_attribute(key, value)

    @classmethod
    def composite(cls, tracks: Sequence["Track"]) -> "Track":
        """
        Read-only union of several copies of one track id.

        Frame range covers every input; on shared frames the first track wins.
        """
        if not tracks:
            raise ValueError("composite needs at least one track")
        first = tracks[0]
        merged = cls(
            first.track_id,
            begin=min(t.begin for t in tracks),
            end=max(t.end for t in tracks),
            confidence_pairs=first.confidence_pairs,
            attributes=first.attributes,
        )
        for track in tracks:
            for frame in track._frames:
                if frame not in merged._features:
                    merged._features[frame] = track._features[frame].copy()
                    insort(merged._frames, frame)
        merged.read_only = True
        return merged


def _upsert_shape(geometry: List[GeoShape], shape: GeoShape) -> None:
    for i, existing in enumerate(geometry):
        if existing.type == shape.type and existing.key == shape.key:
            geometry[i] = shape
            return
    geometry.append(shape)
