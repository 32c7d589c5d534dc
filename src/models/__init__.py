"""
Typed models for the annotation session.

Geometry, tracks and configuration are plain dataclasses/classes with
from_dict/to_dict adapters where they cross the YAML boundary.
"""

from .geometry import (
    BoundingBox,
    GeoShape,
    SHAPE_LINE,
    SHAPE_POINT,
    SHAPE_POLYGON,
    update_bounds,
)
from .track import Feature, InterpolationResult, Track, TrackId
from .config import (
    SessionConfig,
    TrackSettings,
    NewTrackSettings,
    TrackModeSettings,
    DetectionModeSettings,
    DeletionSettings,
    AnnotationConfig,
    PlaybackConfig,
)

__all__ = [
    # Geometry
    "BoundingBox",
    "GeoShape",
    "SHAPE_LINE",
    "SHAPE_POINT",
    "SHAPE_POLYGON",
    "update_bounds",
    # Tracks
    "Feature",
    "InterpolationResult",
    "Track",
    "TrackId",
    # Config
    "SessionConfig",
    "TrackSettings",
    "NewTrackSettings",
    "TrackModeSettings",
    "DetectionModeSettings",
    "DeletionSettings",
    "AnnotationConfig",
    "PlaybackConfig",
]
