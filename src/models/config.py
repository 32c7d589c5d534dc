"""
Typed configuration models matching the YAML config structure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


MODE_TRACK = "Track"
MODE_DETECTION = "Detection"

EDIT_RECTANGLE = "rectangle"
EDIT_POLYGON = "Polygon"
EDIT_LINE = "LineString"
EDIT_TYPES = (EDIT_RECTANGLE, EDIT_POLYGON, EDIT_LINE)

VISIBLE_TEXT = "text"
VISIBLE_TYPES = EDIT_TYPES + (VISIBLE_TEXT,)

DEFAULT_CAMERA = "singleCam"


@dataclass
class TrackModeSettings:
    """Creation behaviour when new annotations are tracks."""
    auto_advance_frame: bool = False
    interpolate: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrackModeSettings":
        return cls(
            auto_advance_frame=d.get("auto_advance_frame", False),
            interpolate=d.get("interpolate", False),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "auto_advance_frame": self.auto_advance_frame,
            "interpolate": self.interpolate,
        }


@dataclass
class DetectionModeSettings:
    """Creation behaviour when new annotations are single-frame detections."""
    continuous: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DetectionModeSettings":
        return cls(continuous=d.get("continuous", False))

    def to_dict(self) -> Dict[str, Any]:
        return {"continuous": self.continuous}


@dataclass
class NewTrackSettings:
    """
    Defaults applied to newly created tracks.

    Attributes:
        mode: "Track" or "Detection".
        type: Default type for new tracks.
        track: Settings used in Track mode.
        detection: Settings used in Detection mode.
    """
    mode: str = MODE_TRACK
    type: str = "unknown"
    track: TrackModeSettings = field(default_factory=TrackModeSettings)
    detection: DetectionModeSettings = field(default_factory=DetectionModeSettings)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "NewTrackSettings":
        return cls(
            mode=d.get("mode", MODE_TRACK),
            type=d.get("type", "unknown"),
            track=TrackModeSettings.from_dict(d.get("track") or {}),
            detection=DetectionModeSettings.from_dict(d.get("detection") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "type": self.type,
            "track": self.track.to_dict(),
            "detection": self.detection.to_dict(),
        }


@dataclass
class DeletionSettings:
    """Deletion confirmation settings."""
    prompt_user: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "DeletionSettings":
        return cls(prompt_user=d.get("prompt_user", True))

    def to_dict(self) -> Dict[str, Any]:
        return {"prompt_user": self.prompt_user}


@dataclass
class TrackSettings:
    """Session settings consumed by the mode manager."""
    new_track: NewTrackSettings = field(default_factory=NewTrackSettings)
    deletion: DeletionSettings = field(default_factory=DeletionSettings)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "TrackSettings":
        return cls(
            new_track=NewTrackSettings.from_dict(d.get("new_track") or {}),
            deletion=DeletionSettings.from_dict(d.get("deletion") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "new_track": self.new_track.to_dict(),
            "deletion": self.deletion.to_dict(),
        }


@dataclass
class AnnotationConfig:
    """Initial editing and visibility modes."""
    editing: str = EDIT_RECTANGLE
    visible: List[str] = field(default_factory=lambda: list(VISIBLE_TYPES))

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AnnotationConfig":
        return cls(
            editing=d.get("editing", EDIT_RECTANGLE),
            visible=list(d.get("visible", VISIBLE_TYPES)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"editing": self.editing, "visible": list(self.visible)}


@dataclass
class PlaybackConfig:
    """Playback cursor configuration."""
    max_frame: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PlaybackConfig":
        return cls(max_frame=d.get("max_frame"))

    def to_dict(self) -> Dict[str, Any]:
        return {"max_frame": self.max_frame}


@dataclass
class SessionConfig:
    """
    Complete session configuration.

    This is a typed representation of the YAML config structure.
    """
    cameras: List[str] = field(default_factory=lambda: [DEFAULT_CAMERA])
    track_settings: TrackSettings = field(default_factory=TrackSettings)
    annotation: AnnotationConfig = field(default_factory=AnnotationConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    log_path: str = "logs/annotator.log"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SessionConfig":
        """Adapter: Create SessionConfig from raw dictionary (e.g., from load_config)."""
        return cls(
            cameras=list(d.get("cameras") or [DEFAULT_CAMERA]),
            track_settings=TrackSettings.from_dict(d.get("track_settings") or {}),
            annotation=AnnotationConfig.from_dict(d.get("annotation") or {}),
            playback=PlaybackConfig.from_dict(d.get("playback") or {}),
            log_path=d.get("log_path", "logs/annotator.log"),
            log_level=d.get("log_level", "INFO"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to dictionary (for saving or passing to existing code)."""
        return {
            "cameras": list(self.cameras),
            "track_settings": self.track_settings.to_dict(),
            "annotation": self.annotation.to_dict(),
            "playback": self.playback.to_dict(),
            "log_path": self.log_path,
            "log_level": self.log_level,
        }
