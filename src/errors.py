"""Custom exception classes for the annotation session."""

from __future__ import annotations

from typing import List, Optional, Sequence


class AnnotationError(Exception):
    """Base exception for all annotation session errors."""

    pass


class TrackNotFoundError(AnnotationError):
    """Raised when a track id is missing from a camera's track map."""

    def __init__(self, track_id: int, camera: Optional[str] = None):
        self.track_id = track_id
        self.camera = camera
        if camera is None:
            message = f"TrackId {track_id} not found in any camera"
        else:
            message = f"TrackId {track_id} not found in trackMap with cameraName {camera}"
        super().__init__(message)


class CameraNotFoundError(AnnotationError):
    """Raised when a camera name is not registered in the session."""

    def __init__(self, camera: str):
        self.camera = camera
        super().__init__(f"Camera {camera} does not exist in the session")


class DuplicateTrackIdError(AnnotationError):
    """Raised when adding a track id that already exists on a camera."""

    def __init__(self, track_id: int, camera: str):
        self.track_id = track_id
        self.camera = camera
        super().__init__(f"TrackId {track_id} already exists on camera {camera}")


class ConflictError(AnnotationError):
    """Base exception for conflicting mutations."""

    pass


class RecipeConflictError(ConflictError):
    """Raised when two recipes claim the same key or mode change in one update."""

    def __init__(self, message: str, recipe_name: str, field: str):
        self.recipe_name = recipe_name
        self.field = field
        super().__init__(message)


class LinkingConflictError(ConflictError):
    """Raised when a link target exists on more than one camera."""

    def __init__(self, track_id: int, cameras: Sequence[str]):
        self.track_id = track_id
        self.cameras: List[str] = list(cameras)
        super().__init__(
            f"TrackId {track_id} exists on multiple cameras: {', '.join(self.cameras)}"
        )


class MergeOverlapError(ConflictError):
    """Raised when tracks selected for a merge have overlapping frame ranges."""

    def __init__(self, track_ids: Sequence[int]):
        self.track_ids: List[int] = list(track_ids)
        super().__init__(
            f"Cannot merge tracks with overlapping frame ranges: {self.track_ids}"
        )


class InvalidStateError(AnnotationError):
    """Raised when an operation is invoked without its preconditions."""

    pass
