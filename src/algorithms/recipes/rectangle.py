"""
Rectangle recipe.

The rectangle is the feature's bounds, so this recipe stores no geometry:
a polygon drawn in rectangle mode simply replaces the bounds.
"""

from __future__ import annotations

from typing import List, Optional

from models.config import EDIT_RECTANGLE
from models.geometry import SHAPE_POLYGON, GeoShape
from models.track import Track
from .base import Recipe, RecipeResult


class RectangleRecipe(Recipe):
    """Edits feature bounds directly."""

    editing_type = EDIT_RECTANGLE

    def update(
        self,
        event_type: str,
        frame: int,
        track: Track,
        shapes: List[GeoShape],
        key: Optional[str] = None,
    ) -> RecipeResult:
        if not self.active:
            return RecipeResult.empty()
        polygon = next((s for s in shapes if s.type == SHAPE_POLYGON), None)
        if polygon is None or not len(polygon.points()):
            return RecipeResult.empty()
        return RecipeResult(union_without_bounds=[polygon], done=True)

    def delete(self, frame: int, track: Track, key: str, editing_type: str) -> None:
        """Drop the feature at a frame if the rectangle is all it holds."""
        if editing_type != EDIT_RECTANGLE:
            return
        real = track.get_feature(frame)[0]
        if real is not None and not real.geometry:
            track.delete_feature(frame)

    def delete_point(
        self,
        frame: int,
        track: Track,
        handle: int,
        key: str,
        editing_type: str,
    ) -> None:
        # Rectangle corners cannot be removed individually
        return None
