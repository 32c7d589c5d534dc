"""
Polygon recipe.

Stores one polygon per key on a feature and fits the feature bounds to it.
Degenerate polygons (fewer than three distinct vertices or zero area) are
ignored.
"""

from __future__ import annotations

import logging
from typing import List, Optional

import cv2
import numpy as np

from models.config import EDIT_POLYGON
from models.geometry import SHAPE_POLYGON, GeoShape, close_ring, polygon_ring, update_bounds
from models.track import Track
from .base import Recipe, RecipeResult


MIN_POLYGON_VERTICES = 3


def is_valid_polygon(ring: np.ndarray) -> bool:
    """True if an open ring has >= 3 distinct vertices and non-zero area."""
    if len(ring) < MIN_POLYGON_VERTICES:
        return False
    if len(np.unique(ring, axis=0)) < MIN_POLYGON_VERTICES:
        return False
    area = cv2.contourArea(ring.astype(np.float32).reshape(-1, 1, 2))
    return abs(area) > 0


class PolygonRecipe(Recipe):
    """
    Polygon editing.

    A polygon from the editor is stored under the edited key (default "")
    and replaces the bounds with its bounding box.
    """

    editing_type = EDIT_POLYGON

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
        if polygon is None:
            return RecipeResult.empty()

        ring = polygon_ring(polygon)
        if not is_valid_polygon(ring):
            logging.debug(f"{self.name}: ignoring degenerate polygon on frame {frame}")
            return RecipeResult.empty()

        key = key or ""
        shape = GeoShape(type=SHAPE_POLYGON, coordinates=[close_ring(ring)], key=key)
        return RecipeResult(
            data={key: [shape]},
            union_without_bounds=[shape],
            new_selected_key=key,
            done=True,
        )

    def delete(self, frame: int, track: Track, key: str, editing_type: str) -> None:
        if editing_type == EDIT_POLYGON:
            track.remove_feature_geometry(frame, SHAPE_POLYGON, key)

    def delete_point(
        self,
        frame: int,
        track: Track,
        handle: int,
        key: str,
        editing_type: str,
    ) -> None:
        """Remove one vertex while more than three remain."""
        if editing_type != EDIT_POLYGON:
            return
        polygons = track.get_feature_geometry(frame, SHAPE_POLYGON, key)
        if not polygons:
            return
        ring = polygon_ring(polygons[0])
        if len(ring) <= MIN_POLYGON_VERTICES or not 0 <= handle < len(ring):
            return

        ring = np.delete(ring, handle, axis=0)
        shape = GeoShape(type=SHAPE_POLYGON, coordinates=[close_ring(ring)], key=key)
        real = track.get_feature(frame)[0]
        track.set_feature(
            frame,
            bounds=update_bounds(real.bounds, [], [shape]),
            keyframe=real.keyframe,
            interpolate=real.interpolate,
            shapes=[shape],
        )
