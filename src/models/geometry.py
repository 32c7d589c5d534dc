"""
Geometry models for per-frame annotation features.

Shapes use GeoJSON geometry names so they can be exchanged with annotation
editors without conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np


SHAPE_POINT = "Point"
SHAPE_POLYGON = "Polygon"
SHAPE_LINE = "LineString"

SHAPE_TYPES = (SHAPE_POINT, SHAPE_POLYGON, SHAPE_LINE)


@dataclass(frozen=True)
class BoundingBox:
    """
    An axis-aligned rectangle in pixel coordinates.

    Attributes:
        x1: Left edge x coordinate.
        y1: Top edge y coordinate.
        x2: Right edge x coordinate.
        y2: Bottom edge y coordinate.
    """
    x1: float
    y1: float
    x2: float
    y2: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def center(self) -> Tuple[float, float]:
        return ((self.x1 + self.x2) / 2, (self.y1 + self.y2) / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_list(self) -> List[float]:
        """Return as [x1, y1, x2, y2] (RectBounds order)."""
        return [self.x1, self.y1, self.x2, self.y2]

    @classmethod
    def from_list(cls, values: Sequence[float]) -> "BoundingBox":
        """Create from [x1, y1, x2, y2]."""
        if len(values) != 4:
            raise ValueError(f"Bounds need 4 values, got {len(values)}")
        return cls(x1=float(values[0]), y1=float(values[1]), x2=float(values[2]), y2=float(values[3]))

    @classmethod
    def from_points(cls, points: np.ndarray) -> "BoundingBox":
        """Smallest box containing an (N, 2) array of points."""
        mins = points.min(axis=0)
        maxs = points.max(axis=0)
        return cls(x1=float(mins[0]), y1=float(mins[1]), x2=float(maxs[0]), y2=float(maxs[1]))

    def corners(self) -> np.ndarray:
        """Corner points as a (4, 2) array, clockwise from top-left."""
        return np.array([
            [self.x1, self.y1],
            [self.x2, self.y1],
            [self.x2, self.y2],
            [self.x1, self.y2],
        ], dtype=float)

    def to_polygon(self, key: str = "") -> "GeoShape":
        """Closed-ring polygon covering the box."""
        ring = self.corners().tolist()
        ring.append(ring[0])
        return GeoShape(type=SHAPE_POLYGON, coordinates=[ring], key=key)


@dataclass
class GeoShape:
    """
    One interchange shape attached to a feature.

    Attributes:
        type: GeoJSON geometry type (Point, Polygon or LineString).
        coordinates: GeoJSON coordinates for that type.
        key: Identifies the shape within a feature (e.g. "head", "HeadTails").
    """
    type: str
    coordinates: Any
    key: str = ""

    def __post_init__(self):
        if self.type not in SHAPE_TYPES:
            raise ValueError(f"Unsupported shape type: {self.type}")

    def points(self) -> np.ndarray:
        """All vertices of the shape as an (N, 2) float array."""
        if self.type == SHAPE_POINT:
            return np.asarray([self.coordinates], dtype=float).reshape(-1, 2)
        if self.type == SHAPE_LINE:
            return np.asarray(self.coordinates, dtype=float).reshape(-1, 2)
        # Polygon: outer ring plus any holes
        rings = [np.asarray(ring, dtype=float).reshape(-1, 2) for ring in self.coordinates]
        if not rings:
            return np.empty((0, 2), dtype=float)
        return np.concatenate(rings, axis=0)

    def copy(self) -> "GeoShape":
        return GeoShape(type=self.type, coordinates=_copy_coords(self.coordinates), key=self.key)

    @classmethod
    def from_geojson(cls, feature: Dict[str, Any]) -> "GeoShape":
        """Adapter: create from a GeoJSON Feature dict with properties.key."""
        geometry = feature.get("geometry", feature)
        properties = feature.get("properties") or {}
        return cls(
            type=geometry["type"],
            coordinates=_copy_coords(geometry["coordinates"]),
            key=properties.get("key", ""),
        )

    def to_geojson(self) -> Dict[str, Any]:
        return {
            "type": "Feature",
            "geometry": {"type": self.type, "coordinates": _copy_coords(self.coordinates)},
            "properties": {"key": self.key},
        }


def _copy_coords(coords: Any) -> Any:
    if isinstance(coords, (list, tuple)):
        return [_copy_coords(c) for c in coords]
    return coords


def update_bounds(
    old: Optional[BoundingBox],
    union: List[GeoShape],
    union_without_bounds: List[GeoShape],
) -> Optional[BoundingBox]:
    """
    Recompute feature bounds after a recipe update.

    Polygons in `union` grow the existing bounds; polygons in
    `union_without_bounds` are boxed without the existing bounds.

    Args:
        old: Current bounds, if any.
        union: Polygons merged into the existing bounds.
        union_without_bounds: Polygons that replace the existing bounds.

    Returns:
        The new bounds, or `old` when neither list contributes points.
    """
    if not union and not union_without_bounds:
        return old

    chunks = [shape.points() for shape in union_without_bounds]
    if union:
        if old is not None:
            chunks.append(old.corners())
        chunks.extend(shape.points() for shape in union)

    chunks = [c for c in chunks if len(c)]
    if not chunks:
        return old
    return BoundingBox.from_points(np.concatenate(chunks, axis=0))


def polygon_ring(shape: GeoShape) -> np.ndarray:
    """Outer ring of a polygon without the closing vertex, as (N, 2)."""
    ring = np.asarray(shape.coordinates[0], dtype=float).reshape(-1, 2)
    if len(ring) > 1 and np.array_equal(ring[0], ring[-1]):
        ring = ring[:-1]
    return ring


def close_ring(points: np.ndarray) -> List[List[float]]:
    """Closed GeoJSON ring from an (N, 2) vertex array."""
    ring = points.tolist()
    if ring and ring[0] != ring[-1]:
        ring.append(list(ring[0]))
    return ring


def line_box(shape: GeoShape, padding: float) -> GeoShape:
    """Polygon around a line or point, padded on every side."""
    pts = shape.points()
    box = BoundingBox.from_points(pts)
    return BoundingBox(
        x1=box.x1 - padding,
        y1=box.y1 - padding,
        x2=box.x2 + padding,
        y2=box.y2 + padding,
    ).to_polygon()
