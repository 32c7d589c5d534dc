"""
Head/tail line recipe.

A line is two points: the head is placed first, the tail second. The recipe
keeps the line under HEAD_TAIL_KEY plus the two end points under their own
keys, and grows the feature bounds by a padded box around the line.
"""

from __future__ import annotations

from typing import List, Optional, Sequence

from models.config import EDIT_LINE
from models.geometry import SHAPE_LINE, SHAPE_POINT, GeoShape, line_box
from models.track import Track
from .base import EVENT_IN_PROGRESS, Recipe, RecipeResult


HEAD_TAIL_KEY = "HeadTails"
HEAD_KEY = "head"
TAIL_KEY = "tail"

# Pixels added around the line when growing bounds
LINE_PADDING = 10.0


class LineRecipe(Recipe):
    """
    Head/tail line editing.

    Input handled:
    - A two-point LineString: complete line.
    - A Point with no head on the frame (while drawing): places the head and
      switches the editor to line mode for the tail.
    - A Point with a head present: places or moves the tail (or the head when
      the edited key is HEAD_KEY) and completes the line.
    """

    editing_type = EDIT_LINE

    def __init__(self, name: Optional[str] = None, padding: float = LINE_PADDING):
        super().__init__(name)
        self.padding = padding

    def _complete(self, head: Sequence[float], tail: Sequence[float]) -> RecipeResult:
        line = GeoShape(type=SHAPE_LINE, coordinates=[list(head), list(tail)], key=HEAD_TAIL_KEY)
        return RecipeResult(
            data={
                HEAD_TAIL_KEY: [line],
                HEAD_KEY: [GeoShape(type=SHAPE_POINT, coordinates=list(head), key=HEAD_KEY)],
                TAIL_KEY: [GeoShape(type=SHAPE_POINT, coordinates=list(tail), key=TAIL_KEY)],
            },
            union=[line_box(line, self.padding)],
            done=True,
        )

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

        line = next(
            (s for s in shapes if s.type == SHAPE_LINE and len(s.coordinates) >= 2),
            None,
        )
        if line is not None:
            return self._complete(line.coordinates[0], line.coordinates[-1])

        point = next((s for s in shapes if s.type == SHAPE_POINT), None)
        if point is None:
            return RecipeResult.empty()

        heads = track.get_feature_geometry(frame, SHAPE_POINT, HEAD_KEY)
        tails = track.get_feature_geometry(frame, SHAPE_POINT, TAIL_KEY)
        if not heads:
            if event_type != EVENT_IN_PROGRESS:
                return RecipeResult.empty()
            head = GeoShape(type=SHAPE_POINT, coordinates=list(point.coordinates), key=HEAD_KEY)
            return RecipeResult(
                data={HEAD_KEY: [head]},
                union=[line_box(head, self.padding)],
                new_type=EDIT_LINE,
                new_selected_key=HEAD_TAIL_KEY,
                done=False,
            )

        if key == HEAD_KEY and tails:
            return self._complete(point.coordinates, tails[0].coordinates)
        return self._complete(heads[0].coordinates, point.coordinates)

    def delete(self, frame: int, track: Track, key: str, editing_type: str) -> None:
        if editing_type != EDIT_LINE:
            return
        track.remove_feature_geometry(frame, SHAPE_LINE, HEAD_TAIL_KEY)
        track.remove_feature_geometry(frame, SHAPE_POINT, HEAD_KEY)
        track.remove_feature_geometry(frame, SHAPE_POINT, TAIL_KEY)

    def delete_point(
        self,
        frame: int,
        track: Track,
        handle: int,
        key: str,
        editing_type: str,
    ) -> None:
        """Handle 0 is the head, 1 the tail; removing either drops the line."""
        if editing_type != EDIT_LINE or handle not in (0, 1):
            return
        track.remove_feature_geometry(frame, SHAPE_POINT, HEAD_KEY if handle == 0 else TAIL_KEY)
        track.remove_feature_geometry(frame, SHAPE_LINE, HEAD_TAIL_KEY)
