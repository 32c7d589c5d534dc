"""
Geometry-editing recipes.

Each recipe implements one editing mode and proposes changes to a track;
the mode manager arbitrates between recipes and applies the result.

Available recipes:
- RectangleRecipe: bounds-only editing
- PolygonRecipe: keyed polygons
- LineRecipe: head/tail lines
"""

from .base import (
    EVENT_EDITING,
    EVENT_IN_PROGRESS,
    ActivationEvent,
    Recipe,
    RecipeResult,
)
from .rectangle import RectangleRecipe
from .polygon import PolygonRecipe
from .line import LineRecipe, HEAD_KEY, HEAD_TAIL_KEY, TAIL_KEY


def default_recipes():
    """One instance of each built-in recipe."""
    return [RectangleRecipe(), PolygonRecipe(), LineRecipe()]


__all__ = [
    "EVENT_EDITING",
    "EVENT_IN_PROGRESS",
    "ActivationEvent",
    "Recipe",
    "RecipeResult",
    "RectangleRecipe",
    "PolygonRecipe",
    "LineRecipe",
    "HEAD_KEY",
    "HEAD_TAIL_KEY",
    "TAIL_KEY",
    "default_recipes",
]
