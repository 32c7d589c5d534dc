"""
Recipe interface for geometry-editing strategies.

All editing modes (rectangle, polygon, head/tail line, etc.) implement this
interface. A recipe reads a track and the shapes produced by the editor and
returns a RecipeResult; the mode manager aggregates the results of every
recipe and performs the single write to the track.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from models.geometry import GeoShape
from models.track import Track


# Editor event types passed to Recipe.update
EVENT_IN_PROGRESS = "in-progress"
EVENT_EDITING = "editing"


@dataclass(frozen=True)
class ActivationEvent:
    """
    Emitted when a recipe becomes the active editor.

    Attributes:
        editing: Editing type the recipe works in.
        key: Shape key to select.
        recipe_name: Name of the recipe that activated.
    """
    editing: str
    key: str = ""
    recipe_name: Optional[str] = None


ActivationListener = Callable[[ActivationEvent], None]


@dataclass
class RecipeResult:
    """
    One recipe's contribution to a geometry update.

    Attributes:
        data: Shapes to write, by key.
        union: Polygons merged into the existing bounds.
        union_without_bounds: Polygons that replace the existing bounds.
        new_type: Editing type to switch to, if any.
        new_selected_key: Shape key to select, if any.
        done: False while the recipe still expects more input.
    """
    data: Dict[str, List[GeoShape]] = field(default_factory=dict)
    union: List[GeoShape] = field(default_factory=list)
    union_without_bounds: List[GeoShape] = field(default_factory=list)
    new_type: Optional[str] = None
    new_selected_key: Optional[str] = None
    done: Optional[bool] = None

    @classmethod
    def empty(cls) -> "RecipeResult":
        return cls()

    @property
    def changed(self) -> bool:
        return bool(self.data or self.union or self.union_without_bounds)


class Recipe(ABC):
    """
    Abstract base class for geometry-editing recipes.

    A recipe does NOT write to the track inside update(). It should only:
    - Read the track's current features
    - Return the shapes and bounds changes it wants applied

    delete() and delete_point() act on the track directly and are only
    invoked on active recipes.
    """

    editing_type: str = ""

    def __init__(self, name: Optional[str] = None):
        self.name = name or type(self).__name__
        self._active = False
        self._listeners: List[ActivationListener] = []

    @property
    def active(self) -> bool:
        return self._active

    def subscribe(self, listener: ActivationListener) -> None:
        """Register for activation events."""
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: ActivationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def activate(self, key: str = "") -> None:
        """Become the active editor and notify subscribers."""
        self._active = True
        event = ActivationEvent(editing=self.editing_type, key=key, recipe_name=self.name)
        for listener in list(self._listeners):
            listener(event)

    def deactivate(self) -> None:
        self._active = False

    @abstractmethod
    def update(
        self,
        event_type: str,
        frame: int,
        track: Track,
        shapes: List[GeoShape],
        key: Optional[str] = None,
    ) -> RecipeResult:
        """
        Turn editor shapes into a proposed change.

        Args:
            event_type: EVENT_IN_PROGRESS while drawing, EVENT_EDITING on completion.
            frame: Frame being edited.
            track: Track being edited (read only here).
            shapes: Shapes emitted by the editor.
            key: Key of the shape being edited, if any.

        Returns:
            RecipeResult; RecipeResult.empty() when the recipe has nothing to add.
        """
        pass

    @abstractmethod
    def delete(self, frame: int, track: Track, key: str, editing_type: str) -> None:
        """Remove the whole shape this recipe manages at a frame."""
        pass

    @abstractmethod
    def delete_point(
        self,
        frame: int,
        track: Track,
        handle: int,
        key: str,
        editing_type: str,
    ) -> None:
        """Remove one vertex/handle of the shape this recipe manages."""
        pass
