"""
Mode manager for the annotation session.

Coordinates the transitions between UI states: selection, editing, merge
and cross-camera linking, and dispatches geometry updates to the active
recipes. Transitions can be modified by session settings, blocked when
they would lead to an incompatible state, or confirmed through a prompt.

All derived state (editing mode, editing details, visible modes, merge and
linking flags) is computed on read from the fields below. `revision` is
bumped after every transition, including recipe-mediated edits that do not
otherwise touch a manager field, so observers can tell when to recompute.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence, Union

from algorithms.recipes.base import EVENT_EDITING, ActivationEvent, Recipe
from errors import (
    CameraNotFoundError,
    InvalidStateError,
    LinkingConflictError,
    RecipeConflictError,
    TrackNotFoundError,
)
from models.config import (
    EDIT_RECTANGLE,
    MODE_DETECTION,
    MODE_TRACK,
    AnnotationConfig,
    TrackSettings,
)
from models.geometry import BoundingBox, GeoShape, update_bounds
from models.track import Track, TrackId
from tracking.store import TrackStore
from .playback import PlaybackController
from .prompt import Prompt, PromptRequest


EDITING_DISABLED = "disabled"
EDITING_CREATING = "Creating"
EDITING_EDITING = "Editing"


class ModeManager:
    """
    Session state machine over a TrackStore.

    Effective modes:
    - disabled: nothing selected for editing, or no track on this camera
    - Creating: the selected track has no shape of the editing type on this frame
    - Editing: it has one
    Overlays: merge pending (merge list non-empty) and linking.
    """

    def __init__(
        self,
        store: TrackStore,
        recipes: Sequence[Recipe],
        playback: PlaybackController,
        prompt: Prompt,
        settings: Optional[TrackSettings] = None,
        annotation: Optional[AnnotationConfig] = None,
        camera: Optional[str] = None,
    ):
        self._store = store
        self._recipes: List[Recipe] = list(recipes)
        self._playback = playback
        self._prompt = prompt
        self.settings = settings or TrackSettings()
        self._creating = False
        self.revision = 0

        annotation = annotation or AnnotationConfig()
        self.editing_type: str = annotation.editing
        self.visible_types: List[str] = list(annotation.visible)

        self.selected_track_id: Optional[TrackId] = None
        self.editing_track = False
        self.selected_camera = store.default_camera
        if camera is not None:
            self.set_selected_camera(camera)

        # Meaning depends on the editing type: polygon vertex, line end, ...
        self.selected_feature_handle = -1
        self.selected_key = ""

        self._merge_list: List[TrackId] = []

        self.linking_state = False
        self.linking_camera = ""
        self.linking_track: Optional[TrackId] = None

        for recipe in self._recipes:
            recipe.subscribe(self._on_recipe_activate)

    def close(self) -> None:
        """Release recipe subscriptions. Safe to call more than once."""
        for recipe in self._recipes:
            recipe.unsubscribe(self._on_recipe_activate)

    def __enter__(self) -> "ModeManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Derived state

    @property
    def store(self) -> TrackStore:
        return self._store

    @property
    def playback(self) -> PlaybackController:
        return self._playback

    @property
    def recipes(self) -> List[Recipe]:
        return list(self._recipes)

    @property
    def creating(self) -> bool:
        return self._creating

    @property
    def merge_list(self) -> List[TrackId]:
        return list(self._merge_list)

    @property
    def merge_in_progress(self) -> bool:
        return len(self._merge_list) > 0

    @property
    def editing_mode(self) -> Optional[str]:
        """Editing type while the selected track is being edited, else None."""
        return self.editing_type if self.editing_track else None

    @property
    def visible_modes(self) -> List[str]:
        """Visible types, always including the current editing type."""
        modes = list(dict.fromkeys(self.visible_types))
        if self.editing_mode and self.editing_mode not in modes:
            modes.append(self.editing_mode)
        return modes

    @property
    def editing_details(self) -> str:
        if not self.editing_mode or self.selected_track_id is None:
            return EDITING_DISABLED
        track = self._store.get_possible_track(self.selected_track_id, self.selected_camera)
        if track is None:
            return EDITING_DISABLED
        real = track.get_feature(self._playback.frame)[0]
        if real is None or real.bounds is None:
            return EDITING_CREATING
        if self.editing_type == EDIT_RECTANGLE:
            return EDITING_EDITING
        if any(g.type == self.editing_type for g in real.geometry):
            return EDITING_EDITING
        return EDITING_CREATING

    def _invalidate(self) -> None:
        self.revision += 1

    def _selected_track(self) -> Optional[Track]:
        if self.selected_track_id is None:
            return None
        return self._store.get_possible_track(self.selected_track_id, self.selected_camera)

    # ------------------------------------------------------------------
    # Selection

    def set_selected_camera(self, camera: str) -> None:
        if not self._store.has_camera(camera):
            raise CameraNotFoundError(camera)
        if camera != self.selected_camera:
            self._drop_if_empty(self.selected_track_id)
        self.selected_camera = camera
        self._invalidate()

    def _drop_if_empty(self, track_id: Optional[TrackId]) -> None:
        if track_id is None:
            return
        track = self._store.get_possible_track(track_id, self.selected_camera)
        if track is not None and track.is_empty:
            self._store.remove_track(track_id, self.selected_camera)
            logging.info(f"Removed empty track {track_id} from {self.selected_camera}")

    def _apply_selection(self, track_id: Optional[TrackId], edit: bool) -> None:
        if track_id != self.selected_track_id:
            self._drop_if_empty(self.selected_track_id)
        self.selected_track_id = track_id
        self.editing_track = bool(edit) and track_id is not None
        self._invalidate()

    def select_track(self, track_id: Optional[TrackId], edit: bool = False) -> None:
        """
        Select a track, or feed it to the pending merge/link.

        While a merge is pending, a track id is added to the merge list and
        the selection is left alone. While linking, the id is resolved as
        the link target.
        """
        # Switching shape type on the track being created keeps creating mode
        if not (self._creating and edit and track_id == self.selected_track_id):
            self._creating = False

        if track_id is not None and self.merge_in_progress:
            if track_id not in self._merge_list:
                self._merge_list.append(track_id)
                logging.info(f"Track {track_id} staged for merge")
            self._invalidate()
            return
        if self.linking_state:
            if track_id is not None:
                self.resolve_link(track_id)
            return

        self._apply_selection(track_id, edit and not self.merge_in_progress)

    def select_feature_handle(self, index: int, key: str = "") -> None:
        """Select a handle; selecting the same handle again clears it."""
        self.selected_feature_handle = index if index != self.selected_feature_handle else -1
        self.selected_key = key if isinstance(key, str) else ""
        self._invalidate()

    def select_next(self, delta: int = 1) -> Optional[TrackId]:
        new_id = self._store.next_track_id(self.selected_track_id, delta, self.selected_camera)
        if new_id is not None:
            self.select_track(new_id, False)
            self._seek_nearest(self._store.get_any_track(new_id))
        return new_id

    def _seek_nearest(self, track: Track) -> None:
        frame = self._playback.frame
        if frame < track.begin:
            self._playback.seek(track.begin)
        elif frame > track.end:
            self._playback.seek(track.end)

    def seek_track(self, track_id: TrackId) -> None:
        """Seek to the closest frame of a track on any camera and select it."""
        self._seek_nearest(self._store.get_merged_track(track_id))
        self.select_track(track_id, self.editing_track)

    def edit_track(self, track_id: TrackId) -> None:
        """
        Toggle editing for a track on the selected camera.

        A track that only exists on other cameras is first created on the
        selected camera under the same id.
        """
        track = self._store.get_possible_track(track_id, self.selected_camera)
        if track is not None:
            editing = (not self.editing_track) if track_id == self.selected_track_id else True
            self.select_track(track_id, editing)
            return
        self._store.get_any_track(track_id)
        self.add_track_or_detection(override_id=track_id)
        self.select_track(track_id, track_id == self.selected_track_id)

    def escape(self) -> None:
        """Leave merge/linking and clear the selection, dropping an empty track."""
        self._drop_if_empty(self.selected_track_id)
        self._clear_linking()
        self._merge_list = []
        self.select_track(None, False)

    # ------------------------------------------------------------------
    # Creation and geometry

    def add_track_or_detection(self, override_id: Optional[TrackId] = None) -> TrackId:
        """Create a track at the current frame and select it for editing."""
        track_type = self.settings.new_track.type
        if override_id is not None:
            track_type = self._store.get_any_track(override_id).type or track_type
        track = self._store.add_track(
            self._playback.frame,
            track_type,
            camera=self.selected_camera,
            after_id=self.selected_track_id,
            override_id=override_id,
        )
        self._apply_selection(track.track_id, True)
        self._creating = True
        logging.info(f"Creating track {track.track_id} on {self.selected_camera} at frame {track.begin}")
        return track.track_id

    def change_track_type(self, track_id: Optional[TrackId], value: str) -> None:
        """Set the type of every camera's copy of a track."""
        if track_id is None:
            return
        for track in self._store.get_all_tracks_for_id(track_id):
            track.set_type(value)

    def _should_interpolate(self, can_interpolate: bool) -> bool:
        new_track = self.settings.new_track
        if new_track.mode == MODE_DETECTION:
            return False
        return new_track.track.interpolate if self._creating else can_interpolate

    def _post_add_advance(self, track: Track) -> None:
        new_creating = False
        if self._creating and track is not None:
            new_track = self.settings.new_track
            if new_track.mode == MODE_TRACK and new_track.track.auto_advance_frame:
                self._playback.next_frame()
                new_creating = True
            elif new_track.mode == MODE_DETECTION and new_track.detection.continuous:
                self.add_track_or_detection()
                new_creating = True
        self._invalidate()
        self._creating = new_creating

    def update_rect_bounds(self, frame: int, bounds: Union[BoundingBox, Sequence[float]]) -> None:
        """Write rectangle bounds for the selected track at a frame."""
        track = self._selected_track()
        if track is None:
            return
        if not isinstance(bounds, BoundingBox):
            bounds = BoundingBox.from_list(bounds)
        result = track.can_interpolate(frame)
        track.set_feature(
            frame,
            bounds=bounds,
            keyframe=True,
            interpolate=self._should_interpolate(result.interpolate),
        )
        self._post_add_advance(track)

    def update_geometry(
        self,
        event_type: str,
        frame: int,
        shape: GeoShape,
        key: Optional[str] = None,
        prevent_interrupt: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Apply an editor shape to the selected track through the recipes.

        Every recipe proposes a change; the changes are merged into one
        feature write. At most one recipe may write a given key, set the
        editing type, or set the selected key.

        Raises:
            InvalidStateError: No track selected.
            TrackNotFoundError: Selected track missing on this camera.
            RecipeConflictError: Recipes disagree; nothing is written.
        """
        if self.selected_track_id is None:
            raise InvalidStateError("Cannot update geometry without a selected track")
        track = self._selected_track()
        if track is None:
            raise TrackNotFoundError(self.selected_track_id, self.selected_camera)

        interpolation = track.can_interpolate(frame)
        real = interpolation.features[0]

        data = {}
        union: List[GeoShape] = []
        union_without_bounds: List[GeoShape] = []
        new_type: Optional[str] = None
        type_owner: Optional[Recipe] = None
        new_selected_key: Optional[str] = None
        done = []

        for recipe in self._recipes:
            changes = recipe.update(event_type, frame, track, [shape], key)
            for data_key in changes.data:
                if data_key in data:
                    raise RecipeConflictError(
                        f"Recipe {recipe.name} tried to overwrite key {data_key} when it was already set",
                        recipe.name,
                        "data",
                    )
            data.update(changes.data)
            union.extend(changes.union)
            union_without_bounds.extend(changes.union_without_bounds)
            done.append(changes.done)
            if changes.new_type:
                if new_type:
                    raise RecipeConflictError(
                        f"Recipe {recipe.name} tried to modify type when it was already set",
                        recipe.name,
                        "new_type",
                    )
                new_type = changes.new_type
                type_owner = recipe
            if changes.new_selected_key:
                if new_selected_key:
                    raise RecipeConflictError(
                        f"Recipe {recipe.name} tried to modify selected key when it was already set",
                        recipe.name,
                        "new_selected_key",
                    )
                new_selected_key = changes.new_selected_key

        something_changed = bool(union or union_without_bounds or data)

        if something_changed and not new_selected_key and not new_type and prevent_interrupt is not None:
            prevent_interrupt()
        else:
            if new_selected_key:
                self.selected_key = new_selected_key
            if new_type:
                self.editing_type = new_type
                for recipe in self._recipes:
                    if recipe is not type_owner:
                        recipe.deactivate()

        if something_changed:
            shapes = [
                GeoShape(type=s.type, coordinates=s.coordinates, key=data_key)
                for data_key, shape_list in data.items()
                for s in shape_list
            ]
            track.set_feature(
                frame,
                bounds=update_bounds(real.bounds if real is not None else None, union, union_without_bounds),
                keyframe=True,
                interpolate=interpolation.interpolate,
                shapes=shapes,
            )
            # A completed edit, or every recipe finished, ends the creation step
            if event_type == EVENT_EDITING or all(d is not False for d in done):
                self._post_add_advance(track)
        self._invalidate()

    def remove_point(self) -> None:
        """Let active recipes delete the selected handle."""
        track = self._selected_track()
        if track is not None and self.selected_feature_handle != -1:
            frame = self._playback.frame
            for recipe in self._recipes:
                if recipe.active:
                    recipe.delete_point(
                        frame,
                        track,
                        self.selected_feature_handle,
                        self.selected_key,
                        self.editing_type,
                    )
        self.select_feature_handle(-1)

    def remove_annotation(self) -> None:
        """Let active recipes delete the selected shape on the current frame."""
        track = self._selected_track()
        if track is None:
            return
        frame = self._playback.frame
        for recipe in self._recipes:
            if recipe.active:
                recipe.delete(frame, track, self.selected_key, self.editing_type)
        self._invalidate()

    def set_annotation_state(
        self,
        visible: Optional[Sequence[str]] = None,
        editing: Optional[str] = None,
        key: Optional[str] = None,
        recipe_name: Optional[str] = None,
    ) -> None:
        """
        Change visible/editing types.

        Switching the editing type selects the current track for editing
        and deactivates every recipe other than `recipe_name`.
        """
        if visible is not None:
            self.visible_types = list(visible)
        if editing:
            self.editing_type = editing
            self.selected_key = key if isinstance(key, str) else ""
            if not self.linking_state:
                self.select_track(self.selected_track_id, True)
            for recipe in self._recipes:
                if recipe.name != recipe_name:
                    recipe.deactivate()
        self._invalidate()

    def _on_recipe_activate(self, event: ActivationEvent) -> None:
        self.set_annotation_state(editing=event.editing, key=event.key, recipe_name=event.recipe_name)

    # ------------------------------------------------------------------
    # Deletion

    def remove_tracks(
        self,
        track_ids: Sequence[TrackId],
        force: bool = False,
        camera: Optional[str] = None,
    ) -> bool:
        """
        Delete tracks, asking for confirmation if the settings say so.

        Args:
            track_ids: Tracks to delete.
            force: Skip the confirmation prompt.
            camera: Delete only on this camera; every camera when None.

        Returns:
            False if the user declined (nothing is changed), else True.
        """
        track_ids = list(track_ids)
        for track_id in track_ids:
            if camera is None:
                if not self._store.cameras_for_id(track_id):
                    raise TrackNotFoundError(track_id)
            else:
                self._store.get_track(track_id, camera)

        next_id = self._store.next_track_id(self.selected_track_id, 1, self.selected_camera)
        if next_id is None:
            next_id = self._store.next_track_id(self.selected_track_id, -1, self.selected_camera)
        if next_id in track_ids:
            next_id = None

        if not force and self.settings.deletion.prompt_user:
            text = ["Would you like to delete the following tracks:"]
            text.extend(str(t) for t in track_ids)
            text.extend(["", "This setting can be changed under the Track Settings"])
            confirmed = self._prompt.prompt(PromptRequest(
                title="Delete Confirmation",
                text=text,
                positive_button="OK",
                negative_button="Cancel",
                confirm=True,
            ))
            if not confirmed:
                logging.info(f"Deletion of tracks {track_ids} cancelled")
                return False

        for track_id in track_ids:
            cameras = self._store.cameras_for_id(track_id) if camera is None else [camera]
            for cam in cameras:
                self._store.remove_track(track_id, cam)
        logging.info(f"Deleted tracks {track_ids}")
        self.unstage_from_merge(track_ids)
        if camera is None:
            self._apply_selection(next_id, False)
        self._invalidate()
        return True

    # ------------------------------------------------------------------
    # Merge

    def toggle_merge(self) -> List[TrackId]:
        """Start a merge seeded with the selection, or cancel the pending one."""
        if not self.merge_in_progress and self.selected_track_id is not None:
            if self.linking_state:
                raise InvalidStateError("Cannot start a merge while linking")
            self._merge_list = [self.selected_track_id]
            # No editing in merge mode
            self._apply_selection(self.selected_track_id, False)
        else:
            self._merge_list = []
        self._invalidate()
        return self.merge_list

    def unstage_from_merge(self, track_ids: Sequence[TrackId]) -> None:
        self._merge_list = [t for t in self._merge_list if t not in track_ids]
        self._invalidate()

    def commit_merge(self) -> Optional[TrackId]:
        """
        Merge every staged track into the first one on the selected camera.

        Secondary ids are removed from every camera afterwards.

        Returns:
            The surviving track id, or None with fewer than two candidates.

        Raises:
            MergeOverlapError: Candidate frame ranges overlap; nothing changes.
        """
        if len(self._merge_list) < 2:
            return None
        camera = self.selected_camera
        primary = self._store.get_track(self._merge_list[0], camera)
        other_ids = self._merge_list[1:]
        others = [self._store.get_track(track_id, camera) for track_id in other_ids]

        primary.merge(others)
        self.remove_tracks(other_ids, force=True)
        self.toggle_merge()
        self.select_track(primary.track_id, False)
        logging.info(f"Merged tracks {other_ids} into {primary.track_id} on {camera}")
        return primary.track_id

    # ------------------------------------------------------------------
    # Linking

    def start_linking(self, camera: str) -> None:
        """
        Enter linking mode targeting a camera.

        Raises:
            InvalidStateError: No selection, unknown camera, or merge pending.
        """
        if self.selected_track_id is None:
            raise InvalidStateError("Cannot start Linking without a track selected")
        if not self._store.has_camera(camera):
            raise InvalidStateError(f"Camera: {camera} does not exist in the system for linking")
        if self.merge_in_progress:
            raise InvalidStateError("Cannot start Linking while a merge is pending")
        if self.linking_state:
            return
        self.linking_state = True
        self.linking_camera = camera
        self.linking_track = None
        logging.info(f"Linking track {self.selected_track_id} with camera {camera}")
        self._invalidate()

    def resolve_link(self, track_id: TrackId) -> None:
        """
        Use a track as the link target.

        Raises:
            InvalidStateError: Linking is not active.
            TrackNotFoundError: The id exists on no camera.
            LinkingConflictError: The id exists on more than one camera.
        """
        if not self.linking_state:
            raise InvalidStateError("Linking is not active")
        cameras = self._store.cameras_for_id(track_id)
        if not cameras:
            raise TrackNotFoundError(track_id)
        if len(cameras) > 1:
            self._prompt.prompt(PromptRequest(
                title="Linking Error",
                text=[
                    f"TrackId: {track_id} has tracks on other cameras besides the selected camera {self.linking_camera}",
                    f"You need to select a track that only exists on camera: {self.linking_camera}",
                    "You can split off the track you were trying to select by clicking OK and "
                    "hitting Escape to exit Linking Mode and using the split tool",
                ],
                positive_button="OK",
            ))
            raise LinkingConflictError(track_id, cameras)
        self.linking_track = track_id
        self._invalidate()

    def _clear_linking(self) -> None:
        self.linking_state = False
        self.linking_track = None
        self.linking_camera = ""

    def stop_linking(self) -> None:
        self._clear_linking()
        self._invalidate()
