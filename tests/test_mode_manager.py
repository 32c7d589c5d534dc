"""
Tests for the ModeManager state machine.
"""

import pytest

from algorithms.recipes import (
    EVENT_EDITING,
    EVENT_IN_PROGRESS,
    HEAD_KEY,
    HEAD_TAIL_KEY,
    LineRecipe,
    PolygonRecipe,
    Recipe,
    RecipeResult,
    RectangleRecipe,
)
from errors import (
    CameraNotFoundError,
    InvalidStateError,
    LinkingConflictError,
    MergeOverlapError,
    RecipeConflictError,
    TrackNotFoundError,
)
from models.config import MODE_DETECTION
from models.geometry import BoundingBox, GeoShape
from runtime.mode_manager import ModeManager
from runtime.prompt import AutoPrompt


BOX = [0, 0, 10, 10]


def _polygon(points, key=""):
    ring = [list(p) for p in points]
    ring.append(list(points[0]))
    return GeoShape("Polygon", [ring], key=key)


SQUARE = _polygon([(0, 0), (8, 0), (8, 8), (0, 8)])


def _recipe(recipes, cls):
    return next(r for r in recipes if isinstance(r, cls))


def _drawn(manager, frame=0):
    """Create a track at a frame and give it a rectangle."""
    manager.playback.seek(frame)
    track_id = manager.add_track_or_detection()
    manager.update_rect_bounds(frame, BOX)
    return track_id


class TestCreation:
    """Tests for creating tracks and the post-add logic."""

    def test_add_selects_for_editing(self, manager, store):
        track_id = manager.add_track_or_detection()
        assert track_id == 0
        assert manager.selected_track_id == 0
        assert manager.editing_track is True
        assert manager.creating is True
        track = store.get_track(0, "left")
        assert track.type == "unknown"
        assert track.is_empty

    def test_rect_ends_creation(self, manager, store):
        track_id = _drawn(manager)
        assert manager.creating is False
        feature = store.get_track(track_id, "left").get_feature(0)[0]
        assert feature.bounds == BoundingBox(0, 0, 10, 10)
        assert feature.keyframe is True

    def test_auto_advance_frame(self, manager, settings, cursor, store):
        settings.new_track.track.auto_advance_frame = True
        track_id = _drawn(manager)
        assert cursor.frame == 1
        assert manager.creating is True
        manager.update_rect_bounds(1, BOX)
        assert store.get_track(track_id, "left").frames == [0, 1]

    def test_continuous_detection(self, manager, settings, store):
        settings.new_track.mode = MODE_DETECTION
        settings.new_track.detection.continuous = True
        first = _drawn(manager)
        assert manager.selected_track_id == first + 1
        assert manager.creating is True
        assert store.get_track(first, "left").get_feature(0)[0].interpolate is False
        assert store.get_track(first + 1, "left").is_empty

    def test_interpolate_setting_while_creating(self, manager, settings, store):
        settings.new_track.track.interpolate = True
        track_id = _drawn(manager)
        assert store.get_track(track_id, "left").get_feature(0)[0].interpolate is True

    def test_detection_never_interpolates(self, manager, settings, store):
        settings.new_track.mode = MODE_DETECTION
        settings.new_track.track.interpolate = True
        track_id = _drawn(manager)
        assert store.get_track(track_id, "left").get_feature(0)[0].interpolate is False

    def test_rect_without_selection_is_ignored(self, manager, store):
        manager.update_rect_bounds(0, BOX)
        assert len(store) == 0


class TestSelection:
    """Tests for selection, escape and navigation."""

    def test_reselect_with_edit_keeps_creating(self, manager):
        track_id = manager.add_track_or_detection()
        manager.select_track(track_id, True)
        assert manager.creating is True
        manager.select_track(track_id, False)
        assert manager.creating is False

    def test_escape_removes_empty_track(self, manager, store):
        manager.add_track_or_detection()
        manager.escape()
        assert len(store) == 0
        assert manager.selected_track_id is None
        assert manager.editing_track is False

    def test_escape_keeps_drawn_track(self, manager, store):
        track_id = _drawn(manager)
        manager.escape()
        assert store.get_track(track_id, "left")
        assert manager.selected_track_id is None

    def test_selecting_away_drops_empty_track(self, manager, store):
        first = _drawn(manager)
        empty = manager.add_track_or_detection()
        manager.select_track(first)
        assert store.get_possible_track(empty, "left") is None

    def test_select_next(self, manager, store, cursor):
        for frame in (3, 7):
            track = store.add_track(frame, "fish")
            track.set_feature(frame, bounds=BoundingBox(0, 0, 1, 1))
        assert manager.select_next(1) == 0
        assert cursor.frame == 3
        assert manager.select_next(1) == 1
        assert cursor.frame == 7
        assert manager.select_next(1) is None
        assert manager.selected_track_id == 1

    def test_seek_track(self, manager, store, cursor):
        track = store.add_track(5, "fish")
        track.set_feature(5, bounds=BoundingBox(0, 0, 1, 1))
        track.set_feature(10, bounds=BoundingBox(0, 0, 1, 1))
        manager.seek_track(track.track_id)
        assert cursor.frame == 5
        assert manager.selected_track_id == track.track_id
        cursor.seek(20)
        manager.seek_track(track.track_id)
        assert cursor.frame == 10

    def test_edit_track_toggles(self, manager):
        track_id = _drawn(manager)
        assert manager.editing_track is True
        manager.edit_track(track_id)
        assert manager.editing_track is False
        manager.edit_track(track_id)
        assert manager.editing_track is True

    def test_edit_track_on_other_camera(self, manager, store):
        track_id = _drawn(manager)
        manager.change_track_type(track_id, "eel")
        manager.set_selected_camera("right")
        manager.edit_track(track_id)
        assert store.cameras_for_id(track_id) == ["left", "right"]
        assert store.get_track(track_id, "right").type == "eel"
        assert manager.selected_track_id == track_id
        assert manager.editing_track is True
        assert manager.creating is True

    def test_edit_unknown_track(self, manager):
        with pytest.raises(TrackNotFoundError):
            manager.edit_track(42)

    def test_unknown_camera(self, manager):
        with pytest.raises(CameraNotFoundError):
            manager.set_selected_camera("top")

    def test_change_type_all_cameras(self, manager, store):
        track = store.add_track(0, "fish", camera="left")
        store.add_track(0, "fish", camera="right", override_id=track.track_id)
        manager.change_track_type(track.track_id, "eel")
        assert [t.type for t in store.get_all_tracks_for_id(track.track_id)] == ["eel", "eel"]

    def test_select_feature_handle_toggles(self, manager):
        manager.select_feature_handle(2, "fin")
        assert manager.selected_feature_handle == 2
        assert manager.selected_key == "fin"
        manager.select_feature_handle(2)
        assert manager.selected_feature_handle == -1
        assert manager.selected_key == ""

    def test_revision_advances(self, manager):
        revision = manager.revision
        manager.add_track_or_detection()
        assert manager.revision > revision


class TestDerivedState:
    """Tests for editing details and visible modes."""

    def test_editing_details(self, manager, recipes):
        assert manager.editing_details == "disabled"
        manager.add_track_or_detection()
        assert manager.editing_details == "Creating"
        manager.update_rect_bounds(0, BOX)
        assert manager.editing_details == "Editing"
        _recipe(recipes, PolygonRecipe).activate()
        assert manager.editing_mode == "Polygon"
        assert manager.editing_details == "Creating"

    def test_editing_details_other_camera(self, manager):
        _drawn(manager)
        manager.set_selected_camera("right")
        assert manager.editing_details == "disabled"

    def test_visible_modes_include_editing(self, manager):
        manager.set_annotation_state(visible=["text"])
        assert manager.visible_modes == ["text"]
        manager.add_track_or_detection()
        assert manager.visible_modes == ["text", "rectangle"]


class TestRecipeDispatch:
    """Tests for update_geometry and recipe arbitration."""

    def test_requires_selection(self, manager):
        with pytest.raises(InvalidStateError):
            manager.update_geometry(EVENT_EDITING, 0, SQUARE)

    def test_activation_deactivates_others(self, manager, recipes):
        rectangle = _recipe(recipes, RectangleRecipe)
        polygon = _recipe(recipes, PolygonRecipe)
        rectangle.activate()
        polygon.activate()
        assert polygon.active
        assert not rectangle.active
        assert manager.editing_type == "Polygon"

    def test_polygon_update(self, manager, recipes, store):
        track_id = manager.add_track_or_detection()
        _recipe(recipes, PolygonRecipe).activate("fin")
        manager.update_geometry(EVENT_EDITING, 0, SQUARE, key="fin")
        feature = store.get_track(track_id, "left").get_feature(0)[0]
        assert feature.bounds == BoundingBox(0, 0, 8, 8)
        assert [g.key for g in feature.geometry] == ["fin"]
        assert manager.selected_key == "fin"
        assert manager.editing_details == "Editing"
        assert manager.creating is False

    def test_prevent_interrupt(self, manager, recipes):
        manager.add_track_or_detection()
        _recipe(recipes, PolygonRecipe).activate()
        calls = []
        manager.update_geometry(EVENT_EDITING, 0, SQUARE, prevent_interrupt=lambda: calls.append(True))
        assert calls == [True]

    def test_conflicting_recipes_write_nothing(self, store, cursor, prompt, settings):
        first = PolygonRecipe("first")
        second = PolygonRecipe("second")
        first.activate()
        second.activate()
        with ModeManager(store, [first, second], cursor, prompt, settings=settings) as manager:
            track_id = manager.add_track_or_detection()
            with pytest.raises(RecipeConflictError) as exc:
                manager.update_geometry(EVENT_EDITING, 0, SQUARE)
            assert exc.value.recipe_name == "second"
            assert store.get_track(track_id, "left").frames == []

    def test_line_head_then_tail(self, manager, recipes, store):
        track_id = manager.add_track_or_detection()
        _recipe(recipes, LineRecipe).activate()
        manager.update_geometry(EVENT_IN_PROGRESS, 0, GeoShape("Point", [5, 5]))
        track = store.get_track(track_id, "left")
        assert [g.key for g in track.get_feature_geometry(0)] == [HEAD_KEY]
        assert manager.editing_type == "LineString"
        assert manager.selected_key == HEAD_TAIL_KEY
        assert manager.creating is True

        manager.update_geometry(EVENT_EDITING, 0, GeoShape("Point", [15, 5]))
        assert len(track.get_feature_geometry(0, "LineString", HEAD_TAIL_KEY)) == 1
        assert manager.creating is False

    def test_remove_point(self, manager, recipes, store):
        track_id = manager.add_track_or_detection()
        _recipe(recipes, PolygonRecipe).activate()
        manager.update_geometry(EVENT_EDITING, 0, SQUARE)
        manager.select_feature_handle(0)
        manager.remove_point()
        polygon = store.get_track(track_id, "left").get_feature_geometry(0, "Polygon", "")[0]
        assert len(polygon.coordinates[0]) == 4
        assert manager.selected_feature_handle == -1

    def test_remove_annotation(self, manager, recipes, store):
        track_id = manager.add_track_or_detection()
        _recipe(recipes, PolygonRecipe).activate()
        manager.update_geometry(EVENT_EDITING, 0, SQUARE)
        manager.remove_annotation()
        assert store.get_track(track_id, "left").get_feature_geometry(0, "Polygon") == []

    def test_close_unsubscribes(self, manager, recipes):
        manager.close()
        _recipe(recipes, PolygonRecipe).activate()
        assert manager.editing_type == "rectangle"


class TestDeletion:
    """Tests for remove_tracks."""

    def test_prompt_declined(self, store, recipes, cursor, settings):
        prompt = AutoPrompt(answer=False)
        with ModeManager(store, recipes, cursor, prompt, settings=settings) as manager:
            track_id = _drawn(manager)
            assert manager.remove_tracks([track_id]) is False
            assert store.get_track(track_id, "left")
            request = prompt.requests[-1]
            assert request.title == "Delete Confirmation"
            assert request.negative_button == "Cancel"

    def test_remove_reselects_neighbour(self, manager, store, prompt):
        ids = [_drawn(manager, frame) for frame in (0, 1, 2)]
        manager.select_track(ids[1])
        assert manager.remove_tracks([ids[1]]) is True
        assert store.get_possible_track(ids[1], "left") is None
        assert manager.selected_track_id == ids[2]
        assert len(prompt.requests) == 1

    def test_remove_all_cameras(self, manager, store):
        track = store.add_track(0, "fish", camera="left")
        store.add_track(0, "fish", camera="right", override_id=track.track_id)
        manager.remove_tracks([track.track_id], force=True)
        assert store.cameras_for_id(track.track_id) == []

    def test_force_skips_prompt(self, manager, prompt):
        track_id = _drawn(manager)
        manager.remove_tracks([track_id], force=True)
        assert prompt.requests == []

    def test_prompt_disabled_by_settings(self, manager, prompt, settings):
        settings.deletion.prompt_user = False
        manager.remove_tracks([_drawn(manager)])
        assert prompt.requests == []

    def test_remove_unknown_track(self, manager, prompt):
        with pytest.raises(TrackNotFoundError):
            manager.remove_tracks([42])
        assert prompt.requests == []


class TestMerge:
    """Tests for the merge workflow."""

    def test_merge_flow(self, manager, store):
        first = _drawn(manager, 0)
        second = _drawn(manager, 5)
        manager.select_track(first)
        assert manager.toggle_merge() == [first]
        assert manager.editing_track is False

        manager.select_track(second, True)
        assert manager.merge_list == [first, second]
        assert manager.selected_track_id == first

        assert manager.commit_merge() == first
        assert store.get_track(first, "left").frames == [0, 5]
        assert store.get_possible_track(second, "left") is None
        assert manager.merge_in_progress is False
        assert manager.selected_track_id == first

    def test_merge_overlap_rejected(self, manager, store):
        first = _drawn(manager, 0)
        second = _drawn(manager, 0)
        manager.select_track(first)
        manager.toggle_merge()
        manager.select_track(second)
        with pytest.raises(MergeOverlapError):
            manager.commit_merge()
        assert store.get_track(second, "left")
        assert manager.merge_list == [first, second]

    def test_single_candidate_is_noop(self, manager):
        manager.select_track(_drawn(manager))
        manager.toggle_merge()
        assert manager.commit_merge() is None

    def test_merge_removes_secondary_on_every_camera(self, manager, store):
        first = _drawn(manager, 0)
        second = _drawn(manager, 5)
        store.add_track(7, "fish", camera="right", override_id=second)
        manager.select_track(first)
        manager.toggle_merge()
        manager.select_track(second)

        assert manager.commit_merge() == first
        assert store.cameras_for_id(second) == []
        assert store.get_track(first, "left").frames == [0, 5]

    def test_toggle_clears(self, manager):
        first = _drawn(manager, 0)
        other = _drawn(manager, 5)
        manager.select_track(first)
        manager.toggle_merge()
        assert manager.toggle_merge() == []

        manager.select_track(other, True)
        assert manager.merge_list == []
        assert manager.selected_track_id == other
        assert manager.editing_track is True

    def test_escape_clears_merge(self, manager):
        manager.select_track(_drawn(manager))
        manager.toggle_merge()
        manager.escape()
        assert manager.merge_in_progress is False


class TestLinking:
    """Tests for cross-camera linking."""

    def test_requires_selection(self, manager):
        with pytest.raises(InvalidStateError):
            manager.start_linking("right")

    def test_unknown_camera(self, manager):
        manager.select_track(_drawn(manager))
        with pytest.raises(InvalidStateError):
            manager.start_linking("top")
        assert manager.linking_state is False

    def test_resolve_link(self, manager, store):
        selected = _drawn(manager)
        other = store.add_track(0, "fish", camera="right")
        manager.start_linking("right")
        manager.select_track(other.track_id)
        assert manager.linking_track == other.track_id
        assert manager.selected_track_id == selected
        manager.stop_linking()
        assert manager.linking_state is False
        assert manager.linking_track is None

    def test_escape_clears_linking(self, manager, store):
        _drawn(manager)
        other = store.add_track(0, "fish", camera="right")
        manager.start_linking("right")
        manager.resolve_link(other.track_id)
        assert manager.linking_track == other.track_id

        manager.escape()
        assert manager.linking_state is False
        assert manager.linking_track is None
        assert manager.linking_camera == ""
        assert manager.selected_track_id is None

    def test_link_target_on_many_cameras(self, manager, store, prompt):
        _drawn(manager)
        target = store.add_track(0, "fish", camera="left")
        store.add_track(0, "fish", camera="right", override_id=target.track_id)
        manager.start_linking("right")
        with pytest.raises(LinkingConflictError):
            manager.select_track(target.track_id)
        assert prompt.requests[-1].title == "Linking Error"
        assert prompt.requests[-1].informational
        assert manager.linking_track is None

    def test_merge_and_linking_exclusive(self, manager):
        manager.select_track(_drawn(manager))
        manager.toggle_merge()
        with pytest.raises(InvalidStateError):
            manager.start_linking("right")


class _TypeSwitch(Recipe):
    """Recipe that only asks for an editing type change."""

    editing_type = "Polygon"

    def update(self, event_type, frame, track, shapes, key=None):
        return RecipeResult(new_type=self.editing_type)

    def delete(self, frame, track, key, editing_type):
        pass

    def delete_point(self, frame, track, handle, key, editing_type):
        pass


class TestTypeConflict:
    """Two recipes switching the editing type in one update."""

    def test_rejected_without_changes(self, store, cursor, prompt, settings):
        rectangle = RectangleRecipe()
        rectangle.activate()
        recipes = [rectangle, _TypeSwitch("a"), _TypeSwitch("b")]
        with ModeManager(store, recipes, cursor, prompt, settings=settings) as manager:
            track_id = _drawn(manager)
            track = store.get_track(track_id, "left")
            before = track.get_feature(0)[0].copy()
            with pytest.raises(RecipeConflictError) as exc:
                manager.update_geometry(EVENT_EDITING, 0, SQUARE)
            assert exc.value.field == "new_type"
            assert track.get_feature(0)[0] == before
            assert manager.editing_type == "rectangle"
