"""
Session wiring: builds a store, recipes and mode manager from configuration.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from algorithms.recipes import default_recipes
from algorithms.recipes.base import Recipe
from models.config import SessionConfig
from tracking.store import TrackStore
from .mode_manager import ModeManager
from .playback import FrameCursor, PlaybackController
from .prompt import AutoPrompt, Prompt


@dataclass
class SessionContext:
    """Holds the session's collaborators; avoids global singletons."""

    config: SessionConfig
    store: TrackStore
    playback: PlaybackController
    prompt: Prompt
    recipes: List[Recipe]
    manager: ModeManager

    # Set by the store after every change until cleared by a save
    changes_pending: bool = False

    def mark_changes_pending(self) -> None:
        self.changes_pending = True

    def summary(self) -> Dict[str, List[Dict[str, Any]]]:
        """Per-camera list of tracks with their type and frame range."""
        return {
            camera: [
                {"id": t.track_id, "type": t.type, "begin": t.begin, "end": t.end, "features": len(t.frames)}
                for t in self.store.ordered_view(camera)
            ]
            for camera in self.store.camera_names
        }

    def close(self) -> None:
        self.manager.close()


def create_session_from_config(
    config: Dict[str, Any],
    prompt: Optional[Prompt] = None,
    playback: Optional[PlaybackController] = None,
) -> SessionContext:
    """
    Factory function to create a SessionContext from a config dict.

    Args:
        config: Full application config dict (as returned by load_config).
        prompt: Dialog implementation; defaults to an AutoPrompt that confirms.
        playback: Playback cursor; defaults to a FrameCursor from playback settings.
    """
    session_config = SessionConfig.from_dict(config)
    store = TrackStore(session_config.cameras)
    playback = playback or FrameCursor(max_frame=session_config.playback.max_frame)
    prompt = prompt or AutoPrompt(answer=True)
    recipes = default_recipes()
    manager = ModeManager(
        store,
        recipes,
        playback,
        prompt,
        settings=session_config.track_settings,
        annotation=session_config.annotation,
    )
    ctx = SessionContext(
        config=session_config,
        store=store,
        playback=playback,
        prompt=prompt,
        recipes=recipes,
        manager=manager,
    )
    store.subscribe(lambda event, track_id, camera: ctx.mark_changes_pending())
    logging.info(f"Session created with cameras: {', '.join(store.camera_names)}")
    return ctx
