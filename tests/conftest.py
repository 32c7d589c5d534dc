"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from algorithms.recipes import default_recipes  # noqa: E402
from models.config import TrackSettings  # noqa: E402
from runtime.mode_manager import ModeManager  # noqa: E402
from runtime.playback import FrameCursor  # noqa: E402
from runtime.prompt import AutoPrompt  # noqa: E402
from tracking.store import TrackStore  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
cameras: [singleCam]

track_settings:
  new_track:
    mode: Track
    type: unknown
    track:
      auto_advance_frame: false
      interpolate: false
    detection:
      continuous: false
  deletion:
    prompt_user: true

annotation:
  editing: rectangle

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "cameras": ["left", "right"],
        "track_settings": {
            "new_track": {
                "mode": "Track",
                "type": "fish",
                "track": {"auto_advance_frame": False, "interpolate": False},
                "detection": {"continuous": False},
            },
            "deletion": {"prompt_user": False},
        },
        "annotation": {
            "editing": "rectangle",
            "visible": ["rectangle", "Polygon", "LineString", "text"],
        },
        "playback": {"max_frame": 100},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def store():
    """Two-camera track store."""
    return TrackStore(["left", "right"])


@pytest.fixture
def cursor():
    return FrameCursor()


@pytest.fixture
def prompt():
    """Prompt that confirms every request."""
    return AutoPrompt(answer=True)


@pytest.fixture
def settings():
    """Settings with the deletion prompt on and no auto-advance."""
    return TrackSettings()


@pytest.fixture
def recipes():
    return default_recipes()


@pytest.fixture
def manager(store, recipes, cursor, prompt, settings):
    """Mode manager over the two-camera store, selected camera 'left'."""
    mm = ModeManager(store, recipes, cursor, prompt, settings=settings)
    yield mm
    mm.close()
