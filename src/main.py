"""
Annotation session runner.

Builds an annotation session from configuration and replays a scripted list
of user actions through the mode manager, then logs the resulting tracks.

Usage:
    python src/main.py --config config/config.yaml --script actions.yaml

Arguments:
    --config: Path to configuration file
    --script: YAML list of actions to replay
"""

import os
import sys
import argparse
import logging
import yaml
from typing import Dict, Any, List, Tuple, Optional

from errors import AnnotationError
from models.config import EDIT_TYPES, MODE_DETECTION, MODE_TRACK, VISIBLE_TYPES
from models.geometry import GeoShape
from ops.logging import setup_logging
from runtime.context import SessionContext, create_session_from_config


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        config_dir = os.path.dirname(config_path)
        base_path = os.path.join(config_dir, "default.yaml")
        base_cfg = _read_yaml(base_path) if os.path.exists(base_path) else {}

        local_overrides_path = os.path.join(config_dir, "config.yaml")
        local_cfg = _read_yaml(local_overrides_path) if os.path.exists(local_overrides_path) else {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            merged = _deep_merge(merged, _read_yaml(config_path))

        return merged
    except (OSError, yaml.YAMLError) as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['cameras', 'track_settings', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    cameras = config['cameras']
    if not isinstance(cameras, list) or not cameras:
        return False, "cameras must be a non-empty list of camera names"
    if not all(isinstance(c, str) and c for c in cameras):
        return False, "cameras entries must be non-empty strings"
    if len(set(cameras)) != len(cameras):
        return False, "cameras entries must be unique"

    # Track settings
    track_settings = config.get('track_settings') or {}
    new_track = track_settings.get('new_track') or {}
    mode = new_track.get('mode', MODE_TRACK)
    if mode not in (MODE_TRACK, MODE_DETECTION):
        return False, f"track_settings.new_track.mode must be one of: {MODE_TRACK}, {MODE_DETECTION}"
    if 'type' in new_track and (not isinstance(new_track['type'], str) or not new_track['type']):
        return False, "track_settings.new_track.type must be a non-empty string"
    for section, keys in (('track', ('auto_advance_frame', 'interpolate')), ('detection', ('continuous',))):
        values = new_track.get(section) or {}
        for key in keys:
            if key in values and not isinstance(values[key], bool):
                return False, f"track_settings.new_track.{section}.{key} must be a boolean"

    deletion = track_settings.get('deletion') or {}
    if 'prompt_user' in deletion and not isinstance(deletion['prompt_user'], bool):
        return False, "track_settings.deletion.prompt_user must be a boolean"

    # Optional annotation modes
    annotation = config.get('annotation') or {}
    if 'editing' in annotation and annotation['editing'] not in EDIT_TYPES:
        return False, f"annotation.editing must be one of: {', '.join(EDIT_TYPES)}"
    if 'visible' in annotation:
        visible = annotation['visible']
        if not isinstance(visible, list) or not all(v in VISIBLE_TYPES for v in visible):
            return False, f"annotation.visible entries must be among: {', '.join(VISIBLE_TYPES)}"

    playback = config.get('playback') or {}
    max_frame = playback.get('max_frame')
    if max_frame is not None and (not isinstance(max_frame, int) or max_frame < 0):
        return False, "playback.max_frame must be a non-negative integer"

    # Validate log settings
    if not isinstance(config['log_path'], str):
        return False, "log_path must be a string"
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of: {', '.join(valid_log_levels)}"

    return True, None


def _find_recipe(ctx: SessionContext, name: str):
    for recipe in ctx.recipes:
        if recipe.name == name:
            return recipe
    raise ValueError(f"Unknown recipe: {name}")


def _apply_action(ctx: SessionContext, step: Dict[str, Any]) -> Any:
    manager = ctx.manager
    action = step.get('action')

    if action == 'add_track':
        return manager.add_track_or_detection(step.get('override_id'))
    if action == 'select':
        return manager.select_track(step.get('track_id'), step.get('edit', False))
    if action == 'edit':
        return manager.edit_track(step['track_id'])
    if action == 'rect':
        frame = step.get('frame', ctx.playback.frame)
        return manager.update_rect_bounds(frame, step['bounds'])
    if action == 'geometry':
        frame = step.get('frame', ctx.playback.frame)
        shape = GeoShape.from_geojson(step['shape'])
        return manager.update_geometry(step.get('event', 'editing'), frame, shape, step.get('key'))
    if action == 'next_frame':
        return ctx.playback.next_frame()
    if action == 'seek':
        return ctx.playback.seek(step['frame'])
    if action == 'escape':
        return manager.escape()
    if action == 'toggle_merge':
        return manager.toggle_merge()
    if action == 'commit_merge':
        return manager.commit_merge()
    if action == 'remove':
        return manager.remove_tracks(step['track_ids'], step.get('force', False), step.get('camera'))
    if action == 'start_linking':
        return manager.start_linking(step['camera'])
    if action == 'stop_linking':
        return manager.stop_linking()
    if action == 'set_type':
        track_id = step.get('track_id', manager.selected_track_id)
        return manager.change_track_type(track_id, step['type'])
    if action == 'set_camera':
        return manager.set_selected_camera(step['camera'])
    if action == 'activate':
        return _find_recipe(ctx, step['recipe']).activate(step.get('key', ''))
    raise ValueError(f"Unknown action: {action}")


def replay_actions(ctx: SessionContext, actions: List[Dict[str, Any]]) -> List[Any]:
    """
    Replay scripted user actions through the session's mode manager.

    Args:
        ctx: Session to drive.
        actions: Dicts with an `action` name plus its arguments.

    Returns:
        The return value of each action, in order.

    Raises:
        ValueError: Unknown action or recipe name.
        AnnotationError: An action was rejected by the session.
    """
    results = []
    for i, step in enumerate(actions):
        logging.debug(f"Action {i}: {step}")
        results.append(_apply_action(ctx, step))
    return results


def log_summary(ctx: SessionContext) -> None:
    for camera, tracks in ctx.summary().items():
        logging.info(f"Camera {camera}: {len(tracks)} tracks")
        for t in tracks:
            logging.info(f"  Track {t['id']} ({t['type']}): frames {t['begin']}-{t['end']}, {t['features']} features")


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Track Annotation Session')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--script', type=str, default=None,
                        help='YAML list of actions to replay')
    args = parser.parse_args()

    # Load configuration
    config = load_config(args.config)

    # Validate configuration
    is_valid, error_msg = validate_config(config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    # Setup logging
    setup_logging(config['log_path'], config['log_level'])

    logging.info("Starting annotation session")
    ctx = create_session_from_config(config)

    try:
        if args.script:
            with open(args.script, "r") as f:
                actions = yaml.safe_load(f) or []
            if not isinstance(actions, list):
                logging.error("Action script must be a YAML list")
                sys.exit(1)
            replay_actions(ctx, actions)
            logging.info(f"Replayed {len(actions)} actions")
        log_summary(ctx)
    except (AnnotationError, ValueError) as e:
        logging.error(f"Session aborted: {e}")
        sys.exit(1)
    finally:
        ctx.close()


if __name__ == "__main__":
    main()
