"""
Offline runner for the AR detection placement pipeline.

Replays recorded model outputs through the pipeline engine against a flat
ground plane and logs the resulting render commands.

Usage:
    python src/main.py --config config/config.yaml --replay recordings/session.npz --display

Arguments:
    --config: Path to configuration file
    --replay: Recorded .npz session to play back
    --display: Show the 2D detection overlay
    --max-frames: Stop after this many frames
"""

import argparse
import logging
import os
import sys
import time
from typing import Any, Dict, Optional, Tuple

import cv2
import yaml

from models.config import Config
from ops.logging import setup_logging
from overlay.draw import blank_canvas, draw_detections
from pipeline.engine import PipelineEngine, create_engine_from_config
from session.replay import PlaneRayCaster, ReplaySession, camera_looking_down

VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not the local override file itself
        if os.path.exists(config_path) and os.path.abspath(config_path) != os.path.abspath(local_overrides_path):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_unit_interval(section: Dict[str, Any], key: str, prefix: str) -> Optional[str]:
    if key in section:
        value = section[key]
        if not _is_number(value) or not (0 <= value <= 1):
            return f"{prefix}.{key} must be a number between 0 and 1"
    return None


def _check_size_pair(value: Any, name: str) -> Optional[str]:
    if not isinstance(value, list) or len(value) != 2:
        return f"{name} must be a list of [width, height]"
    if not all(isinstance(x, int) and x > 0 for x in value):
        return f"{name} values must be positive integers"
    return None


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['detection', 'pose', 'placement', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Detection decoder
    detection = config.get('detection') or {}
    for key in ('conf_threshold', 'objectness_threshold', 'score_threshold', 'iou_threshold'):
        error = _check_unit_interval(detection, key, 'detection')
        if error:
            return False, error
    num_classes = detection.get('num_classes')
    if num_classes is not None and (not isinstance(num_classes, int) or num_classes <= 0):
        return False, "detection.num_classes must be a positive integer"
    if detection.get('layout', 'auto') not in ('auto', 'channel_major', 'anchor_major'):
        return False, "detection.layout must be one of: auto, channel_major, anchor_major"
    if detection.get('head', 'auto') not in ('auto', 'objectness', 'class_scores'):
        return False, "detection.head must be one of: auto, objectness, class_scores"
    max_det = detection.get('max_detections')
    if max_det is not None and (not isinstance(max_det, int) or max_det <= 0):
        return False, "detection.max_detections must be a positive integer"

    # Pose resolver
    pose = config.get('pose') or {}
    for key in ('confidence_threshold', 'top_offset_fraction', 'right_offset_fraction'):
        error = _check_unit_interval(pose, key, 'pose')
        if error:
            return False, error
    if 'model_input_size' in pose:
        size = pose['model_input_size']
        if not (isinstance(size, int) and size > 0):
            error = _check_size_pair(size, 'pose.model_input_size')
            if error:
                return False, error
    if pose.get('screen_size') is not None:
        error = _check_size_pair(pose['screen_size'], 'pose.screen_size')
        if error:
            return False, error
    if 'marker_scale' in pose:
        scale = pose['marker_scale']
        if not isinstance(scale, list) or len(scale) != 3 or not all(_is_number(s) and s > 0 for s in scale):
            return False, "pose.marker_scale must be a list of three positive numbers"
    if 'surface_offset_cm' in pose and not _is_number(pose['surface_offset_cm']):
        return False, "pose.surface_offset_cm must be a number"

    # Placement cache
    placement = config.get('placement') or {}
    if 'reuse_radius' in placement:
        radius = placement['reuse_radius']
        if not _is_number(radius) or radius <= 0:
            return False, "placement.reuse_radius must be a positive number"

    # Engine
    engine = config.get('engine') or {}
    timeout = engine.get('inference_timeout_s')
    if timeout is not None and (not _is_number(timeout) or timeout <= 0):
        return False, "engine.inference_timeout_s must be a positive number"

    if config['log_level'] not in VALID_LOG_LEVELS:
        return False, f"log_level must be one of: {', '.join(VALID_LOG_LEVELS)}"

    return True, None


def run_replay(
    engine: PipelineEngine,
    session: ReplaySession,
    config: Config,
    fps: float = 10.0,
    display: bool = False,
    max_frames: Optional[int] = None,
) -> int:
    """
    Feed a replay session through the engine at a fixed cadence.

    Returns:
        Number of frames whose results were applied.
    """
    frame_interval = 1.0 / fps if fps > 0 else 0.0
    applied = 0

    engine.start()
    try:
        with session:
            for frame in session:
                if max_frames is not None and frame.frame_index > max_frames:
                    break
                engine.submit(frame)
                deadline = time.time() + frame_interval
                commands = None
                while commands is None and time.time() < deadline:
                    commands = engine.apply_pending()
                    if commands is None:
                        time.sleep(0.005)

                if commands is not None:
                    applied += 1
                    visible = [c for c in commands if c.visible]
                    logging.info(
                        f"Frame {frame.frame_index}: markers={len(commands)} visible={len(visible)}"
                    )
                    for command in visible:
                        logging.debug(f"[RENDER] {command.to_dict()}")

                if display and not _show_overlay(engine, config):
                    break
    except KeyboardInterrupt:
        logging.info("Replay interrupted by user")
    finally:
        engine.shutdown()
        if display:
            cv2.destroyAllWindows()

    return applied


def _show_overlay(engine: PipelineEngine, config: Config) -> bool:
    """Show the latest detections. Returns False if user pressed 'q'."""
    size = config.pose.screen_size or config.pose.model_input_size
    canvas = blank_canvas(int(size[0]), int(size[1]))
    result = engine.processor.last_result
    if result is not None:
        draw_detections(canvas, result.detections, config.pose.model_input_size)
    cv2.imshow("AR Placement", canvas)
    key = cv2.waitKey(1) & 0xFF
    return key != ord('q')


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='AR detection placement - offline replay')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--replay', type=str, required=True,
                        help='Recorded .npz session to play back')
    parser.add_argument('--display', action='store_true',
                        help='Show the 2D detection overlay')
    parser.add_argument('--max-frames', type=int, default=None,
                        help='Stop after this many frames')
    parser.add_argument('--fps', type=float, default=10.0,
                        help='Processing cadence in frames per second')
    parser.add_argument('--camera-height', type=float, default=1.5,
                        help='Replay camera height above the ground plane (meters)')
    parser.add_argument('--camera-pitch', type=float, default=45.0,
                        help='Replay camera downward pitch (degrees)')
    args = parser.parse_args()

    raw_config = load_config(args.config)

    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    setup_logging(raw_config['log_path'], raw_config['log_level'])
    config = Config.from_dict(raw_config)

    logging.info("Starting AR placement replay")

    ray_caster = PlaneRayCaster(
        image_size=config.pose.screen_size or config.pose.model_input_size,
        camera_position=(0.0, args.camera_height, 0.0),
        camera_rotation=camera_looking_down(args.camera_pitch),
    )
    try:
        session = ReplaySession.from_file(args.replay, ray_caster=ray_caster)
    except (OSError, ValueError) as e:
        logging.error(f"Cannot open replay {args.replay}: {e}")
        sys.exit(1)

    engine = create_engine_from_config(config)
    applied = run_replay(
        engine,
        session,
        config,
        fps=args.fps,
        display=args.display,
        max_frames=args.max_frames,
    )
    logging.info(
        f"Replay finished: {applied} frames applied, "
        f"{engine.stats.frames_dropped} dropped, {engine.stats.frames_skipped} skipped"
    )


if __name__ == "__main__":
    main()
