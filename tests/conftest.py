"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.pose import HitPoint  # noqa: E402
from session.replay import PlaneRayCaster, camera_looking_down  # noqa: E402


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
detection:
  objectness_threshold: 0.5
  score_threshold: 0.5
  iou_threshold: 0.4

pose:
  confidence_threshold: 0.5
  top_offset_fraction: 0.2
  right_offset_fraction: 0.2
  model_input_size: [640, 640]

placement:
  reuse_radius: 0.25

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "detection": {
            "objectness_threshold": 0.5,
            "score_threshold": 0.5,
            "iou_threshold": 0.4,
            "num_classes": None,
            "layout": "auto",
            "head": "auto",
        },
        "pose": {
            "confidence_threshold": 0.5,
            "top_offset_fraction": 0.2,
            "right_offset_fraction": 0.2,
            "model_input_size": [640, 640],
            "marker_scale": [1.0, 1.0, 1.0],
        },
        "placement": {
            "reuse_radius": 0.25,
        },
        "engine": {
            "inference_timeout_s": None,
            "stats_log_interval": 60.0,
        },
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }


@pytest.fixture
def channel_major():
    """Build a [1, C, N] tensor from per-anchor tuples."""
    def _build(anchors):
        arr = np.asarray(anchors, dtype=np.float32)
        return arr.T[np.newaxis, ...]
    return _build


@pytest.fixture
def scenario_anchors():
    """Three anchors: two overlapping boxes and one far away."""
    return [
        (50, 50, 20, 20, 0.9, 0.1),
        (52, 51, 20, 20, 0.85, 0.1),
        (200, 200, 10, 10, 0.6, 0.2),
    ]


@pytest.fixture
def floor_ray_caster():
    """Camera 1.5 m above a floor plane, pitched 45 degrees down."""
    return PlaneRayCaster(
        image_size=(640, 640),
        fov_y_degrees=60.0,
        camera_position=(0.0, 1.5, 0.0),
        camera_rotation=camera_looking_down(45.0),
    )


@pytest.fixture
def flat_ray_caster():
    """Ray cast mapping (x, y) pixels to points on z=0, 1 px = 1 cm."""
    def _cast(x, y):
        return HitPoint(x / 100.0, y / 100.0, 0.0)
    return _cast
