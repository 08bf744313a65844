"""
Tests for the offline replay session and its plane ray caster.
"""

import numpy as np
import pytest

from main import run_replay
from models.config import Config, DecoderConfig
from models.frame import TrackingState
from pipeline.engine import create_engine_from_config
from session.replay import PlaneRayCaster, ReplaySession, camera_looking_down


class TestPlaneRayCaster:
    """Pinhole rays against a flat plane."""

    def test_center_ray_hits_floor(self, floor_ray_caster):
        hit = floor_ray_caster(320, 320)
        assert hit is not None
        assert (hit.x, hit.y, hit.z) == pytest.approx((0.0, 0.0, -1.5), abs=1e-9)

    def test_right_of_center_moves_along_x(self, floor_ray_caster):
        center = floor_ray_caster(320, 320)
        right = floor_ray_caster(400, 320)
        assert right.x > center.x
        assert right.z == pytest.approx(center.z)

    def test_higher_pixel_hits_farther(self, floor_ray_caster):
        center = floor_ray_caster(320, 320)
        above = floor_ray_caster(320, 200)
        assert above.z < center.z

    def test_ray_parallel_to_plane_misses(self):
        caster = PlaneRayCaster(image_size=(640, 640), camera_rotation=np.eye(3))
        assert caster(320, 320) is None

    def test_plane_behind_camera_misses(self):
        caster = PlaneRayCaster(camera_rotation=camera_looking_down(-45.0))
        assert caster(320, 320) is None


class TestReplaySession:
    """Frame playback from recorded outputs."""

    def test_read_until_exhausted(self):
        outputs = [np.zeros((1, 6, 3)), np.ones((1, 6, 3))]
        session = ReplaySession(outputs)
        session.open()

        first = session.read()
        second = session.read()

        assert first.frame_index == 1
        assert second.frame_index == 2
        assert np.array_equal(second.output_tensor, outputs[1])
        assert session.read() is None
        session.close()
        assert not session.is_open

    def test_read_requires_open(self):
        session = ReplaySession([np.zeros(6)])
        assert session.read() is None
        with pytest.raises(RuntimeError):
            list(session)

    def test_tracking_flags(self):
        session = ReplaySession([np.zeros(6)] * 3, tracking=[True, False, True])
        with session:
            states = [frame.tracking_state for frame in session]
        assert states == [TrackingState.TRACKING, TrackingState.NOT_TRACKING, TrackingState.TRACKING]

    def test_per_frame_camera_positions(self):
        caster = PlaneRayCaster(camera_rotation=camera_looking_down(90.0))
        session = ReplaySession([np.zeros(6)] * 2, ray_caster=caster, camera_positions=[(0, 1, 0), (2, 1, 0)])
        with session:
            hits = [frame.ray_cast(320, 320) for frame in session]
        assert hits[0].x == pytest.approx(0.0, abs=1e-9)
        assert hits[1].x == pytest.approx(2.0)

    def test_from_file(self, tmp_path, channel_major, scenario_anchors):
        path = tmp_path / "session.npz"
        tensor = channel_major(scenario_anchors)
        np.savez(path, outputs=np.stack([tensor, tensor]), tracking=np.array([1, 0]))

        session = ReplaySession.from_file(str(path))

        assert len(session) == 2
        with session:
            frames = list(session)
        assert frames[0].output_tensor.shape == (1, 6, 3)
        assert not frames[1].is_tracking

    def test_from_file_without_outputs(self, tmp_path):
        path = tmp_path / "broken.npz"
        np.savez(path, tracking=np.array([1]))
        with pytest.raises(ValueError):
            ReplaySession.from_file(str(path))


class TestRunReplay:
    """CLI replay loop driving the engine."""

    def test_frames_applied(self, flat_ray_caster, channel_major, scenario_anchors):
        config = Config(detection=DecoderConfig(num_classes=2))
        engine = create_engine_from_config(config)
        tensor = channel_major(scenario_anchors)
        session = ReplaySession([tensor, tensor, tensor], ray_caster=flat_ray_caster, tracking=[True, False, True])

        applied = run_replay(engine, session, config, fps=5.0)

        assert applied == 2
        assert engine.stats.frames_skipped == 1
        assert engine.stats.pose_count == 4
        assert not engine.is_running
