"""
Tests for the data models (detections, status, config, errors).
"""

import dataclasses

import numpy as np
import pytest

from models import (
    BoundingBox,
    CameraConfig,
    Config,
    Detection,
    DetectionSet,
    EMPTY_DETECTIONS,
    PipelineState,
    PipelineStats,
    PipelineStatus,
)
from models.errors import (
    BackendInitError,
    InferenceTransientError,
    ModelLoadError,
    ResourceUnavailable,
)


class TestBoundingBox:
    def test_dimensions(self):
        bbox = BoundingBox(10, 20, 110, 70)
        assert bbox.width == 100
        assert bbox.height == 50
        assert bbox.area == 5000

    def test_from_xywh(self):
        bbox = BoundingBox.from_xywh(5, 6, 10, 20)
        assert (bbox.x1, bbox.y1, bbox.x2, bbox.y2) == (5, 6, 15, 26)

    def test_scaled(self):
        bbox = BoundingBox(10, 10, 20, 30).scaled(2.0, 0.5)
        assert (bbox.x1, bbox.y1, bbox.x2, bbox.y2) == (20, 5, 40, 15)

    def test_as_int_tuple_rounds(self):
        assert BoundingBox(1.4, 1.6, 9.5, 10.49).as_int_tuple() == (1, 2, 10, 10)


class TestDetection:
    def test_corners(self):
        det = Detection.from_corners((1, 2), (30, 40), confidence=0.8, label="face")
        assert det.top_left == (1.0, 2.0)
        assert det.bottom_right == (30.0, 40.0)
        assert det.confidence == 0.8

    def test_from_xywh(self):
        det = Detection.from_xywh(10, 20, 30, 40, confidence=0.5)
        assert det.bottom_right == (40.0, 60.0)

    def test_to_dict(self):
        d = Detection.from_corners((0, 0), (5, 5), label="face").to_dict()
        assert d == {"top_left": [0.0, 0.0], "bottom_right": [5.0, 5.0], "confidence": 1.0, "label": "face"}


class TestDetectionSet:
    def test_empty_initial_set(self):
        assert len(EMPTY_DETECTIONS) == 0
        assert list(EMPTY_DETECTIONS) == []
        assert EMPTY_DETECTIONS.frame_index == -1
        assert EMPTY_DETECTIONS.to_numpy().shape == (0, 5)

    def test_build_freezes_detections(self):
        dets = [Detection.from_corners((0, 0), (1, 1)), Detection.from_corners((2, 2), (3, 3))]
        ds = DetectionSet.build(dets, frame_index=7, completed_cycle=9, latency_ms=12.5)
        dets.clear()

        assert len(ds) == 2
        assert isinstance(ds.detections, tuple)
        assert ds.frame_index == 7
        assert ds.completed_cycle == 9

    def test_is_immutable(self):
        ds = DetectionSet.build([], 1, 1)
        with pytest.raises(dataclasses.FrozenInstanceError):
            ds.detections = ()

    def test_to_numpy(self):
        ds = DetectionSet.build([Detection.from_corners((1, 2), (3, 4), confidence=0.5)], 1, 1)
        np.testing.assert_array_equal(ds.to_numpy(), np.array([[1, 2, 3, 4, 0.5]]))


class TestPipelineStatus:
    def test_defaults(self):
        status = PipelineStatus()
        assert status.state == PipelineState.INITIALIZING
        assert status.message is None
        assert status.detection_count == 0
        assert not status.is_terminal
        assert not status.is_live

    def test_evolve_returns_new_value(self):
        status = PipelineStatus()
        active = status.evolve(state=PipelineState.ACTIVE, detection_count=3)

        assert status.state == PipelineState.INITIALIZING
        assert active.is_live
        assert active.detection_count == 3

    def test_from_dict_to_dict(self):
        d = {"state": "error", "message": "ModelLoadError: bad file", "detection_count": 0, "updated_at": 1.0}
        status = PipelineStatus.from_dict(d)

        assert status.is_terminal
        assert status.to_dict() == d

    def test_from_dict_unknown_state_is_error(self):
        assert PipelineStatus.from_dict({"state": "bogus"}).state == PipelineState.ERROR


class TestPipelineStats:
    def test_to_dict_keys(self):
        d = PipelineStats(cycles=3, inferences_completed=1).to_dict()
        assert d["cycles"] == 3
        assert d["inferences_completed"] == 1
        assert "uptime_seconds" in d


class TestErrors:
    def test_describe_prefixes_kind(self):
        assert ResourceUnavailable("permission denied").describe() == "ResourceUnavailable: permission denied"
        assert BackendInitError().describe() == "BackendInitError"

    def test_terminal_flags(self):
        assert ResourceUnavailable.terminal
        assert BackendInitError.terminal
        assert ModelLoadError.terminal
        assert not InferenceTransientError.terminal


class TestConfig:
    def test_defaults_from_empty_dict(self):
        config = Config.from_dict({})
        assert config.camera.resolution == [640, 480]
        assert config.detection.model == "yunet"
        assert config.pipeline.refresh_hz == 30.0
        assert config.web.port == 5000

    def test_sections_parsed(self, valid_config):
        config = Config.from_dict(valid_config)
        assert config.camera.width == 1280
        assert config.camera.height == 720
        assert config.camera.ready_timeout == 5.0
        assert config.detection.score_threshold == 0.6
        assert config.log_path == "logs/test.log"

    def test_cycle_interval(self):
        config = Config.from_dict({"pipeline": {"refresh_hz": 20}})
        assert config.pipeline.cycle_interval == pytest.approx(0.05)

    def test_to_dict_round_trips(self, valid_config):
        config = Config.from_dict(valid_config)
        assert Config.from_dict(config.to_dict()) == config


class TestCameraDeviceResolution:
    def test_facing_user_maps_to_first_device(self):
        assert CameraConfig(facing="user").resolve_device() == 0

    def test_facing_environment_maps_to_second_device(self):
        assert CameraConfig(facing="environment").resolve_device() == 1

    def test_explicit_device_wins(self):
        assert CameraConfig(device_id="video.mp4", facing="environment").resolve_device() == "video.mp4"
