"""
Integration tests for the pipeline lifecycle with a fake camera and detector.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from inference import BackendLoader
from models.config import Config, DetectionConfig
from models.detection import Detection
from models.errors import ModelLoadError, ResourceUnavailable
from models.status import PipelineState
from observation import MediaSource
from pipeline import Pipeline, create_pipeline_from_config
from pipeline.overlay import OverlayRenderer

from fakes import FakeBackend, FakeCamera, run, wait_until


def fast_config(**camera):
    return Config.from_dict({
        "camera": {"resolution": [64, 48], "ready_timeout": 2.0, **camera},
        "pipeline": {"refresh_hz": 200},
    })


def make_media(camera, **kwargs):
    kwargs.setdefault("retry_delay", 0.001)
    return MediaSource(lambda constraints: camera, **kwargs)


class StubLoader(BackendLoader):
    """Real selection and status handling; the model itself is stubbed."""

    def __init__(self, backend=None, error=None):
        super().__init__(DetectionConfig(model="haar"), target_check=lambda kind, target: True)
        self.stub_backend = backend or FakeBackend()
        self.error = error
        self.model_loads = 0
        self.gate = None

    async def load_model(self, target):
        self.model_loads += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.stub_backend


def two_faces(n, fid):
    return [
        Detection.from_corners((2, 2), (12, 12), label="face"),
        Detection.from_corners((30, 20), (44, 34), label="face"),
    ]


class TestPipelineLifecycle:
    def test_runs_and_tears_down(self):
        camera = FakeCamera()
        media = make_media(camera)
        loader = StubLoader(FakeBackend(outcome=two_faces))
        pipeline = Pipeline(fast_config(), media, loader)
        seen = []
        pipeline.add_callback(seen.append)

        async def scenario():
            assert await pipeline.start() is True
            assert pipeline.status_snapshot().state == PipelineState.ACTIVE
            await wait_until(lambda: pipeline.stats.inferences_completed >= 2)
            snapshot = pipeline.status_snapshot()
            pipeline.stop()
            pipeline.stop()
            return snapshot

        snapshot = run(scenario())

        assert snapshot.state == PipelineState.ACTIVE
        assert snapshot.detection_count == 2
        assert loader.model_loads == 1
        assert pipeline.surface.size == (64, 48)
        assert pipeline.surface.version > 0
        assert seen and seen[0] is pipeline.surface

        assert pipeline.stopped
        assert pipeline.trigger.cancelled
        assert pipeline.detection_loop.closed
        assert media.is_released
        assert camera.close_calls == 1

    def test_start_only_once(self):
        pipeline = Pipeline(fast_config(), make_media(FakeCamera()), StubLoader())

        async def scenario():
            try:
                await pipeline.start()
                with pytest.raises(RuntimeError):
                    await pipeline.start()
            finally:
                pipeline.stop()

        run(scenario())

    def test_run_returns_after_stop(self):
        pipeline = Pipeline(fast_config(), make_media(FakeCamera()), StubLoader())

        async def scenario():
            task = asyncio.ensure_future(pipeline.run())
            await wait_until(lambda: pipeline.trigger is not None and pipeline.trigger.cycles > 3)
            pipeline.stop()
            await asyncio.wait_for(task, 2.0)

        run(scenario())
        assert pipeline.status_snapshot().state == PipelineState.ACTIVE


class TestStartupFailures:
    def test_denied_camera(self):
        camera = FakeCamera(open_error=ResourceUnavailable("permission denied"))
        media = make_media(camera)
        loader = StubLoader()
        pipeline = Pipeline(fast_config(), media, loader)

        run(pipeline.run())

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.ERROR
        assert status.message == "ResourceUnavailable: permission denied"
        assert not loader.started
        assert loader.model_loads == 0
        assert pipeline.detection_loop is None
        assert pipeline.trigger is None
        assert camera.close_calls == 1

    def test_stream_never_ready(self):
        camera = FakeCamera(max_frames=0)
        media = make_media(camera, max_consecutive_failures=10**6)
        loader = StubLoader()
        pipeline = Pipeline(fast_config(ready_timeout=0.1), media, loader)

        run(pipeline.run())

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.ERROR
        assert status.message.startswith("ResourceUnavailable: no frame delivered")
        assert loader.model_loads == 0
        assert pipeline.trigger is None
        assert camera.close_calls == 1

    def test_model_load_failure(self):
        camera = FakeCamera()
        media = make_media(camera)
        loader = StubLoader(error=ModelLoadError("corrupt weights"))
        pipeline = Pipeline(fast_config(), media, loader)

        run(pipeline.run())

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.ERROR
        assert status.message == "ModelLoadError: corrupt weights"
        assert pipeline.detection_loop is None
        assert media.is_released
        assert camera.close_calls == 1

    def test_stop_during_startup_is_not_an_error(self):
        camera = FakeCamera(max_frames=0)
        media = make_media(camera, max_consecutive_failures=10**6)
        loader = StubLoader()
        pipeline = Pipeline(fast_config(ready_timeout=5.0), media, loader)

        async def scenario():
            task = asyncio.ensure_future(pipeline.run())
            await wait_until(lambda: media.is_acquired)
            pipeline.stop()
            await asyncio.wait_for(task, 2.0)

        run(scenario())

        assert pipeline.status_snapshot().state == PipelineState.INITIALIZING
        assert loader.model_loads == 0
        assert camera.close_calls == 1

    def test_stop_during_model_load_discards_backend(self):
        camera = FakeCamera()
        media = make_media(camera)
        loader = StubLoader()
        pipeline = Pipeline(fast_config(), media, loader)

        async def scenario():
            loader.gate = asyncio.Event()
            task = asyncio.ensure_future(pipeline.run())
            await wait_until(lambda: loader.model_loads == 1)
            pipeline.stop()
            loader.gate.set()
            await asyncio.wait_for(task, 2.0)

        run(scenario())

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.LOADING
        assert status.message is None
        assert not loader.loaded
        assert pipeline.detection_loop is None
        assert pipeline.trigger is None
        assert camera.close_calls == 1

    def test_malformed_model_url_is_terminal(self, tmp_path):
        camera = FakeCamera()
        cfg = DetectionConfig(model="yunet", model_url="http://[::1", cache_dir=str(tmp_path))
        loader = BackendLoader(cfg, target_check=lambda kind, target: True)
        pipeline = Pipeline(fast_config(), make_media(camera), loader)

        run(pipeline.run())

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.ERROR
        assert status.message.startswith("ModelLoadError")
        assert pipeline.trigger is None
        assert camera.close_calls == 1


class TestRuntimeFailures:
    def test_stream_loss_cancels_trigger(self):
        camera = FakeCamera(max_frames=30)
        media = make_media(camera, max_consecutive_failures=3)
        pipeline = Pipeline(fast_config(), media, StubLoader())

        run(asyncio.wait_for(pipeline.run(), 5.0))

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.ERROR
        assert status.message == "ResourceUnavailable: camera stream stopped delivering frames"
        assert pipeline.trigger.cancelled
        assert not pipeline.trigger.running
        assert pipeline.detection_loop.closed
        assert camera.close_calls == 1

    def test_render_failure_is_terminal(self):
        renderer = OverlayRenderer()
        calls = []
        original = renderer.render

        def flaky_render(frame, detections, surface):
            calls.append(frame.frame_index)
            if len(calls) == 3:
                raise RuntimeError("surface lost")
            original(frame, detections, surface)

        renderer.render = flaky_render
        camera = FakeCamera()
        pipeline = Pipeline(fast_config(), make_media(camera), StubLoader(), renderer=renderer)

        run(asyncio.wait_for(pipeline.run(), 5.0))

        status = pipeline.status_snapshot()
        assert status.state == PipelineState.ERROR
        assert status.message == "RuntimeError: surface lost"
        assert camera.close_calls == 1


class TestCreatePipeline:
    def test_wires_shared_status(self):
        pipeline = create_pipeline_from_config(Config())

        assert isinstance(pipeline.media, MediaSource)
        assert isinstance(pipeline.loader, BackendLoader)
        assert pipeline.loader.status is pipeline.status
        assert pipeline.status_snapshot().state == PipelineState.INITIALIZING
        assert not pipeline.media.is_acquired

    def test_display_override(self):
        config = Config()
        create_pipeline_from_config(config, display=True)
        assert config.pipeline.display is True

    def test_loader_status_adopted(self):
        loader = StubLoader()
        pipeline = Pipeline(fast_config(), MagicMock(), loader)
        assert loader.status is pipeline.status
