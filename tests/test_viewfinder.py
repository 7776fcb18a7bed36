import threading
import time

import pytest

from faceguide.camera import Facing, FrameSource
from faceguide.detection import FaceDetector
from faceguide.errors import AcquisitionError, CaptureError
from faceguide.shapes import ShapeKind
from faceguide.viewfinder import Viewfinder

from conftest import CaptureFactory, FakeAnalysis, FakeFace, make_detector, wait_for


@pytest.fixture
def analysis():
    # well inside the default circle guide centered in a 640x480 viewport
    return FakeAnalysis([FakeFace(250, 150, 350, 270)])


@pytest.fixture
def viewfinder(fast_cfg, capture_factory, analysis):
    vf = Viewfinder(cfg=fast_cfg, display_size=(640, 480),
                    source=FrameSource(cfg=fast_cfg, capture_factory=capture_factory),
                    detector=make_detector(analysis, fast_cfg, load=False))
    yield vf
    vf.close()


def test_open_turns_camera_on_and_starts_polling(viewfinder):
    viewfinder.open(wait_models=True)
    assert viewfinder.camera_on
    assert viewfinder.detector.models_loaded
    assert wait_for(lambda: viewfinder.aligned)
    status = viewfinder.status()
    assert status["aligned"] is True
    assert status["detection"]["width"] == 100
    assert status["shape"]["kind"] == "circle"


def test_moving_guide_away_breaks_alignment(viewfinder):
    viewfinder.open(wait_models=True)
    assert wait_for(lambda: viewfinder.aligned)
    viewfinder.move_shape(600, 240)
    assert wait_for(lambda: not viewfinder.aligned)


def test_camera_off_cancels_polling(viewfinder, analysis):
    viewfinder.open(wait_models=True)
    assert wait_for(lambda: analysis.calls > 0)
    viewfinder.set_camera(False)
    calls = analysis.calls
    assert not viewfinder.engine.is_running
    assert not viewfinder.source.is_running
    time.sleep(0.05)
    assert analysis.calls == calls
    assert viewfinder.toggle_camera() is True
    assert wait_for(lambda: analysis.calls > calls)


def test_model_load_failure_keeps_shape_and_camera_usable(fast_cfg, capture_factory):
    def failing_factory(cfg, providers):
        raise OSError("models missing")

    vf = Viewfinder(cfg=fast_cfg, display_size=(640, 480),
                    source=FrameSource(cfg=fast_cfg, capture_factory=capture_factory),
                    detector=FaceDetector(cfg=fast_cfg, providers=["CPUExecutionProvider"],
                                          analysis_factory=failing_factory))
    with vf:
        vf.open(wait_models=True)
        assert vf.camera_on
        assert not vf.engine.is_running
        assert not vf.aligned
        assert "failed to load" in vf.status()["model_error"]
        assert vf.cycle_shape().kind is ShapeKind.RECT
        assert wait_for(lambda: vf.source.read() is not None)
        assert vf.capture().width == 640


def test_flip_failure_leaves_camera_off(fast_cfg, analysis):
    factory = CaptureFactory(missing={fast_cfg.back_camera_index})
    vf = Viewfinder(cfg=fast_cfg, display_size=(640, 480),
                    source=FrameSource(cfg=fast_cfg, capture_factory=factory),
                    detector=make_detector(analysis, fast_cfg, load=False))
    with vf:
        vf.open(wait_models=True)
        with pytest.raises(AcquisitionError):
            vf.flip_camera()
        assert not vf.camera_on
        assert not vf.source.is_running
        assert not vf.engine.is_running
        assert vf.source.facing is Facing.BACK


def test_flip_switches_facing(viewfinder, capture_factory):
    viewfinder.open(wait_models=True)
    assert viewfinder.flip_camera() is Facing.BACK
    assert viewfinder.camera_on
    assert viewfinder.engine.is_running
    assert capture_factory.opened[-1].index == viewfinder.cfg.back_camera_index


def test_camera_acquisition_failure_on_open_is_not_fatal(fast_cfg, analysis):
    vf = Viewfinder(cfg=fast_cfg, source=FrameSource(cfg=fast_cfg, capture_factory=CaptureFactory(missing={0})),
                    detector=make_detector(analysis, fast_cfg, load=False))
    with vf:
        vf.open(wait_models=True)
        assert not vf.camera_on
        assert vf.status()["error"]
        with pytest.raises(CaptureError):
            vf.capture()


def test_resize_viewport_recenters_until_moved(viewfinder):
    shape = viewfinder.resize_viewport(1000, 800)
    assert shape.center == (500.0, 400.0)
    assert shape.radius == 100.0
    viewfinder.move_shape(10, 10)
    assert viewfinder.resize_viewport(2000, 1000).center == (10.0, 10.0)


@pytest.mark.parametrize("size", [(0, 480), (640, 0), (-10, -10)])
def test_non_positive_viewport_is_rejected_without_side_effects(viewfinder, analysis, size):
    viewfinder.open(wait_models=True)
    assert wait_for(lambda: viewfinder.aligned)
    before = viewfinder.shapes.shape
    with pytest.raises(ValueError):
        viewfinder.resize_viewport(*size)
    assert viewfinder.display_size == (640, 480)
    assert viewfinder.shapes.shape == before
    calls = analysis.calls
    assert wait_for(lambda: analysis.calls > calls)
    assert viewfinder.engine.is_running
    assert viewfinder.aligned


def test_capture_is_masked_at_frame_resolution(viewfinder):
    viewfinder.open(wait_models=True)
    assert wait_for(lambda: viewfinder.source.read() is not None)
    image = viewfinder.capture()
    assert (image.width, image.height) == (640, 480)
    assert image.data[:8] == b"\x89PNG\r\n\x1a\n"


def test_close_releases_everything(viewfinder, capture_factory):
    viewfinder.open(wait_models=True)
    assert wait_for(lambda: viewfinder.engine.is_running)
    viewfinder.close()
    viewfinder.close()
    assert not viewfinder.engine.is_running
    assert not viewfinder.source.is_running
    assert not viewfinder.detector.models_loaded
    assert all(c.released for c in capture_factory.opened)


def test_close_while_models_are_loading_releases_them(fast_cfg, capture_factory, analysis):
    started, release = threading.Event(), threading.Event()

    def slow_factory(cfg, providers):
        started.set()
        release.wait(2.0)
        return analysis

    vf = Viewfinder(cfg=fast_cfg, display_size=(640, 480),
                    source=FrameSource(cfg=fast_cfg, capture_factory=capture_factory),
                    detector=FaceDetector(cfg=fast_cfg, providers=["CPUExecutionProvider"],
                                          analysis_factory=slow_factory))
    vf.open(camera_on=False)
    assert started.wait(2.0)
    loader = next(t for t in threading.enumerate() if t.name == "model-loader")
    vf.close()
    release.set()
    loader.join(2.0)
    assert not loader.is_alive()
    assert not vf.detector.models_loaded
    assert vf.detector.app is None
    assert not vf.engine.is_running
    assert analysis.calls == 0
