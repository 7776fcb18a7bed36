import cv2
import numpy as np
import pytest

from faceguide.camera import Facing, FrameSource
from faceguide.config import Config
from faceguide.errors import AcquisitionError

from conftest import CaptureFactory, wait_for


def test_start_opens_front_camera_with_size_hints(frame_source, capture_factory):
    frame_source.start(width=1280, height=720)
    assert frame_source.is_running
    cap = capture_factory.opened[-1]
    assert cap.index == 0
    assert cap.props[cv2.CAP_PROP_FRAME_WIDTH] == 1280
    assert cap.props[cv2.CAP_PROP_FRAME_HEIGHT] == 720


def test_read_returns_latest_frame_copy(frame_source):
    frame_source.start()
    assert wait_for(lambda: frame_source.read() is not None)
    frame = frame_source.read()
    assert frame.shape == (480, 640, 3)
    assert frame_source.frame_size == (640, 480)
    frame[:] = 0
    assert frame_source.read().max() == 127


def test_stop_releases_and_is_idempotent(frame_source, capture_factory):
    frame_source.start()
    frame_source.stop()
    frame_source.stop()
    assert not frame_source.is_running
    assert capture_factory.opened[-1].released
    assert frame_source.read() is None


def test_restart_keeps_a_single_stream(frame_source, capture_factory):
    frame_source.start()
    frame_source.start()
    assert [c.released for c in capture_factory.opened] == [True, False]


def test_missing_device_raises_acquisition_error():
    src = FrameSource(capture_factory=CaptureFactory(missing={0}))
    with pytest.raises(AcquisitionError):
        src.start()
    assert not src.is_running


def test_factory_exception_becomes_acquisition_error():
    def boom(index):
        raise PermissionError("camera access denied")

    src = FrameSource(capture_factory=boom)
    with pytest.raises(AcquisitionError):
        src.start()


def test_switch_facing_opens_back_camera(frame_source, capture_factory):
    frame_source.start()
    frame_source.switch_facing()
    assert frame_source.facing is Facing.BACK
    assert capture_factory.opened[0].released
    assert capture_factory.opened[-1].index == Config().back_camera_index
    assert frame_source.is_running


def test_switch_facing_failure_leaves_source_stopped():
    factory = CaptureFactory(missing={1})
    src = FrameSource(capture_factory=factory)
    src.start()
    with pytest.raises(AcquisitionError):
        src.switch_facing()
    assert not src.is_running
    assert src.facing is Facing.BACK
    assert factory.opened[0].released


def test_custom_frame_passes_through():
    frame = np.arange(12, dtype=np.uint8).reshape(2, 2, 3)
    with FrameSource(capture_factory=CaptureFactory(frame=frame)) as src:
        src.start()
        assert wait_for(lambda: src.read() is not None)
        assert np.array_equal(src.read(), frame)
    assert not src.is_running
