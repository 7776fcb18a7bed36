"""Shared fixtures: a fake camera and a fake InsightFace bundle."""

import sys
import threading
import time
from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from faceguide.camera import FrameSource
from faceguide.config import Config
from faceguide.detection import FaceDetector


class FakeCapture:
    """Stands in for cv2.VideoCapture."""

    def __init__(self, index, frame=None, opened=True):
        self.index = index
        self.opened = opened
        self.frame = frame if frame is not None else np.full((480, 640, 3), 127, dtype=np.uint8)
        self.props = {}
        self.released = False

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        time.sleep(0.002)
        if self.released:
            return False, None
        return True, self.frame.copy()

    def release(self):
        self.released = True


class CaptureFactory:
    """Records every capture it opens; indices in `missing` fail to open."""

    def __init__(self, frame=None, missing=()):
        self.frame = frame
        self.missing = set(missing)
        self.opened = []

    def __call__(self, index):
        cap = FakeCapture(index, frame=self.frame, opened=index not in self.missing)
        self.opened.append(cap)
        return cap


class FakeFace:
    def __init__(self, x1, y1, x2, y2, det_score=0.9):
        self.bbox = np.array([x1, y1, x2, y2], dtype=np.float32)
        self.det_score = det_score


class FakeAnalysis:
    """Mimics FaceAnalysis.get(); counts calls and tracks overlap."""

    def __init__(self, faces=(), delay=0.0, error=None):
        self.faces = list(faces)
        self.delay = delay
        self.error = error
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def get(self, img):
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return list(self.faces)
        finally:
            with self._lock:
                self.in_flight -= 1


class StaticSource:
    """Minimal frame source for driving the alignment engine by hand."""

    def __init__(self, frame=None, running=True):
        self.frame = frame if frame is not None else np.zeros((400, 400, 3), dtype=np.uint8)
        self.is_running = running

    def read(self):
        return None if self.frame is None else self.frame.copy()


def make_detector(analysis, cfg=None, load=True):
    det = FaceDetector(cfg=cfg or Config(), providers=["CPUExecutionProvider"],
                       analysis_factory=lambda cfg, providers: analysis)
    if load:
        det.load_models()
    return det


def wait_for(predicate, timeout=2.0, step=0.01):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(step)
    return predicate()


@pytest.fixture
def fast_cfg():
    return Config(poll_interval=0.01)


@pytest.fixture
def capture_factory():
    return CaptureFactory()


@pytest.fixture
def frame_source(capture_factory, fast_cfg):
    src = FrameSource(cfg=fast_cfg, capture_factory=capture_factory)
    yield src
    src.stop()
