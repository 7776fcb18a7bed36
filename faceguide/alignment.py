from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional, Tuple

from .camera import FrameSource
from .config import CFG, Config
from .detection import BoundingBox, Detection, FaceDetector
from .shapes import GuideShape, GuideShapeState, bounding_rect, to_frame_pixels

logger = logging.getLogger(__name__)


def is_aligned(box: BoundingBox, shape: GuideShape) -> bool:
    """True iff the box lies fully inside the shape's bounding rectangle. Edges may touch."""
    left, top, right, bottom = bounding_rect(shape)
    return (
        box.x >= left and
        box.y >= top and
        box.x + box.width <= right and
        box.y + box.height <= bottom
    )


class AlignmentEngine:
    """
    Polls the detector every `poll_interval` seconds and publishes whether the
    face sits inside the guide shape.

    The worker waits the full interval after a cycle finishes before starting
    the next, so detections never overlap. `stop()` joins the worker.
    """

    def __init__(self, source: FrameSource, detector: FaceDetector, shapes: GuideShapeState,
                 cfg: Config = CFG, display_size: Optional[Tuple[int, int]] = None):
        self.source = source
        self.detector = detector
        self.shapes = shapes
        self.cfg = cfg
        self.interval = cfg.poll_interval
        self._display_size = display_size
        self._lock = threading.Lock()
        self._aligned = False
        self._detection: Optional[Detection] = None
        self._listeners: List[Callable[[bool], None]] = []
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    # --- published state ---

    @property
    def aligned(self) -> bool:
        with self._lock:
            return self._aligned

    @property
    def last_detection(self) -> Optional[Detection]:
        with self._lock:
            return self._detection

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def add_listener(self, fn: Callable[[bool], None]):
        self._listeners.append(fn)

    def set_display_size(self, width: int, height: int):
        with self._lock:
            self._display_size = (int(width), int(height))

    def _publish(self, aligned: bool, detection: Optional[Detection]):
        with self._lock:
            changed = aligned != self._aligned
            self._aligned = aligned
            self._detection = detection
        if changed:
            logger.debug("Alignment changed: %s", aligned)
        for fn in list(self._listeners):
            try:
                fn(aligned)
            except Exception:
                logger.exception("Alignment listener failed")

    # --- one cycle ---

    def preconditions_met(self) -> bool:
        return not self._closed and self.source.is_running and self.detector.models_loaded

    def run_cycle(self) -> bool:
        """
        Run one detect -> compare -> publish cycle.

        Returns False when a precondition failed; the caller must stop polling.
        """
        if not self.preconditions_met():
            self._publish(False, None)
            return False

        frame = self.source.read()
        if frame is None:
            self._publish(False, None)
            return True

        detection = self.detector.detect(frame)
        if detection is None:
            self._publish(False, None)
            return True

        # read the shape now, not before the (slow) detection call
        shape = self.shapes.shape
        h, w = frame.shape[:2]
        with self._lock:
            display_size = self._display_size or (w, h)
        frame_shape = to_frame_pixels(shape, display_size, (w, h), fit=self.cfg.display_fit)
        self._publish(is_aligned(detection.box, frame_shape), detection)
        return True

    # --- periodic task ---

    def start(self):
        if self._closed:
            raise RuntimeError("AlignmentEngine is closed")
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._loop, name="alignment-poll", daemon=True)
        self._thread.start()
        logger.info("Alignment polling started (every %.0f ms)", self.interval * 1000)

    def _loop(self):
        stop = self._stop
        while not stop.wait(self.interval):
            try:
                keep_going = self.run_cycle()
            except Exception:
                # a bad cycle must not end polling
                logger.exception("Alignment cycle failed")
                self._publish(False, None)
                continue
            if not keep_going:
                logger.info("Alignment polling cancelled: camera off or models not loaded")
                break

    def stop(self):
        """Cancel polling. No detection runs after this returns."""
        thread = self._thread
        self._stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._thread = None
        self._publish(False, None)

    def close(self):
        self._closed = True
        self.stop()
