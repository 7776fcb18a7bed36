from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from .alignment import AlignmentEngine
from .camera import Facing, FrameSource
from .compositor import CapturedImage, CaptureCompositor
from .config import CFG, Config
from .detection import FaceDetector
from .errors import AcquisitionError, CaptureError
from .shapes import GuideShape, GuideShapeState

logger = logging.getLogger(__name__)


class Viewfinder:
    """
    Camera on/off, facing, guide shape and alignment in one explicit state
    object. Presentation code holds a reference to it instead of globals.
    """

    def __init__(self, cfg: Config = CFG, display_size: Tuple[int, int] = (1280, 720),
                 facing: Facing = Facing.FRONT, source: Optional[FrameSource] = None,
                 detector: Optional[FaceDetector] = None):
        self.cfg = cfg
        self.display_size = (int(display_size[0]), int(display_size[1]))
        self.source = source or FrameSource(facing=facing, cfg=cfg)
        self.detector = detector or FaceDetector(cfg=cfg)
        self.shapes = GuideShapeState(cfg=cfg, center=(self.display_size[0] / 2, self.display_size[1] / 2))
        self.engine = AlignmentEngine(self.source, self.detector, self.shapes, cfg=cfg,
                                      display_size=self.display_size)
        self.compositor = CaptureCompositor(cfg=cfg)
        self.camera_on = False
        self.last_error: Optional[str] = None  # camera
        self.model_error: Optional[str] = None
        self._lock = threading.RLock()
        self._closed = False

    # --- lifecycle ---

    def open(self, camera_on: bool = True, wait_models: bool = False):
        """Start loading models in the background and (optionally) turn the camera on."""
        loader = self.detector.load_models_async(on_done=self._on_models_loaded)
        if camera_on:
            try:
                self.set_camera(True)
            except AcquisitionError:
                # camera stays off; shape controls keep working
                pass
        if wait_models:
            loader.join()
        return self

    def _on_models_loaded(self, ok: bool):
        if not ok:
            self.model_error = "Face models failed to load; alignment disabled"
            return
        with self._lock:
            if self._closed:
                # closed while loading
                self.detector.dispose()
            elif self.camera_on:
                self.engine.start()

    def close(self):
        """Cancel polling, release the stream and the models, together."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            try:
                self.engine.close()
            finally:
                try:
                    self.source.stop()
                finally:
                    self.camera_on = False
                    self.detector.dispose()
        logger.info("Viewfinder closed")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # --- camera ---

    def set_camera(self, on: bool):
        with self._lock:
            if on == self.camera_on and on == self.source.is_running:
                return
            if not on:
                self.engine.stop()
                self.source.stop()
                self.camera_on = False
                return
            try:
                self.source.start(width=self.display_size[0], height=self.display_size[1])
            except AcquisitionError as e:
                self.camera_on = False
                self.last_error = str(e)
                raise
            self.camera_on = True
            self.last_error = None
            if self.detector.models_loaded:
                self.engine.start()

    def toggle_camera(self) -> bool:
        self.set_camera(not self.camera_on)
        return self.camera_on

    def flip_camera(self) -> Facing:
        """Switch facing. On failure the camera is left off and the error propagates."""
        with self._lock:
            self.engine.stop()
            try:
                self.source.switch_facing(width=self.display_size[0], height=self.display_size[1])
            except AcquisitionError as e:
                self.camera_on = False
                self.last_error = str(e)
                raise
            self.camera_on = True
            self.last_error = None
            if self.detector.models_loaded:
                self.engine.start()
            return self.source.facing

    # --- guide shape ---

    def cycle_shape(self) -> GuideShape:
        return self.shapes.cycle()

    def move_shape(self, x: float, y: float) -> GuideShape:
        return self.shapes.move_to(x, y)

    def resize_viewport(self, width: int, height: int) -> GuideShape:
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")
        self.display_size = (width, height)
        self.engine.set_display_size(width, height)
        if not self.shapes.moved:
            self.shapes.center_in(width, height)
        return self.shapes.resize(width)

    # --- outputs ---

    @property
    def aligned(self) -> bool:
        return self.engine.aligned

    def capture(self) -> CapturedImage:
        frame = self.source.read()
        if frame is None:
            raise CaptureError("Camera is off or has not delivered a frame yet")
        return self.compositor.capture(frame, self.shapes.shape, display_size=self.display_size)

    def status(self) -> dict:
        det = self.engine.last_detection
        return {
            "camera_on": self.camera_on,
            "facing": self.source.facing.value,
            "models_loaded": self.detector.models_loaded,
            "aligned": self.engine.aligned,
            "shape": self.shapes.shape.as_dict(),
            "display": {"width": self.display_size[0], "height": self.display_size[1]},
            "detection": None if det is None else {
                "x": det.box.x, "y": det.box.y, "width": det.box.width, "height": det.box.height,
                "score": det.score,
            },
            "error": self.last_error,
            "model_error": self.model_error,
        }
