from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .config import CFG, Config
from .errors import DetectionCycleError, ModelLoadError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoundingBox:
    """Face box in frame pixels, top-left corner plus size."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    @classmethod
    def from_corners(cls, x1, y1, x2, y2) -> "BoundingBox":
        return cls(float(x1), float(y1), float(x2) - float(x1), float(y2) - float(y1))


@dataclass(frozen=True)
class Detection:
    box: BoundingBox
    score: float = 1.0


def _default_providers():
    import onnxruntime as ort

    avail = set(ort.get_available_providers())
    order = ['CoreMLExecutionProvider', 'CUDAExecutionProvider', 'CPUExecutionProvider']
    return [p for p in order if p in avail]


def _insightface_factory(cfg: Config, providers):
    from insightface.app import FaceAnalysis

    app = FaceAnalysis(name=cfg.bundle, root=str(cfg.model_home),
                       allowed_modules=list(cfg.model_modules), providers=providers)
    app.prepare(ctx_id=0, det_size=(cfg.det_size, cfg.det_size), det_thresh=cfg.det_thresh)
    return app


class FaceDetector:
    """
    Best-effort face detector around an InsightFace `FaceAnalysis` bundle.

    `detect()` never raises: a failing cycle is logged and reported as "no face".
    Calls made before the models are loaded, or while another call is still
    running, are skipped rather than queued.
    """

    def __init__(self, cfg: Config = CFG, providers=None,
                 analysis_factory: Optional[Callable] = None):
        self.cfg = cfg
        self.providers = providers
        self._factory = analysis_factory or _insightface_factory
        self.app = None
        self._loaded = threading.Event()
        self._load_failed = False
        self._busy = threading.Lock()

    @property
    def models_loaded(self) -> bool:
        return self._loaded.is_set()

    def load_models(self):
        if self._loaded.is_set():
            return
        if self._load_failed:
            raise ModelLoadError("Model loading already failed for this session")

        logger.info("Loading face models (%s) from %s", self.cfg.bundle, self.cfg.model_home)
        try:
            providers = self.providers or _default_providers()
            self.app = self._factory(self.cfg, providers)
        except Exception as e:
            self._load_failed = True
            self.app = None
            logger.error("Error loading models: %s", e)
            raise ModelLoadError(f"Failed to load {self.cfg.bundle}: {e}") from e

        self._loaded.set()
        logger.info("Models loaded successfully")

    def load_models_async(self, on_done: Optional[Callable[[bool], None]] = None) -> threading.Thread:
        """Load in a background thread; `on_done(ok)` runs on that thread."""
        def _run():
            ok = True
            try:
                self.load_models()
            except ModelLoadError:
                ok = False
            if on_done is not None:
                on_done(ok)

        t = threading.Thread(target=_run, name="model-loader", daemon=True)
        t.start()
        return t

    def wait_loaded(self, timeout: Optional[float] = None) -> bool:
        return self._loaded.wait(timeout)

    def detect(self, img_bgr: np.ndarray, min_face: Optional[int] = None) -> Optional[Detection]:
        if not self._loaded.is_set():
            logger.debug("Detection skipped: models not loaded")
            return None
        if not self._busy.acquire(blocking=False):
            logger.debug("Detection skipped: previous call still running")
            return None
        try:
            return self._largest_face(img_bgr, self.cfg.min_face if min_face is None else min_face)
        except DetectionCycleError as e:
            logger.warning("Error during face detection: %s", e)
            return None
        finally:
            self._busy.release()

    def _largest_face(self, img_bgr, min_face: int) -> Optional[Detection]:
        app = self.app
        if app is None:
            return None
        try:
            faces = app.get(img_bgr)
            best = None
            max_area = 0.0
            for f in faces:
                box = BoundingBox.from_corners(*np.asarray(f.bbox, dtype=float)[:4])
                if min_face and (box.width < min_face or box.height < min_face):
                    continue
                if box.area > max_area:
                    max_area = box.area
                    best = Detection(box=box, score=float(getattr(f, 'det_score', 1.0)))
        except Exception as e:
            raise DetectionCycleError(str(e)) from e
        return best

    def dispose(self):
        """Drop the model sessions. Only meaningful once loading has completed."""
        if not self._loaded.is_set():
            logger.debug("dispose() ignored: models not loaded")
            return
        # wait for an in-flight detect() before the sessions go away
        with self._busy:
            self.app = None
            self._loaded.clear()
        logger.info("Face models released")
