import logging
import threading
from enum import Enum
from typing import Callable, Optional, Tuple

import cv2
import numpy as np

from .config import CFG, Config
from .errors import AcquisitionError

logger = logging.getLogger(__name__)


class Facing(str, Enum):
    FRONT = "front"
    BACK = "back"

    def opposite(self) -> "Facing":
        return Facing.BACK if self is Facing.FRONT else Facing.FRONT


class FrameSource:
    """
    Owns the single live camera stream.

    A grabber thread keeps only the latest frame; consumers (display, detector,
    capture) read copies through `read()` and never touch the stream itself.
    """

    def __init__(self, facing: Facing = Facing.FRONT, cfg: Config = CFG,
                 capture_factory: Callable = cv2.VideoCapture):
        self.cfg = cfg
        self.facing = Facing(facing)
        self._capture_factory = capture_factory
        self._cap = None
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._lock = threading.Lock()  # guards _cap lifecycle
        self._frame_lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None

    @property
    def is_running(self) -> bool:
        return self._cap is not None

    def _index_for(self, facing: Facing) -> int:
        if facing is Facing.FRONT:
            return self.cfg.front_camera_index
        return self.cfg.back_camera_index

    def start(self, facing: Optional[Facing] = None, width: int = 0, height: int = 0):
        """Acquire a stream for `facing`; width/height are resolution hints only."""
        with self._lock:
            if self._cap is not None:
                self._release_locked()
            if facing is not None:
                self.facing = Facing(facing)

            index = self._index_for(self.facing)
            try:
                cap = self._capture_factory(index)
            except Exception as e:
                logger.error("Error accessing the camera (%s, index %d): %s", self.facing.value, index, e)
                raise AcquisitionError(f"Cannot open camera {index}: {e}") from e

            if cap is None or not cap.isOpened():
                if cap is not None:
                    cap.release()
                logger.error("Error accessing the camera: no %s camera at index %d", self.facing.value, index)
                raise AcquisitionError(f"Cannot open {self.facing.value} camera at index {index}")

            if width > 0: cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
            if height > 0: cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
            cap.set(cv2.CAP_PROP_FPS, self.cfg.camera_fps)

            self._cap = cap
            self._stop.clear()
            self._thread = threading.Thread(target=self._grab_loop, args=(cap,),
                                            name="frame-grabber", daemon=True)
            self._thread.start()
            logger.info("Camera setup successfully (%s, index %d)", self.facing.value, index)

    def stop(self):
        """Release the stream. Safe to call repeatedly."""
        with self._lock:
            self._release_locked()

    def _release_locked(self):
        cap, thread = self._cap, self._thread
        if cap is None:
            return
        self._stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        cap.release()
        self._cap = None
        self._thread = None
        with self._frame_lock:
            self._frame = None
        logger.info("Camera stopped (%s)", self.facing.value)

    def switch_facing(self, width: int = 0, height: int = 0):
        """
        Restart the stream with the opposite facing mode.

        On failure the source stays stopped and the AcquisitionError propagates;
        the previous stream is not restored.
        """
        self.stop()
        self.facing = self.facing.opposite()
        self.start(width=width, height=height)

    def _grab_loop(self, cap):
        while not self._stop.is_set():
            ok, frame = cap.read()
            if not ok or frame is None:
                logger.warning("Camera read failed, retrying")
                if self._stop.wait(0.05):
                    break
                continue
            with self._frame_lock:
                self._frame = frame

    def read(self) -> Optional[np.ndarray]:
        """Latest frame (BGR copy), or None if nothing has arrived yet."""
        with self._frame_lock:
            if self._frame is None:
                return None
            return self._frame.copy()

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        with self._frame_lock:
            if self._frame is None:
                return None
            h, w = self._frame.shape[:2]
            return w, h

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.stop()
