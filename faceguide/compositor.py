from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from .config import CFG, Config
from .errors import CaptureError
from .shapes import GuideShape, ShapeKind, bounding_rect, to_frame_pixels

logger = logging.getLogger(__name__)

_MEDIA_TYPES = {".png": "image/png", ".webp": "image/webp"}


@dataclass(frozen=True)
class CapturedImage:
    data: bytes
    width: int
    height: int
    media_type: str = "image/png"


def render_mask(shape: GuideShape, frame_size: Tuple[int, int]) -> np.ndarray:
    """
    Filled shape stencil (uint8, 255 inside) at frame resolution.

    `shape` must already be in frame pixels. Geometry outside the frame is
    clipped; a zero-area shape gives an empty mask.
    """
    w, h = frame_size
    mask = np.zeros((h, w), dtype=np.uint8)
    hx, hy = shape.half_extents
    if hx <= 0 or hy <= 0 or w <= 0 or h <= 0:
        return mask

    left, top, right, bottom = bounding_rect(shape)
    if right < 0 or bottom < 0 or left > w - 1 or top > h - 1:
        return mask

    center = (int(round(shape.cx)), int(round(shape.cy)))
    if shape.kind is ShapeKind.CIRCLE:
        cv2.circle(mask, center, int(round(hx)), 255, -1)
    elif shape.kind is ShapeKind.RECT:
        # corners are inclusive; clip to just outside the frame
        x0, y0 = max(-1, int(round(left))), max(-1, int(round(top)))
        x1, y1 = min(w, int(round(right))), min(h, int(round(bottom)))
        cv2.rectangle(mask, (x0, y0), (x1, y1), 255, -1)
    else:
        cv2.ellipse(mask, center, (int(round(hx)), int(round(hy))), 0, 0, 360, 255, -1)
    return mask


def composite(frame: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Keep the frame only where the stencil is set; everything else is transparent."""
    if frame.ndim == 2 or frame.shape[2] == 1:
        bgr = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    elif frame.shape[2] == 4:
        bgr = np.ascontiguousarray(frame[:, :, :3])
    else:
        bgr = frame
    kept = cv2.bitwise_and(bgr, bgr, mask=mask)
    bgra = cv2.cvtColor(kept, cv2.COLOR_BGR2BGRA)
    bgra[:, :, 3] = mask
    return bgra


class CaptureCompositor:
    """Produces a still of the raw frame masked to the guide shape."""

    def __init__(self, cfg: Config = CFG):
        self.cfg = cfg
        self.ext = cfg.capture_format if cfg.capture_format.startswith(".") else "." + cfg.capture_format
        if self.ext not in _MEDIA_TYPES:
            raise CaptureError(f"Capture format {self.ext} cannot carry transparency")

    def compose(self, frame: np.ndarray, shape: GuideShape,
                display_size: Optional[Tuple[int, int]] = None) -> np.ndarray:
        if frame is None or not isinstance(frame, np.ndarray) or frame.size == 0 or frame.ndim not in (2, 3):
            raise CaptureError("No camera frame available to capture")

        h, w = frame.shape[:2]
        if display_size is not None:
            shape = to_frame_pixels(shape, display_size, (w, h), fit=self.cfg.display_fit)
        return composite(frame, render_mask(shape, (w, h)))

    def capture(self, frame: np.ndarray, shape: GuideShape,
                display_size: Optional[Tuple[int, int]] = None) -> CapturedImage:
        bgra = self.compose(frame, shape, display_size)
        ok, buf = cv2.imencode(self.ext, bgra)
        if not ok:
            raise CaptureError(f"Failed to encode capture as {self.ext}")

        h, w = bgra.shape[:2]
        logger.info("Captured %dx%d %s still (%d bytes)", w, h, shape.kind.value, buf.size)
        return CapturedImage(data=buf.tobytes(), width=w, height=h, media_type=_MEDIA_TYPES[self.ext])
