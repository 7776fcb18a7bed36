from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Tuple

from .config import CFG, Config


class ShapeKind(str, Enum):
    CIRCLE = "circle"
    RECT = "rect"
    ELLIPSE = "ellipse"

    def next(self) -> "ShapeKind":
        order = list(ShapeKind)
        return order[(order.index(self) + 1) % len(order)]


@dataclass(frozen=True)
class GuideShape:
    """
    Guide geometry in display coordinates.

    `radius` is the half-extent of circle and rect; ellipse uses
    `radius_x`/`radius_y`.
    """

    kind: ShapeKind
    cx: float
    cy: float
    radius: float
    radius_x: float
    radius_y: float

    @property
    def center(self) -> Tuple[float, float]:
        return self.cx, self.cy

    @property
    def half_extents(self) -> Tuple[float, float]:
        if self.kind is ShapeKind.ELLIPSE:
            return self.radius_x, self.radius_y
        return self.radius, self.radius

    def as_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "center": {"x": self.cx, "y": self.cy},
            "radius": self.radius,
            "radiusX": self.radius_x,
            "radiusY": self.radius_y,
        }


def bounding_rect(shape: GuideShape) -> Tuple[float, float, float, float]:
    """(left, top, right, bottom) of the shape."""
    hx, hy = shape.half_extents
    return shape.cx - hx, shape.cy - hy, shape.cx + hx, shape.cy + hy


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def to_frame_pixels(shape: GuideShape, display_size: Tuple[int, int],
                    frame_size: Tuple[int, int], fit: str = "cover") -> GuideShape:
    """
    Map a display-space shape onto the raw frame.

    The frame is drawn into the display with a uniform scale and centered:
    `cover` fills the display and crops the overflow, `contain` letterboxes.
    """
    dw, dh = display_size
    fw, fh = frame_size
    if dw <= 0 or dh <= 0 or fw <= 0 or fh <= 0:
        raise ValueError(f"sizes must be positive, got display={display_size} frame={frame_size}")
    if (dw, dh) == (fw, fh):
        return shape

    sx, sy = dw / fw, dh / fh
    if fit == "cover":
        scale = max(sx, sy)
    elif fit == "contain":
        scale = min(sx, sy)
    else:
        raise ValueError(f"unknown fit mode: {fit}")

    # offset of the displayed frame's origin relative to the display origin
    ox = (dw - fw * scale) / 2.0
    oy = (dh - fh * scale) / 2.0
    return replace(
        shape,
        cx=(shape.cx - ox) / scale,
        cy=(shape.cy - oy) / scale,
        radius=shape.radius / scale,
        radius_x=shape.radius_x / scale,
        radius_y=shape.radius_y / scale,
    )


class GuideShapeState:
    """Authoritative, lock-guarded guide shape. Readers get immutable snapshots."""

    def __init__(self, cfg: Config = CFG, kind: ShapeKind = ShapeKind.CIRCLE,
                 center: Tuple[float, float] = (0.0, 0.0)):
        self.cfg = cfg
        self._lock = threading.Lock()
        kind = ShapeKind(kind)
        r, rx, ry = self._preset(kind)
        self._shape = GuideShape(kind, float(center[0]), float(center[1]), r, rx, ry)
        self.moved = False

    def _preset(self, kind: ShapeKind):
        r, rx, ry = self.cfg.shape_presets[kind.value]
        return float(r), float(rx), float(ry)

    @property
    def shape(self) -> GuideShape:
        with self._lock:
            return self._shape

    @property
    def kind(self) -> ShapeKind:
        return self.shape.kind

    def cycle(self) -> GuideShape:
        """circle -> rect -> ellipse -> circle; size resets to the kind's preset."""
        with self._lock:
            kind = self._shape.kind.next()
            r, rx, ry = self._preset(kind)
            self._shape = replace(self._shape, kind=kind, radius=r, radius_x=rx, radius_y=ry)
            return self._shape

    def size_for(self, viewport_width: float) -> float:
        return clamp(viewport_width * self.cfg.resize_factor, self.cfg.min_size, self.cfg.max_size)

    def resize(self, viewport_width: float) -> GuideShape:
        size = self.size_for(viewport_width)
        radius_y = clamp(size * self.cfg.ellipse_aspect, self.cfg.min_size, self.cfg.max_size)
        with self._lock:
            self._shape = replace(self._shape, radius=size, radius_x=size, radius_y=radius_y)
            return self._shape

    def move_to(self, x: float, y: float) -> GuideShape:
        with self._lock:
            self._shape = replace(self._shape, cx=float(x), cy=float(y))
            self.moved = True
            return self._shape

    def center_in(self, width: float, height: float) -> GuideShape:
        with self._lock:
            self._shape = replace(self._shape, cx=width / 2.0, cy=height / 2.0)
            return self._shape
