from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Tuple

from .errors import ConfigurationError


@dataclass
class Config:
    # Model bundle from InsightFace (detector: SCRFD, landmarks: 2d106, descriptor: ArcFace)
    bundle: str = "buffalo_l"
    model_home: Path = Path(".")  # models are read from <model_home>/models/<bundle>
    model_modules: Tuple[str, ...] = ("detection", "landmark_2d_106", "recognition")

    # Detection
    det_size: int = 640
    det_thresh: float = 0.5
    min_face: int = 0  # ignore faces smaller than this (pixels), 0 keeps all
    poll_interval: float = 0.5  # seconds between alignment checks

    # Camera
    front_camera_index: int = 0
    back_camera_index: int = 1
    camera_fps: int = 30

    # Guide shape presets: kind -> (radius, radius_x, radius_y)
    shape_presets: Dict[str, Tuple[float, float, float]] = field(default_factory=lambda: {
        "circle": (200.0, 200.0, 250.0),
        "rect": (175.0, 175.0, 225.0),
        "ellipse": (175.0, 175.0, 225.0),
    })
    min_size: float = 50.0
    max_size: float = 300.0
    resize_factor: float = 0.1  # size = viewport_width * resize_factor
    ellipse_aspect: float = 1.25  # radius_y / radius_x

    # Capture
    capture_format: str = ".png"
    display_fit: str = "cover"  # how the frame fills the viewport: cover | contain

    # Drawing / UI
    draw_fps: bool = True
    border_thickness: int = 5

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ConfigurationError("poll_interval must be > 0")
        if not 0 < self.min_size <= self.max_size:
            raise ConfigurationError("min_size must be > 0 and <= max_size")
        if self.ellipse_aspect < 1.0:
            raise ConfigurationError("ellipse_aspect must be >= 1")
        if self.display_fit not in ("cover", "contain"):
            raise ConfigurationError(f"display_fit must be 'cover' or 'contain', got {self.display_fit!r}")
        for kind, sizes in self.shape_presets.items():
            if any(not self.min_size <= s <= self.max_size for s in sizes):
                raise ConfigurationError(f"preset for {kind} outside [{self.min_size}, {self.max_size}]")


CFG = Config()
