import logging
import time

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str = "INFO"):
    """Console logging in the `[LEVEL] message` style used by the scripts."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    # onnxruntime / insightface are chatty at INFO
    logging.getLogger("insightface").setLevel(logging.WARNING)


class FPS:
    """Frame rate averaged over the last `window` ticks."""

    def __init__(self, window: int = 10):
        self.window = max(1, window)
        self.t0 = time.time()
        self.fps = 0.0
        self.n = 0

    def tick(self) -> float:
        self.n += 1
        if self.n % self.window == 0:
            t = time.time()
            dt = t - self.t0
            if dt > 0:
                self.fps = self.window / dt
            self.t0 = t
        return self.fps
