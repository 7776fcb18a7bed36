import argparse
import logging
import time
from pathlib import Path

import cv2
import numpy as np

from .camera import Facing
from .config import CFG
from .draw import draw_bbox, draw_fps, draw_guide, draw_hint
from .errors import AcquisitionError, CaptureError
from .shapes import to_frame_pixels
from .utils import FPS, setup_logging
from .viewfinder import Viewfinder

logger = logging.getLogger(__name__)

WINDOW = "Face Guide"
KEYS_HELP = "c: capture  s: shape  o: camera on/off  f: flip  click: move guide  q: quit"


def build_args():
    ap = argparse.ArgumentParser(description="Live viewfinder that checks the face sits inside a guide shape")
    ap.add_argument('--facing', choices=[f.value for f in Facing], default=Facing.FRONT.value)
    ap.add_argument('--width', type=int, default=1280, help='requested camera width (hint)')
    ap.add_argument('--height', type=int, default=720, help='requested camera height (hint)')
    ap.add_argument('--output', type=Path, default=None, help='folder to write captures into')
    ap.add_argument('--draw-fps', type=int, default=int(CFG.draw_fps))
    ap.add_argument('--log-level', default='INFO')
    return ap.parse_args()


def save_capture(image, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / f"capture_{time.strftime('%Y%m%d_%H%M%S')}{CFG.capture_format}"
    path.write_bytes(image.data)
    return path


def handle_key(vf: Viewfinder, key: int, out_dir=None) -> bool:
    """Apply one key press. Returns False when the user asked to quit."""
    if key in (ord('q'), ord('Q'), 27):
        return False
    try:
        if key == ord('c'):
            image = vf.capture()
            if out_dir is not None:
                logger.info("Captured photo: %s", save_capture(image, out_dir))
            else:
                logger.info("Captured photo: %dx%d, %d bytes", image.width, image.height, len(image.data))
        elif key == ord('s'):
            vf.cycle_shape()
        elif key == ord('o'):
            vf.toggle_camera()
        elif key == ord('f'):
            vf.flip_camera()
    except (AcquisitionError, CaptureError) as e:
        logger.error("%s", e)
    return True


def render(vf: Viewfinder, frame, fps=None):
    if frame is None:
        w, h = vf.display_size
        img = np.zeros((h, w, 3), dtype=np.uint8)
        draw_hint(img, "Camera off" if not vf.camera_on else "Waiting for camera...")
        return img

    img = frame.copy()
    det = vf.engine.last_detection
    if det is not None:
        draw_bbox(img, det.box)
    # guide lives in display coordinates; the overlay is in frame pixels
    h, w = img.shape[:2]
    shape = to_frame_pixels(vf.shapes.shape, vf.display_size, (w, h), fit=vf.cfg.display_fit)
    draw_guide(img, shape, vf.aligned, vf.cfg.border_thickness)
    if not vf.detector.models_loaded:
        draw_hint(img, "Loading face models...")
    if fps is not None:
        draw_fps(img, fps)
    return img


def main():
    args = build_args()
    setup_logging(args.log_level)

    vf = Viewfinder(display_size=(args.width, args.height), facing=Facing(args.facing))
    vf.open()

    def on_mouse(event, x, y, flags, param):
        if event == cv2.EVENT_LBUTTONDOWN:
            vf.move_shape(x, y)

    cv2.namedWindow(WINDOW)
    cv2.setMouseCallback(WINDOW, on_mouse)
    logger.info(KEYS_HELP)

    fps = FPS()
    try:
        while True:
            frame = vf.source.read()
            if frame is not None:
                h, w = frame.shape[:2]
                # the window shows the frame 1:1, so the viewport is the frame
                if vf.display_size != (w, h):
                    vf.resize_viewport(w, h)

            img = render(vf, frame, fps.tick() if args.draw_fps else None)
            cv2.imshow(WINDOW, img)
            key = cv2.waitKey(15) & 0xFF
            if key != 0xFF and not handle_key(vf, key, args.output):
                break
    finally:
        vf.close()
        cv2.destroyAllWindows()


if __name__ == '__main__':
    main()
