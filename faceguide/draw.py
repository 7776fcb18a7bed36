import cv2

from .shapes import GuideShape, ShapeKind

FONT = cv2.FONT_HERSHEY_SIMPLEX

ALIGNED_COLOR = (0, 200, 0)
UNALIGNED_COLOR = (0, 0, 255)


def draw_guide(img, shape: GuideShape, aligned: bool, thickness: int = 5):
    """Outline the guide shape: green once the face is inside, red otherwise."""
    color = ALIGNED_COLOR if aligned else UNALIGNED_COLOR
    center = (int(round(shape.cx)), int(round(shape.cy)))
    if shape.kind is ShapeKind.CIRCLE:
        cv2.circle(img, center, int(round(shape.radius)), color, thickness)
    elif shape.kind is ShapeKind.RECT:
        r = int(round(shape.radius))
        cv2.rectangle(img, (center[0] - r, center[1] - r), (center[0] + r, center[1] + r), color, thickness)
    else:
        axes = (int(round(shape.radius_x)), int(round(shape.radius_y)))
        cv2.ellipse(img, center, axes, 0, 0, 360, color, thickness)


def draw_bbox(img, box, color=(0, 0, 255)):
    x1, y1 = int(box.x), int(box.y)
    x2, y2 = int(box.x + box.width), int(box.y + box.height)
    cv2.rectangle(img, (x1, y1), (x2, y2), color, 2)


def draw_hint(img, text, color=(255, 255, 255)):
    (tw, th), _ = cv2.getTextSize(text, FONT, 0.7, 2)
    h, w = img.shape[:2]
    cv2.putText(img, text, ((w - tw) // 2, h - 20), FONT, 0.7, color, 2, cv2.LINE_AA)


def draw_fps(img, fps):
    cv2.putText(img, f"FPS: {fps:.1f}", (10, 30), FONT, 0.8, (255, 255, 255), 2, cv2.LINE_AA)
