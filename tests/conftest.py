"""Shared fixtures: synthetic reference layouts and painted frames."""
import numpy as np
import cv2
import pytest

from mosaic_detection.config import MosaicConfig
from mosaic_detection.pipeline.layout import layout_from_image

SIZE = 300

RED = (0, 0, 255)
GREEN = (0, 255, 0)
BLUE = (255, 0, 0)
WHITE = (255, 255, 255)


def grid_reference(size: int = SIZE) -> np.ndarray:
    """3x3 grid outline on white."""
    img = np.full((size, size, 3), 255, dtype=np.uint8)
    cv2.rectangle(img, (1, 1), (size - 2, size - 2), (0, 0, 0), 3)
    for k in (size // 3, 2 * size // 3):
        cv2.line(img, (k, 0), (k, size - 1), (0, 0, 0), 3)
        cv2.line(img, (0, k), (size - 1, k), (0, 0, 0), 3)
    return img


def stripes_reference(size: int = SIZE) -> np.ndarray:
    """Six vertical strips on white."""
    img = np.full((size, size, 3), 255, dtype=np.uint8)
    cv2.rectangle(img, (1, 1), (size - 2, size - 2), (0, 0, 0), 3)
    for k in range(size // 6, size, size // 6):
        cv2.line(img, (k, 0), (k, size - 1), (0, 0, 0), 3)
    return img


def paint(layout, fills=None) -> np.ndarray:
    """Render a frame of `layout` with {patch_id: bgr} fills and black outline."""
    w, h = layout.size
    frame = np.full((h, w, 3), 255, dtype=np.uint8)
    for pid, color in (fills or {}).items():
        poly = layout.patches[pid].polygon.reshape(-1, 1, 2)
        cv2.fillPoly(frame, [poly], color)
    frame[layout.line_mask > 0] = (0, 0, 0)
    return frame


def patch_near(layout, x: float, y: float) -> int:
    """Id of the patch whose centroid is closest to (x, y)."""
    def d(p):
        cx, cy = p.centroid
        return (cx - x) ** 2 + (cy - y) ** 2
    return min(layout.patches, key=d).patch_id


def marker_corners(rotation: int) -> np.ndarray:
    """Corners of a square marker turned `rotation` degrees clockwise."""
    upright = [(0, 0), (10, 0), (10, 10), (0, 10)]
    shift = rotation // 90
    return np.array(upright[shift:] + upright[:shift], dtype=np.float32)


@pytest.fixture
def cfg():
    return MosaicConfig()


@pytest.fixture
def grid_layout(cfg):
    return layout_from_image(grid_reference(), "Grid", cfg)


@pytest.fixture
def stripes_layout(cfg):
    return layout_from_image(stripes_reference(), "Stripes", cfg)
