# pipeline/rotation.py
from __future__ import annotations

from typing import Optional
import logging
import math

import cv2
import numpy as np


log = logging.getLogger(__name__)

# Rotation r means the surface is turned r degrees clockwise on screen.
_FORWARD = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}
_INVERSE = {
    90: cv2.ROTATE_90_COUNTERCLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_CLOCKWISE,
}


def rotate_forward(image: np.ndarray, rotation: int) -> np.ndarray:
    if rotation == 0:
        return image.copy()
    return cv2.rotate(image, _FORWARD[rotation])


def rotate_inverse(image: np.ndarray, rotation: int) -> np.ndarray:
    if rotation == 0:
        return image.copy()
    return cv2.rotate(image, _INVERSE[rotation])


def rotate_point_forward(
    pt: tuple[float, float], size: tuple[int, int], rotation: int
) -> tuple[float, float]:
    """Map a pixel coordinate of a (width, height) image through rotate_forward."""
    x, y = pt
    w, h = size
    if rotation == 90:
        return (h - 1 - y, x)
    if rotation == 180:
        return (w - 1 - x, h - 1 - y)
    if rotation == 270:
        return (y, w - 1 - x)
    return (x, y)


def raw_rotation(corners: np.ndarray) -> int:
    """
    Orientation of a single marker from where its first corner sits relative
    to its center. An upright marker has corner 0 at the top-left, i.e. in the
    [180, 270) quadrant of image-space atan2 (y points down).
    """
    pts = np.asarray(corners, dtype=np.float64).reshape(-1, 2)
    center = pts.mean(axis=0)
    dx, dy = pts[0] - center
    angle = math.degrees(math.atan2(dy, dx)) % 360.0

    if 180.0 <= angle < 270.0:
        return 0
    if angle >= 270.0:
        return 90
    if angle < 90.0:
        return 180
    return 270


class RotationEstimator:
    """
    Debounced rotation state. A new rotation is committed only after
    `hysteresis` consecutive frames agree on it.
    """

    def __init__(self, hysteresis: int = 6):
        self.hysteresis = hysteresis
        self.rotation = 0
        self.candidate: Optional[int] = None
        self.votes = 0

    def update(self, corners: Optional[np.ndarray]) -> int:
        if corners is None:
            return self.rotation

        raw = raw_rotation(corners)
        if raw == self.rotation:
            self.candidate = None
            self.votes = 0
            return self.rotation

        if raw != self.candidate:
            # a different estimate starts a new streak
            self.candidate = raw
            self.votes = 1
        else:
            self.votes += 1

        if self.votes >= self.hysteresis:
            log.info(f"Rotation changed: {self.rotation} -> {raw}")
            self.rotation = raw
            self.candidate = None
            self.votes = 0
        return self.rotation

    def reset(self) -> None:
        """Drop any pending streak; the committed rotation stays."""
        self.candidate = None
        self.votes = 0
