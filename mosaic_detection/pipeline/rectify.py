# pipeline/rectify.py
from __future__ import annotations

from typing import List, Optional
import logging

import cv2
import numpy as np

from .models import RectifiedView

log = logging.getLogger(__name__)


def marker_center(corners: np.ndarray) -> np.ndarray:
    return corners.reshape(-1, 2).mean(axis=0)


def order_markers(markers: List[np.ndarray]) -> tuple[int, int, int, int]:
    """Indices of the (top-left, top-right, bottom-right, bottom-left) markers."""
    centers = [marker_center(m) for m in markers]
    by_y = sorted(range(4), key=lambda i: centers[i][1])

    top = sorted(by_y[:2], key=lambda i: centers[i][0])
    bottom = sorted(by_y[2:], key=lambda i: centers[i][0])
    return top[0], top[1], bottom[1], bottom[0]


def inner_corners(markers: List[np.ndarray]) -> tuple[np.ndarray, int]:
    """
    Corner of each marker closest to the mosaic, ordered TL, TR, BR, BL.
    Also returns the index of the top-left marker.
    """
    tl, tr, br, bl = order_markers(markers)
    pts = [m.reshape(-1, 2) for m in markers]

    tl_pt = max(pts[tl], key=lambda p: p[0] + p[1])
    tr_pt = max(pts[tr], key=lambda p: p[1] - p[0])
    br_pt = min(pts[br], key=lambda p: p[0] + p[1])
    bl_pt = max(pts[bl], key=lambda p: p[0] - p[1])

    return np.array([tl_pt, tr_pt, br_pt, bl_pt], dtype=np.float32), tl


class MarkerRectifier:
    """
    Four aruco markers sharing one id frame the surface; their inner corners
    are warped onto an upright (width, height) canvas.
    """

    def __init__(
        self,
        marker_id: int,
        output_size: tuple[int, int],
        dictionary: str = "DICT_5X5_250",
    ):
        self.marker_id = marker_id
        self.output_size = output_size

        aruco_dict = cv2.aruco.getPredefinedDictionary(getattr(cv2.aruco, dictionary))
        params = cv2.aruco.DetectorParameters()
        params.cornerRefinementMethod = cv2.aruco.CORNER_REFINE_SUBPIX
        self.detector = cv2.aruco.ArucoDetector(aruco_dict, params)

        log.info(f"MarkerRectifier initialized (id={marker_id}, {dictionary}, out={output_size}).")

    def detect_targets(self, image_bgr: np.ndarray) -> List[np.ndarray]:
        corners, ids, _ = self.detector.detectMarkers(image_bgr)
        if ids is None:
            return []
        return [
            c.reshape(4, 2).astype(np.float32)
            for c, i in zip(corners, ids.flatten())
            if int(i) == self.marker_id
        ]

    def rectify_markers(self, image_bgr: np.ndarray, markers: List[np.ndarray]) -> Optional[RectifiedView]:
        if len(markers) != 4:
            return None

        w, h = self.output_size
        src, tl = inner_corners(markers)
        dst = np.array([[0, 0], [w - 1, 0], [w - 1, h - 1], [0, h - 1]], dtype=np.float32)

        M = cv2.getPerspectiveTransform(src, dst)
        warped = cv2.warpPerspective(
            image_bgr, M, (w, h),
            flags=cv2.INTER_LINEAR,
            borderMode=cv2.BORDER_CONSTANT,
            borderValue=(255, 255, 255),
        )

        # orientation reference for rotation estimation, in warped coordinates
        ref = cv2.perspectiveTransform(markers[tl].reshape(-1, 1, 2), M).reshape(4, 2)
        return RectifiedView(image=warped, reference_corners=ref)

    def rectify(self, image_bgr: np.ndarray) -> Optional[RectifiedView]:
        return self.rectify_markers(image_bgr, self.detect_targets(image_bgr))
