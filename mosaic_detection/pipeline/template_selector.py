# pipeline/template_selector.py
from __future__ import annotations

from typing import List, Optional, Sequence
import logging

import cv2
import numpy as np

from mosaic_detection.config import MosaicConfig
from .models import TemplateLayout
from .utils import resize_mask

log = logging.getLogger(__name__)


def mask_iou(a: np.ndarray, b: np.ndarray) -> float:
    fa = a > 0
    fb = b > 0
    union = np.count_nonzero(fa | fb)
    if union == 0:
        return 0.0
    inter = np.count_nonzero(fa & fb)
    return float(inter / union)


def extract_frame_lines(frame_bgr: np.ndarray, cfg: MosaicConfig) -> np.ndarray:
    """
    Dark printed outline in a live (rectified) frame -> 255, gaps closed.
    Thresholds HSV value rather than gray so saturated blue/red fills stay out.
    """
    value = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2HSV)[:, :, 2]
    _, lines = cv2.threshold(value, cfg.frame_line_threshold, 255, cv2.THRESH_BINARY_INV)
    k = cfg.frame_line_close_kernel
    if k > 1:
        kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (k, k))
        lines = cv2.morphologyEx(lines, cv2.MORPH_CLOSE, kernel, iterations=1)
    return lines


class TemplateSelector:
    """
    Picks the layout whose line mask best matches the frame (IoU), and only
    switches the active layout after `hysteresis` consecutive agreeing frames.
    """

    def __init__(self, layouts: Sequence[TemplateLayout], cfg: MosaicConfig):
        if not layouts:
            raise ValueError("TemplateSelector needs at least one layout")
        self.layouts = list(layouts)
        self.cfg = cfg
        self.hysteresis = cfg.layout_hysteresis

        self.active = 0
        self.last_detected: Optional[int] = None
        self.votes = 0
        self.last_scores: List[float] = []

    @property
    def active_layout(self) -> TemplateLayout:
        return self.layouts[self.active]

    def score(self, frame_bgr: np.ndarray) -> List[float]:
        lines = extract_frame_lines(frame_bgr, self.cfg)
        return [mask_iou(resize_mask(lines, lay.size), lay.line_mask) for lay in self.layouts]

    def detect(self, frame_bgr: np.ndarray) -> int:
        scores = self.score(frame_bgr)
        self.last_scores = scores

        best = 0
        for i, s in enumerate(scores):
            if s > scores[best]:
                best = i
        return best

    def vote(self, detected: int) -> bool:
        """Feed one frame's detection; True when the active layout switched."""
        if detected != self.last_detected:
            self.last_detected = detected
            self.votes = 1
        else:
            self.votes += 1

        if self.votes >= self.hysteresis and detected != self.active:
            log.info(
                f"Layout switched: '{self.layouts[self.active].name}' -> "
                f"'{self.layouts[detected].name}'"
            )
            self.active = detected
            self.votes = 0
            return True
        return False

    def update(self, frame_bgr: np.ndarray) -> bool:
        if len(self.layouts) == 1:
            return False
        return self.vote(self.detect(frame_bgr))

    def reset(self) -> None:
        """Drop the pending streak; the active layout stays."""
        self.last_detected = None
        self.votes = 0
