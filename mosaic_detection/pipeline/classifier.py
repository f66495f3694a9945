# pipeline/classifier.py
from __future__ import annotations

from typing import Callable, Optional
import logging

import cv2
import numpy as np

from mosaic_detection.config import ClassifierConfig
from .models import ClassificationResult, PALETTE

log = logging.getLogger(__name__)

# (h, r, g, b) int32 arrays over the colorful pixels -> bool array
ColorPredicate = Callable[[np.ndarray, np.ndarray, np.ndarray, np.ndarray], np.ndarray]


def _hue_in(h: np.ndarray, band: tuple[int, int]) -> np.ndarray:
    lo, hi = band
    return (h >= lo) & (h <= hi)


def build_color_rules(cfg: ClassifierConfig) -> list[tuple[str, ColorPredicate]]:
    """
    Ordered (label, predicate) cascade. Hue bands overlap at the edges and the
    channel checks differ per color, so the first match wins and the order is
    part of the behavior: Red, Orange, Yellow, Green, Purple, Blue.
    """

    def is_red(h, r, g, b):
        hue = np.zeros(h.shape, dtype=bool)
        for band in cfg.red_hue:
            hue |= _hue_in(h, band)
        return hue & (r > cfg.red_min_r) & (r > g * cfg.red_ratio) & (r > b * cfg.red_ratio)

    def is_orange(h, r, g, b):
        return (
            _hue_in(h, cfg.orange_hue)
            & (r > cfg.orange_min_r) & (g > cfg.orange_min_g) & (g < r) & (b < g)
        )

    def is_yellow(h, r, g, b):
        return (
            _hue_in(h, cfg.yellow_hue)
            & (r > cfg.yellow_min_rg) & (g > cfg.yellow_min_rg)
            & (np.abs(r - g) < cfg.yellow_max_rg_diff)
        )

    def is_green(h, r, g, b):
        return (
            _hue_in(h, cfg.green_hue)
            & (g >= cfg.green_min_g) & (g > r * cfg.green_ratio) & (g > b * cfg.green_ratio)
        )

    def is_purple(h, r, g, b):
        # R and B both high, G low, and R/B roughly balanced
        return (
            _hue_in(h, cfg.purple_hue)
            & (r > cfg.purple_min_rb) & (b > cfg.purple_min_rb) & (r > g) & (b > g)
            & (np.abs(r - b) < cfg.purple_max_rb_diff)
        )

    def is_blue(h, r, g, b):
        return (
            _hue_in(h, cfg.blue_hue)
            & (b >= cfg.blue_min_b) & (b > r * cfg.blue_ratio_r) & (b > g * cfg.blue_ratio_g)
            & (r < cfg.blue_max_r)
        )

    return [
        ("Red", is_red),
        ("Orange", is_orange),
        ("Yellow", is_yellow),
        ("Green", is_green),
        ("Purple", is_purple),
        ("Blue", is_blue),
    ]


def dominance_threshold(colorful: int, cfg: ClassifierConfig) -> int:
    return max(cfg.min_dominant_pixels, colorful // cfg.dominant_divisor)


def pick_dominant(counts: dict[str, int], threshold: int) -> Optional[str]:
    """Sequential strict-greater scan in palette order; earliest label wins ties."""
    best_label = None
    best_count = 0
    for label in PALETTE:
        c = counts.get(label, 0)
        if c > threshold and c > best_count:
            best_label = label
            best_count = c
    return best_label


class PatchColorClassifier:
    """Dominant palette color + fill ratio of one masked patch. Stateless."""

    def __init__(self, cfg: ClassifierConfig | None = None):
        self.cfg = cfg or ClassifierConfig()
        self.rules = build_color_rules(self.cfg)

    def _neutral(self, s: np.ndarray, v: np.ndarray) -> np.ndarray:
        cfg = self.cfg
        white_or_gray = (s < cfg.min_saturation) | ((v > cfg.washout_value) & (s < cfg.washout_saturation))
        too_dark = v < cfg.min_value
        return white_or_gray | too_dark

    def count_colors(
        self, bgr: np.ndarray, hsv: np.ndarray, mask: np.ndarray
    ) -> tuple[dict[str, int], int, int]:
        """Returns (per-label counts, masked pixel count, colorful pixel count)."""
        sel = mask > 0
        total = int(np.count_nonzero(sel))
        counts = {label: 0 for label in PALETTE}
        if total == 0:
            return counts, 0, 0

        px_hsv = hsv[sel].astype(np.int32)
        px_bgr = bgr[sel].astype(np.int32)

        keep = ~self._neutral(px_hsv[:, 1], px_hsv[:, 2])
        colorful = int(np.count_nonzero(keep))
        if colorful == 0:
            return counts, total, 0

        h = px_hsv[keep, 0]
        b = px_bgr[keep, 0]
        g = px_bgr[keep, 1]
        r = px_bgr[keep, 2]

        unclaimed = np.ones(colorful, dtype=bool)
        for label, predicate in self.rules:
            hit = unclaimed & predicate(h, r, g, b)
            counts[label] = int(np.count_nonzero(hit))
            unclaimed &= ~hit

        return counts, total, colorful

    def classify(
        self, bgr: np.ndarray, hsv: np.ndarray | None, mask: np.ndarray
    ) -> ClassificationResult:
        if hsv is None:
            hsv = cv2.cvtColor(bgr, cv2.COLOR_BGR2HSV)

        counts, total, colorful = self.count_colors(bgr, hsv, mask)
        fill_ratio = (colorful / total) if total > 0 else 0.0

        label = pick_dominant(counts, dominance_threshold(colorful, self.cfg))
        if log.isEnabledFor(logging.DEBUG):
            log.debug(f"counts={counts} total={total} colorful={colorful} -> {label}")

        return ClassificationResult(label=label, fill_ratio=float(fill_ratio))
