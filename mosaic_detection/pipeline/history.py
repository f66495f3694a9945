# pipeline/history.py
from __future__ import annotations

from collections import deque
from typing import Dict, Optional
import logging

from mosaic_detection.config import MosaicConfig
from .models import ClassificationResult

log = logging.getLogger(__name__)


class PatchHistory:
    """Bounded buffer of accepted labels for one patch; majority vote on read."""

    def __init__(self, max_history: int = 7):
        self.max_history = max_history
        self._recent: deque[str] = deque(maxlen=max_history)

    def __len__(self) -> int:
        return len(self._recent)

    def add_color(self, label: str) -> None:
        if label is None:
            return
        self._recent.append(label)

    def clear(self) -> None:
        self._recent.clear()

    def get_stable_color(self) -> Optional[str]:
        if not self._recent:
            return None

        votes: Dict[str, int] = {}
        last_seen: Dict[str, int] = {}
        for i, label in enumerate(self._recent):
            votes[label] = votes.get(label, 0) + 1
            last_seen[label] = i

        # ties go to the label added most recently
        return max(votes, key=lambda lbl: (votes[lbl], last_seen[lbl]))


def update_fill_ratio(prev: float, sample: float, alpha: float = 0.3) -> float:
    ratio = (1.0 - alpha) * prev + alpha * sample
    return float(max(0.0, min(1.0, ratio)))


class PatchStabilizer:
    """
    Per-layout, per-patch temporal smoothing:
    raw classification -> (stable label, EMA fill ratio)
    """

    def __init__(self, cfg: MosaicConfig):
        self.cfg = cfg
        self._histories: Dict[tuple[int, int], PatchHistory] = {}
        self._ratios: Dict[tuple[int, int], float] = {}

    def history(self, layout_index: int, patch_id: int) -> PatchHistory:
        key = (layout_index, patch_id)
        h = self._histories.get(key)
        if h is None:
            h = PatchHistory(self.cfg.history_depth)
            self._histories[key] = h
        return h

    def ratio(self, layout_index: int, patch_id: int) -> float:
        return self._ratios.get((layout_index, patch_id), 0.0)

    def update(
        self, layout_index: int, patch_id: int, raw: ClassificationResult
    ) -> tuple[Optional[str], float]:
        key = (layout_index, patch_id)
        hist = self.history(layout_index, patch_id)

        if raw.label is None or raw.fill_ratio < self.cfg.fill_ratio_floor:
            # emptied patch: drop its color at once
            hist.clear()
            self._ratios[key] = 0.0
            return None, 0.0

        hist.add_color(raw.label)
        ratio = update_fill_ratio(self._ratios.get(key, 0.0), raw.fill_ratio, self.cfg.ema_alpha)
        self._ratios[key] = ratio
        return hist.get_stable_color(), ratio

    def reset_layout(self, layout_index: int) -> None:
        for key in [k for k in self._histories if k[0] == layout_index]:
            self._histories[key].clear()
        for key in [k for k in self._ratios if k[0] == layout_index]:
            self._ratios[key] = 0.0

    def reset(self) -> None:
        for h in self._histories.values():
            h.clear()
        self._ratios.clear()
        log.info("Patch histories reset.")
