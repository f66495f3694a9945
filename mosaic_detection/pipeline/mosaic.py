# pipeline/mosaic.py
from __future__ import annotations

from typing import List, Optional, Sequence
import logging

import cv2
import numpy as np

from mosaic_detection.config import MosaicConfig
from .classifier import PatchColorClassifier
from .history import PatchStabilizer
from .models import ClassificationResult, FrameResult, Patch, PatchState, TemplateLayout
from .render import render_mosaic
from .rotation import RotationEstimator, rotate_inverse
from .template_selector import TemplateSelector
from .utils import polygon_mask, scale_polygon

log = logging.getLogger(__name__)


class MosaicPipeline:
    """
    Per rectified frame:
    rotation -> layout selection -> classify each patch -> stabilize -> render
    """

    def __init__(self, layouts: Sequence[TemplateLayout], cfg: MosaicConfig | None = None):
        self.cfg = cfg or MosaicConfig()
        self.layouts = list(layouts)

        self.classifier = PatchColorClassifier(self.cfg.classifier)
        self.stabilizer = PatchStabilizer(self.cfg)
        self.rotation = RotationEstimator(self.cfg.rotation_hysteresis)
        self.selector = TemplateSelector(self.layouts, self.cfg)

        self.frame_count = 0
        log.info(
            f"MosaicPipeline initialized with {len(self.layouts)} layout(s): "
            + ", ".join(f"{lay.name} ({len(lay.patches)} patches)" for lay in self.layouts)
        )

    @property
    def active_layout(self) -> TemplateLayout:
        return self.selector.active_layout

    def reset(self) -> None:
        """
        Forget all per-patch color history and fill ratios, and any pending
        rotation or layout votes. Committed rotation and layout are kept.
        """
        self.stabilizer.reset()
        self.rotation.reset()
        self.selector.reset()

    def _classify_patch(
        self, frame: np.ndarray, hsv: np.ndarray, poly: np.ndarray
    ) -> ClassificationResult:
        # work on the polygon's bounding box (padded so erosion sees background)
        h, w = frame.shape[:2]
        pad = self.cfg.mask_shrink_px + 1
        x, y, bw, bh = cv2.boundingRect(poly.reshape(-1, 1, 2))
        x1 = max(0, x - pad); y1 = max(0, y - pad)
        x2 = min(w, x + bw + pad); y2 = min(h, y + bh + pad)
        if x2 <= x1 or y2 <= y1:
            return ClassificationResult(label=None, fill_ratio=0.0)

        local = poly - np.array([x1, y1], dtype=np.int32)
        mask = polygon_mask(local, (y2 - y1, x2 - x1), self.cfg.mask_shrink_px)
        return self.classifier.classify(frame[y1:y2, x1:x2], hsv[y1:y2, x1:x2], mask)

    def process(self, frame: np.ndarray, reference_corners: Optional[np.ndarray] = None) -> FrameResult:
        self.frame_count += 1

        rotation = self.rotation.update(reference_corners)
        normalized = rotate_inverse(frame, rotation)

        switched = self.selector.update(normalized)
        layout_index = self.selector.active
        if switched and self.cfg.reset_on_layout_switch:
            self.stabilizer.reset_layout(layout_index)
        layout = self.layouts[layout_index]

        h, w = normalized.shape[:2]
        hsv = cv2.cvtColor(normalized, cv2.COLOR_BGR2HSV)

        states: List[PatchState] = []
        polygons: List[np.ndarray] = []
        for patch in layout.patches:
            poly = scale_polygon(patch.polygon, layout.size, (w, h))
            raw = self._classify_patch(normalized, hsv, poly)
            label, ratio = self.stabilizer.update(layout_index, patch.patch_id, raw)
            states.append(
                PatchState(
                    patch_id=patch.patch_id,
                    label=label,
                    fill_ratio=ratio,
                    centroid=_scaled_centroid(patch, layout.size, (w, h)),
                )
            )
            polygons.append(poly)

        rendered = render_mosaic(layout, states, polygons, (w, h), rotation, self.cfg)

        if self.frame_count % 50 == 0:
            filled = sum(1 for s in states if s.label is not None)
            log.debug(
                f"frame {self.frame_count}: rot={rotation} layout={layout.name} "
                f"filled={filled}/{len(states)}"
            )

        return FrameResult(
            rotation=rotation,
            layout_index=layout_index,
            layout_name=layout.name,
            patches=states,
            rendered=rendered,
            normalized=normalized,
            layout_switched=switched,
        )


def _scaled_centroid(patch: Patch, src_size: tuple[int, int], dst_size: tuple[int, int]) -> tuple[float, float]:
    cx, cy = patch.centroid
    return (cx * dst_size[0] / float(src_size[0]), cy * dst_size[1] / float(src_size[1]))
