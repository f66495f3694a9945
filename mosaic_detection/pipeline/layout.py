# pipeline/layout.py
from __future__ import annotations

from pathlib import Path
from typing import Sequence
import logging

import cv2
import numpy as np

from mosaic_detection.config import MosaicConfig
from .errors import LayoutLoadError
from .models import Patch, TemplateLayout

log = logging.getLogger(__name__)


def extract_template_lines(image_bgr: np.ndarray, cfg: MosaicConfig) -> np.ndarray:
    """Dark outline pixels of a clean reference image -> 255."""
    gray = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2GRAY)
    _, lines = cv2.threshold(gray, cfg.layout_line_threshold, 255, cv2.THRESH_BINARY_INV)
    if cfg.layout_line_dilate > 0:
        kernel = cv2.getStructuringElement(
            cv2.MORPH_RECT, (cfg.layout_line_dilate, cfg.layout_line_dilate)
        )
        lines = cv2.dilate(lines, kernel)
    return lines


def layout_from_image(image_bgr: np.ndarray, name: str, cfg: MosaicConfig) -> TemplateLayout:
    h, w = image_bgr.shape[:2]
    lines = extract_template_lines(image_bgr, cfg)

    # cells are the holes between lines
    cells = cv2.bitwise_not(lines)
    contours, _ = cv2.findContours(cells, cv2.RETR_CCOMP, cv2.CHAIN_APPROX_SIMPLE)

    max_area = cfg.max_patch_area_frac * float(w * h)
    patches: list[Patch] = []
    for c in contours:
        area = cv2.contourArea(c)
        if area <= cfg.min_patch_area or area >= max_area:
            continue
        poly = c.reshape(-1, 2).astype(np.int32)
        poly.flags.writeable = False
        patches.append(Patch(patch_id=len(patches), polygon=poly))

    if not patches:
        raise LayoutLoadError(f"No mosaic pieces found in layout '{name}' ({w}x{h})")

    # layouts are shared read-only by every pipeline
    lines.flags.writeable = False
    log.info(f"Layout '{name}': found {len(patches)} mosaic pieces ({w}x{h}).")
    return TemplateLayout(name=name, patches=tuple(patches), line_mask=lines, size=(w, h))


def load_layout(path: Path, name: str | None, cfg: MosaicConfig) -> TemplateLayout:
    image = cv2.imread(str(path))
    if image is None or image.size == 0:
        raise LayoutLoadError(f"Failed to load template: {path}")
    return layout_from_image(image, name or Path(path).stem, cfg)


def load_layouts(
    paths: Sequence[Path], names: Sequence[str], cfg: MosaicConfig
) -> list[TemplateLayout]:
    if not paths:
        raise LayoutLoadError("No template images given.")
    layouts = []
    for i, p in enumerate(paths):
        name = names[i] if i < len(names) else None
        layouts.append(load_layout(p, name, cfg))
    return layouts
