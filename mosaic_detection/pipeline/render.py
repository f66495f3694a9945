# pipeline/render.py
from __future__ import annotations

from typing import Sequence

import cv2
import numpy as np

from mosaic_detection.config import MosaicConfig
from .models import PatchState, TemplateLayout
from .rotation import rotate_forward, rotate_point_forward
from .utils import resize_mask


def render_mosaic(
    layout: TemplateLayout,
    states: Sequence[PatchState],
    polygons: Sequence[np.ndarray],
    frame_size: tuple[int, int],
    rotation: int,
    cfg: MosaicConfig,
) -> np.ndarray:
    """
    Digital copy of the surface: each patch filled with its stable color, the
    layout outline on top, turned back to the camera's orientation, with
    fill percentages written on patches that are filled enough.
    """
    w, h = frame_size
    canvas = np.full((h, w, 3), cfg.empty_bgr, dtype=np.uint8)

    for state, poly in zip(states, polygons):
        color = cfg.display_color(state.label)
        cv2.fillPoly(canvas, [poly.reshape(-1, 1, 2)], color)

    lines = resize_mask(layout.line_mask, (w, h))
    canvas[lines > 0] = cfg.boundary_bgr

    canvas = rotate_forward(canvas, rotation)

    for state in states:
        if state.fill_ratio < cfg.fill_ratio_floor:
            continue
        draw_ratio_text(canvas, state, (w, h), rotation, cfg)

    return canvas


def draw_ratio_text(
    canvas: np.ndarray,
    state: PatchState,
    frame_size: tuple[int, int],
    rotation: int,
    cfg: MosaicConfig,
) -> None:
    text = f"{int(round(state.fill_ratio * 100))}%"
    cx, cy = rotate_point_forward(state.centroid, frame_size, rotation)
    (tw, th), _ = cv2.getTextSize(text, cv2.FONT_HERSHEY_SIMPLEX, cfg.text_scale, cfg.text_thickness)
    org = (int(cx - tw / 2), int(cy + th / 2))
    cv2.putText(
        canvas,
        text,
        org,
        cv2.FONT_HERSHEY_SIMPLEX,
        cfg.text_scale,
        cfg.text_bgr,
        cfg.text_thickness,
        cv2.LINE_AA,
    )
