# pipeline/models.py
from __future__ import annotations
from dataclasses import dataclass, field
import cv2
import numpy as np
from typing import Optional


# Priority order of the classifier cascade; also the order of the counters scan.
PALETTE: tuple[str, ...] = ("Red", "Orange", "Yellow", "Green", "Purple", "Blue")


@dataclass(frozen=True)
class FramePacket:
    index: int
    timestamp_s: float
    image: np.ndarray  # BGR image


@dataclass(frozen=True)
class Patch:
    """One fillable cell of a layout, in the layout's native pixel space."""
    patch_id: int
    polygon: np.ndarray  # (N, 2) int32, ordered

    @property
    def centroid(self) -> tuple[float, float]:
        pts = self.polygon.reshape(-1, 1, 2).astype(np.float32)
        m = cv2.moments(pts)
        if m["m00"] == 0:
            flat = pts.reshape(-1, 2)
            return float(flat[:, 0].mean()), float(flat[:, 1].mean())
        return float(m["m10"] / m["m00"]), float(m["m01"] / m["m00"])


@dataclass(frozen=True)
class TemplateLayout:
    name: str
    patches: tuple[Patch, ...]
    line_mask: np.ndarray  # uint8, 255 on boundary lines
    size: tuple[int, int]  # width, height

    @property
    def width(self) -> int:
        return self.size[0]

    @property
    def height(self) -> int:
        return self.size[1]


@dataclass(frozen=True)
class ClassificationResult:
    label: Optional[str]
    fill_ratio: float


@dataclass(frozen=True)
class PatchState:
    patch_id: int
    label: Optional[str]
    fill_ratio: float
    centroid: tuple[float, float]  # in normalized-frame coordinates


@dataclass(frozen=True)
class RectifiedView:
    """Upright view of the surface plus the reference marker's corners in it."""
    image: np.ndarray
    reference_corners: Optional[np.ndarray] = None  # (4, 2) float32


@dataclass(frozen=True)
class FrameResult:
    rotation: int
    layout_index: int
    layout_name: str
    patches: list[PatchState]
    rendered: np.ndarray
    normalized: np.ndarray = field(repr=False)
    layout_switched: bool = False

