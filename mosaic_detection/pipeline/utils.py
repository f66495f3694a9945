# pipeline/utils.py
import logging
import cv2
import numpy as np

def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

# ──────────────────────────────────────────────
# Patch geometry helpers
# ──────────────────────────────────────────────

def scale_polygon(polygon: np.ndarray, src_size: tuple, dst_size: tuple) -> np.ndarray:
    """Scale (N, 2) points from a (w, h) space into another (w, h) space."""
    sx = dst_size[0] / float(src_size[0])
    sy = dst_size[1] / float(src_size[1])
    pts = polygon.reshape(-1, 2).astype(np.float64)
    pts[:, 0] *= sx
    pts[:, 1] *= sy
    return np.round(pts).astype(np.int32)

def polygon_mask(polygon: np.ndarray, shape: tuple, shrink_px: int = 0) -> np.ndarray:
    """Filled uint8 mask of `polygon` on an (h, w) canvas, eroded inward by shrink_px."""
    mask = np.zeros(shape[:2], dtype=np.uint8)
    cv2.fillPoly(mask, [polygon.reshape(-1, 1, 2).astype(np.int32)], 255)
    if shrink_px > 0:
        k = cv2.getStructuringElement(cv2.MORPH_RECT, (2 * shrink_px + 1, 2 * shrink_px + 1))
        mask = cv2.erode(mask, k)
    return mask

def resize_mask(mask: np.ndarray, size: tuple) -> np.ndarray:
    """Nearest-neighbour resize so masks stay binary. size = (w, h)."""
    if (mask.shape[1], mask.shape[0]) == tuple(size):
        return mask
    return cv2.resize(mask, tuple(size), interpolation=cv2.INTER_NEAREST)
