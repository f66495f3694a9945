# config.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class ClassifierConfig:
    # Neutral (white / gray / dark) rejection, OpenCV HSV ranges
    min_saturation: int = 35
    min_value: int = 40
    washout_value: int = 230       # bright AND weakly saturated -> near-white
    washout_saturation: int = 50

    # Dominance: count must beat max(min_dominant_pixels, colorful // dominant_divisor)
    min_dominant_pixels: int = 3
    dominant_divisor: int = 15

    # Hue bands (inclusive, OpenCV hue 0..179)
    red_hue: tuple[tuple[int, int], ...] = ((0, 10), (170, 180))
    orange_hue: tuple[int, int] = (11, 25)
    yellow_hue: tuple[int, int] = (26, 34)
    green_hue: tuple[int, int] = (35, 85)
    purple_hue: tuple[int, int] = (121, 170)
    blue_hue: tuple[int, int] = (90, 120)

    # Channel cutoffs
    red_min_r: int = 100
    red_ratio: float = 1.3

    orange_min_r: int = 120
    orange_min_g: int = 50

    yellow_min_rg: int = 120
    yellow_max_rg_diff: int = 60

    green_min_g: int = 60
    green_ratio: float = 1.05

    purple_min_rb: int = 60
    purple_max_rb_diff: int = 100

    blue_min_b: int = 80
    blue_ratio_r: float = 1.2
    blue_ratio_g: float = 1.1
    blue_max_r: int = 120


@dataclass(frozen=True)
class MosaicConfig:
    # Display colors (BGR) per palette label
    palette_bgr: tuple[tuple[str, tuple[int, int, int]], ...] = (
        ("Red", (0, 0, 255)),
        ("Orange", (0, 165, 255)),
        ("Yellow", (0, 255, 255)),
        ("Green", (0, 255, 0)),
        ("Blue", (255, 0, 0)),
        ("Purple", (255, 0, 255)),
    )
    empty_bgr: tuple[int, int, int] = (255, 255, 255)
    boundary_bgr: tuple[int, int, int] = (0, 0, 0)

    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    # Temporal smoothing
    fill_ratio_floor: float = 0.15
    history_depth: int = 7
    ema_alpha: float = 0.3

    # Hysteresis depths (frames)
    rotation_hysteresis: int = 6
    layout_hysteresis: int = 10
    reset_on_layout_switch: bool = True

    # Patch interior: erode the filled polygon so boundary lines are not sampled
    mask_shrink_px: int = 3

    # Live-frame line extraction (template selection)
    frame_line_threshold: int = 90
    frame_line_close_kernel: int = 3

    # Reference-image ingestion
    layout_line_threshold: int = 200
    layout_line_dilate: int = 2
    min_patch_area: float = 200.0
    max_patch_area_frac: float = 0.20

    # Fill-ratio text overlay
    text_scale: float = 0.45
    text_thickness: int = 1
    text_bgr: tuple[int, int, int] = (0, 0, 0)

    def display_color(self, label: str | None) -> tuple[int, int, int]:
        if label is None:
            return self.empty_bgr
        return dict(self.palette_bgr).get(label, self.empty_bgr)


@dataclass(frozen=True)
class AppConfig:
    # Layouts (one reference image per candidate layout)
    template_paths: tuple[Path, ...]
    template_names: tuple[str, ...] = ()

    # Capture: camera index, or a video file when video_path is set
    camera_index: int = 0
    video_path: Path | None = None
    capture_size: tuple[int, int] | None = (1280, 720)  # width, height
    max_frames: int | None = None

    # Markers
    marker_id: int = 23
    aruco_dictionary: str = "DICT_5X5_250"

    # Display
    show_windows: bool = True

    # Logging
    logging_level: str = "INFO"

    mosaic: MosaicConfig = field(default_factory=MosaicConfig)
