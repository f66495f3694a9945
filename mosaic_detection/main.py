# main.py
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
import cv2
import numpy as np

from mosaic_detection.config import AppConfig
from mosaic_detection.pipeline.errors import MosaicError
from mosaic_detection.pipeline.layout import load_layouts
from mosaic_detection.pipeline.models import FrameResult
from mosaic_detection.pipeline.mosaic import MosaicPipeline
from mosaic_detection.pipeline.rectify import MarkerRectifier
from mosaic_detection.pipeline.utils import setup_logging
from mosaic_detection.pipeline.video_io import iter_frames

log = logging.getLogger("mosaic_detection")

WIN_LIVE = "Live Video"
WIN_WARPED = "Warped"
WIN_MOSAIC = "Digital Mosaic"


def draw_markers(display: np.ndarray, markers: list[np.ndarray]) -> None:
    for m in markers:
        for x, y in m.reshape(-1, 2):
            cv2.circle(display, (int(x), int(y)), 8, (0, 255, 0), -1)


def log_patch_summary(result: FrameResult) -> None:
    log.debug(f"=== {result.layout_name} (rot={result.rotation}) ===")
    for p in result.patches:
        if p.label is None:
            continue
        log.debug(
            f"  - patch {p.patch_id} @({p.centroid[0]:.0f},{p.centroid[1]:.0f}) "
            f"-> {p.label} ({p.fill_ratio:.0%})"
        )


def run(cfg: AppConfig) -> None:
    setup_logging(cfg.logging_level)

    # 1) Layouts (fatal if unreadable / empty)
    layouts = load_layouts(cfg.template_paths, cfg.template_names, cfg.mosaic)
    pipeline = MosaicPipeline(layouts, cfg.mosaic)
    rectifier = MarkerRectifier(cfg.marker_id, layouts[0].size, cfg.aruco_dictionary)

    source = cfg.video_path if cfg.video_path is not None else cfg.camera_index
    frames = iter_frames(source, size=cfg.capture_size, max_frames=cfg.max_frames)

    if cfg.show_windows:
        for name in (WIN_LIVE, WIN_WARPED, WIN_MOSAIC):
            cv2.namedWindow(name, cv2.WINDOW_NORMAL)

    print("Mosaic Detector started. Press 'q' to quit, 'r' to reset colors.")
    try:
        # 2) Capture -> rectify -> classify/stabilize -> render
        for frame in frames:
            markers = rectifier.detect_targets(frame.image)
            view = rectifier.rectify_markers(frame.image, markers)

            if view is not None:
                result = pipeline.process(view.image, view.reference_corners)
                if frame.index % 30 == 0:
                    log_patch_summary(result)
                if cfg.show_windows:
                    cv2.imshow(WIN_WARPED, view.image)
                    cv2.imshow(WIN_MOSAIC, result.rendered)
            elif frame.index % 50 == 0:
                log.info(f"[frame {frame.index}] markers={len(markers)}/4, waiting for all four")

            if not cfg.show_windows:
                continue

            display = frame.image.copy()
            draw_markers(display, markers)
            cv2.imshow(WIN_LIVE, display)

            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                break
            if key == ord("r"):
                pipeline.reset()
    finally:
        frames.close()
        if cfg.show_windows:
            cv2.destroyAllWindows()


def parse_args(argv: list[str] | None = None) -> AppConfig:
    p = argparse.ArgumentParser(description="Live mosaic fill / color detection")
    p.add_argument("--template", action="append", required=True,
                   help="Reference layout image (repeat for several layouts)")
    p.add_argument("--name", action="append", default=[],
                   help="Display name for the matching --template")
    p.add_argument("--camera", type=int, default=0, help="Camera index")
    p.add_argument("--video", default=None, help="Read frames from a video file instead of a camera")
    p.add_argument("--marker-id", type=int, default=23, help="Aruco id shared by the 4 corner markers")
    p.add_argument("--max-frames", type=int, default=0, help="0 means no limit")
    p.add_argument("--headless", action="store_true", help="Do not open display windows")
    p.add_argument("--log-level", default="INFO")
    args = p.parse_args(argv)

    cfg = AppConfig(
        template_paths=tuple(Path(t) for t in args.template),
        template_names=tuple(args.name),
        camera_index=args.camera,
        video_path=(Path(args.video) if args.video else None),
        max_frames=(None if args.max_frames == 0 else args.max_frames),
        marker_id=args.marker_id,
        show_windows=not args.headless,
        logging_level=args.log_level,
    )
    return cfg


def main(argv: list[str] | None = None) -> int:
    cfg = parse_args(argv)
    try:
        run(cfg)
    except MosaicError as e:
        log.error(f"Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
