# pipeline/video_io.py
from __future__ import annotations

import logging
import time
import cv2
from pathlib import Path
from typing import Iterator

from .errors import CaptureError
from .models import FramePacket

log = logging.getLogger(__name__)


def open_capture(source: int | Path, size: tuple[int, int] | None = None) -> cv2.VideoCapture:
    cap = cv2.VideoCapture(source if isinstance(source, int) else str(source))
    if not cap.isOpened():
        raise CaptureError(f"Could not open capture source: {source}")

    if size is not None and isinstance(source, int):
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, size[0])
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, size[1])

    log.info(f"Capture opened: {source}")
    return cap


def iter_frames(
    source: int | Path,
    size: tuple[int, int] | None = None,
    max_frames: int | None = None,
) -> Iterator[FramePacket]:
    cap = open_capture(source, size)
    live = isinstance(source, int)
    fps = cap.get(cv2.CAP_PROP_FPS) or 25.0
    t0 = time.monotonic()

    idx = -1
    try:
        while True:
            ok, frame = cap.read()
            if not ok or frame is None:
                break
            idx += 1

            t = (time.monotonic() - t0) if live else idx / fps
            yield FramePacket(index=idx, timestamp_s=t, image=frame)

            if max_frames is not None and idx + 1 >= max_frames:
                break
    finally:
        cap.release()
        log.info(f"Capture released after {idx + 1} frames.")
