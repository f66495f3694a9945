# pipeline/errors.py
from __future__ import annotations


class MosaicError(RuntimeError):
    """Base class for startup failures that should abort the run."""


class LayoutLoadError(MosaicError):
    """Reference image unreadable, or it yields no usable patches."""


class CaptureError(MosaicError):
    """Camera or video source could not be opened."""
