"""Live mosaic fill and color detection from an aruco-framed camera view."""

__version__ = "0.1.0"
