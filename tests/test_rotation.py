# tests/test_rotation.py
import numpy as np
import pytest

from conftest import marker_corners
from mosaic_detection.pipeline.rotation import (
    RotationEstimator,
    raw_rotation,
    rotate_forward,
    rotate_inverse,
    rotate_point_forward,
)


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_raw_rotation_from_first_corner(rotation):
    assert raw_rotation(marker_corners(rotation)) == rotation


def test_raw_rotation_ignores_translation_and_scale():
    corners = marker_corners(90) * 7.5 + np.array([400.0, 120.0])
    assert raw_rotation(corners) == 90


def test_five_differing_frames_do_not_flip():
    est = RotationEstimator(6)
    for _ in range(5):
        assert est.update(marker_corners(90)) == 0


def test_sixth_consistent_frame_flips():
    est = RotationEstimator(6)
    for _ in range(5):
        est.update(marker_corners(180))
    assert est.update(marker_corners(180)) == 180
    assert est.votes == 0


def test_agreeing_frame_resets_the_count():
    est = RotationEstimator(6)
    for _ in range(5):
        est.update(marker_corners(90))
    est.update(marker_corners(0))
    assert est.votes == 0
    for _ in range(5):
        assert est.update(marker_corners(90)) == 0
    assert est.update(marker_corners(90)) == 90


def test_inconsistent_estimates_never_commit():
    est = RotationEstimator(6)
    for r in [90, 270, 90, 270, 90, 180] * 3:
        assert est.update(marker_corners(r)) == 0
    assert est.votes == 1


def test_changed_estimate_restarts_the_streak():
    est = RotationEstimator(6)
    for _ in range(5):
        est.update(marker_corners(90))
    assert est.update(marker_corners(270)) == 0
    assert est.candidate == 270
    assert est.votes == 1
    for _ in range(4):
        assert est.update(marker_corners(270)) == 0
    assert est.update(marker_corners(270)) == 270


def test_reset_drops_pending_streak():
    est = RotationEstimator(6)
    for _ in range(6):
        est.update(marker_corners(180))
    for _ in range(4):
        est.update(marker_corners(90))
    est.reset()
    assert est.rotation == 180
    assert est.candidate is None and est.votes == 0
    for _ in range(5):
        assert est.update(marker_corners(90)) == 180


def test_missing_marker_keeps_state():
    est = RotationEstimator(6)
    for _ in range(3):
        est.update(marker_corners(270))
    assert est.update(None) == 0
    assert est.votes == 3


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_forward_undoes_inverse(rotation):
    rng = np.random.default_rng(rotation)
    img = rng.integers(0, 256, size=(40, 70, 3), dtype=np.uint8)
    back = rotate_forward(rotate_inverse(img, rotation), rotation)
    assert back.shape == img.shape
    assert np.array_equal(back, img)


@pytest.mark.parametrize("rotation", [0, 90, 180, 270])
def test_point_follows_forward_rotation(rotation):
    w, h = 70, 40
    img = np.zeros((h, w), dtype=np.uint8)
    img[7, 13] = 255
    rot = rotate_forward(img, rotation)
    ys, xs = np.nonzero(rot)
    assert rotate_point_forward((13, 7), (w, h), rotation) == (xs[0], ys[0])


def test_quarter_turn_swaps_dimensions():
    img = np.zeros((40, 70, 3), dtype=np.uint8)
    assert rotate_inverse(img, 90).shape == (70, 40, 3)
    assert rotate_forward(img, 180).shape == (40, 70, 3)
