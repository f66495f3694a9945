# tests/test_pipeline.py
import numpy as np
import pytest

from conftest import BLUE, GREEN, RED, marker_corners, paint, patch_near, stripes_reference
from mosaic_detection.config import MosaicConfig
from mosaic_detection.pipeline.mosaic import MosaicPipeline
from mosaic_detection.pipeline.rotation import rotate_forward


def state_of(result, patch_id):
    return next(s for s in result.patches if s.patch_id == patch_id)


def test_filled_patches_are_labelled(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    mid = patch_near(grid_layout, 150, 150)
    frame = paint(grid_layout, {tl: RED, mid: GREEN})

    pipe = MosaicPipeline([grid_layout], cfg)
    for _ in range(3):
        res = pipe.process(frame, marker_corners(0))

    assert res.rotation == 0
    assert res.layout_name == "Grid"
    assert len(res.patches) == 9
    assert state_of(res, tl).label == "Red"
    assert state_of(res, mid).label == "Green"
    assert state_of(res, tl).fill_ratio == pytest.approx(1 - 0.7 ** 3)

    empty = [s for s in res.patches if s.patch_id not in (tl, mid)]
    assert all(s.label is None and s.fill_ratio == 0.0 for s in empty)


def test_rendered_composite(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    frame = paint(grid_layout, {tl: BLUE})
    res = MosaicPipeline([grid_layout], cfg).process(frame)

    assert res.rendered.shape == frame.shape
    assert tuple(res.rendered[15, 15]) == cfg.display_color("Blue")
    assert tuple(res.rendered[250, 250]) == cfg.empty_bgr
    assert tuple(res.rendered[150, 100]) == cfg.boundary_bgr


def test_ratio_text_only_above_floor(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    frame = paint(grid_layout, {tl: RED})
    pipe = MosaicPipeline([grid_layout], cfg)

    # first frame: EMA 0.3 >= 0.15 -> text drawn at the centroid
    res = pipe.process(frame)
    cx, cy = state_of(res, tl).centroid
    window = res.rendered[int(cy) - 6:int(cy) + 6, int(cx) - 15:int(cx) + 15]
    assert (window != cfg.display_color("Red")).any(axis=2).any()

    # a patch with no fill gets no text
    far = patch_near(grid_layout, 250, 250)
    cx, cy = state_of(res, far).centroid
    window = res.rendered[int(cy) - 6:int(cy) + 6, int(cx) - 15:int(cx) + 15]
    assert (window == 255).all()


def test_single_bad_frame_does_not_flip(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    pipe = MosaicPipeline([grid_layout], cfg)
    for _ in range(5):
        pipe.process(paint(grid_layout, {tl: RED}))
    res = pipe.process(paint(grid_layout, {tl: GREEN}))
    assert state_of(res, tl).label == "Red"


def test_emptied_patch_forgets_immediately(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    pipe = MosaicPipeline([grid_layout], cfg)
    for _ in range(7):
        pipe.process(paint(grid_layout, {tl: RED}))
    res = pipe.process(paint(grid_layout))
    assert state_of(res, tl).label is None
    assert state_of(res, tl).fill_ratio == 0.0


def test_reset_clears_histories(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    pipe = MosaicPipeline([grid_layout], cfg)
    for _ in range(4):
        pipe.process(paint(grid_layout, {tl: RED}))
    pipe.reset()
    assert pipe.stabilizer.history(0, tl).get_stable_color() is None
    assert pipe.stabilizer.ratio(0, tl) == 0.0


def test_reset_drops_pending_votes(cfg, grid_layout, stripes_layout):
    pipe = MosaicPipeline([grid_layout, stripes_layout], cfg)
    frame = stripes_reference()
    for _ in range(4):
        pipe.process(frame, marker_corners(90))
    assert pipe.rotation.votes == 4
    assert pipe.selector.votes == 4

    pipe.reset()
    assert pipe.rotation.votes == 0
    assert pipe.selector.votes == 0
    for _ in range(5):
        res = pipe.process(frame, marker_corners(90))
    assert res.rotation == 0
    assert res.layout_index == 0


def test_rotated_surface_is_normalized(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    upright = paint(grid_layout, {tl: RED})
    turned = rotate_forward(upright, 90)

    pipe = MosaicPipeline([grid_layout], cfg)
    for _ in range(5):
        res = pipe.process(turned, marker_corners(90))
        assert res.rotation == 0
    for _ in range(4):
        res = pipe.process(turned, marker_corners(90))

    assert res.rotation == 90
    assert state_of(res, tl).label == "Red"
    # display keeps the camera's orientation: red sits at the top-right
    assert np.array_equal(res.normalized, upright)
    assert tuple(res.rendered[15, 284]) == cfg.display_color("Red")


def test_switches_layout_after_hysteresis(cfg, grid_layout, stripes_layout):
    pipe = MosaicPipeline([grid_layout, stripes_layout], cfg)
    frame = stripes_reference()

    for _ in range(9):
        res = pipe.process(frame)
        assert res.layout_index == 0
    res = pipe.process(frame)
    assert res.layout_switched
    assert res.layout_name == "Stripes"
    assert len(res.patches) == len(stripes_layout.patches)


def test_switch_clears_stale_histories_of_new_layout(cfg, grid_layout, stripes_layout):
    pipe = MosaicPipeline([grid_layout, stripes_layout], cfg)
    for _ in range(2):
        pipe.stabilizer.history(1, 0).add_color("Blue")

    frame = paint(stripes_layout, {0: RED})
    for _ in range(10):
        res = pipe.process(frame)
    assert res.layout_switched
    assert state_of(res, 0).label == "Red"


def test_switch_can_keep_histories(grid_layout, stripes_layout):
    cfg = MosaicConfig(reset_on_layout_switch=False)
    pipe = MosaicPipeline([grid_layout, stripes_layout], cfg)
    for _ in range(2):
        pipe.stabilizer.history(1, 0).add_color("Blue")

    frame = paint(stripes_layout, {0: RED})
    for _ in range(10):
        res = pipe.process(frame)
    assert res.layout_switched
    assert state_of(res, 0).label == "Blue"


def test_pipelines_are_independent(cfg, grid_layout):
    tl = patch_near(grid_layout, 50, 50)
    a = MosaicPipeline([grid_layout], cfg)
    b = MosaicPipeline([grid_layout], cfg)
    for _ in range(3):
        a.process(paint(grid_layout, {tl: RED}), marker_corners(180))
    assert b.stabilizer.history(0, tl).get_stable_color() is None
    assert b.rotation.votes == 0
    assert a.rotation.votes == 3
