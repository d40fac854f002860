import numpy as np
import pytest

from shadowdots.compositor import BackgroundFrame
from shadowdots.controller import VisualMode
from shadowdots.dots import (
    ACTIVE_SCALE,
    DENSITY_PRESETS,
    INACTIVE_SCALE,
    DotField,
    DotGrid,
)
from shadowdots.stabilizer import StabilizedMask

SMALL, MEDIUM, LARGE = DENSITY_PRESETS
FLAT = (110, 247, 110)


def make_mask(cells):
    cells = np.asarray(cells, dtype=np.uint8)
    cells.setflags(write=False)
    return StabilizedMask(cells, version=1, timestamp=0.0)


def index_of(grid, x, y):
    hits = np.flatnonzero((grid.base_x == x) & (grid.base_y == y))
    assert hits.size == 1
    return int(hits[0])


def blank_canvas(w, h, value=0):
    return np.full((h, w, 4), value, dtype=np.uint8)


def test_three_fixed_presets():
    assert [(p.spacing, p.base_size) for p in DENSITY_PRESETS] == [
        (8, 1.0),
        (12, 2.0),
        (16, 2.7),
    ]


def test_grid_count_uses_ceil():
    grid = DotGrid((640, 480), MEDIUM)
    assert len(grid) == 54 * 40
    grid = DotGrid((641, 481), LARGE)
    assert len(grid) == 41 * 31


def test_grid_is_column_major_from_origin():
    grid = DotGrid((24, 24), SMALL)
    anchors = list(zip(grid.base_x.tolist(), grid.base_y.tolist()))
    assert anchors[:4] == [(0, 0), (0, 8), (0, 16), (8, 0)]


def test_rebuild_is_deterministic():
    a = DotGrid((333, 217), MEDIUM)
    b = DotGrid((333, 217), MEDIUM)
    assert len(a) == len(b)
    np.testing.assert_array_equal(a.base_x, b.base_x)
    np.testing.assert_array_equal(a.base_y, b.base_y)


def test_zero_canvas_gives_empty_grid_and_noop_render():
    field = DotField(FLAT)
    field.rebuild((0, 0), MEDIUM)
    assert len(field.grid) == 0
    canvas = blank_canvas(0, 0)
    field.render(canvas, VisualMode.FLAT_COLOR, make_mask(np.ones((4, 4))), None)


def test_anchor_maps_into_mask_space():
    cells = np.zeros((36, 64), dtype=np.uint8)
    cells[18, 32] = 1
    grid = DotGrid((640, 480), LARGE)
    mx, my, inside = grid.mask_indices(make_mask(cells))
    i = index_of(grid, 320, 240)
    assert (mx[i], my[i]) == (32, 18)
    assert inside.all()


def test_active_dot_in_flat_mode():
    cells = np.zeros((36, 64), dtype=np.uint8)
    cells[18, 32] = 1
    field = DotField(FLAT)
    field.rebuild((640, 480), LARGE)
    canvas = blank_canvas(640, 480)
    field.render(canvas, VisualMode.FLAT_COLOR, make_mask(cells), None)

    grid = field.grid
    i = index_of(grid, 320, 240)
    assert grid.active[i]
    assert grid.radii[i] == pytest.approx(LARGE.base_size * ACTIVE_SCALE)
    assert tuple(grid.colors[i]) == FLAT
    assert tuple(canvas[240, 320, :3]) == FLAT
    assert grid.active.sum() == 1


def test_no_mask_means_nothing_active():
    field = DotField(FLAT)
    field.rebuild((64, 48), SMALL)
    field.render(blank_canvas(64, 48), VisualMode.FLAT_COLOR, None, None)
    assert not field.grid.active.any()
    np.testing.assert_allclose(field.grid.radii, SMALL.base_size * INACTIVE_SCALE)


def test_inactive_dots_are_still_painted():
    field = DotField(FLAT, background_tone=(0, 0, 0))
    field.rebuild((64, 48), LARGE)
    canvas = blank_canvas(64, 48, value=255)
    field.render(canvas, VisualMode.FLAT_COLOR, None, None)
    assert canvas[16, 16, 0] < 128
    # between dots stays untouched
    assert canvas[8, 8, 0] == 255


def test_out_of_range_anchor_is_inactive():
    grid = DotGrid((100, 100), SMALL)
    # a grid built for a larger canvas than the one it is sampled against
    grid.canvas_size = (50, 50)
    grid.sample(make_mask(np.ones((10, 10))))
    i = index_of(grid, 80, 80)
    assert not grid.active[i]
    assert grid.active[index_of(grid, 16, 16)]


def test_reveal_mode_reads_background_pixel():
    cells = np.ones((12, 16), dtype=np.uint8)
    pixels = np.zeros((48, 64, 4), dtype=np.uint8)
    pixels[16, 24] = (1, 2, 3, 255)
    field = DotField(FLAT)
    field.rebuild((64, 48), SMALL)
    field.render(
        blank_canvas(64, 48),
        VisualMode.IMAGE_REVEAL,
        make_mask(cells),
        BackgroundFrame(pixels),
    )
    grid = field.grid
    assert tuple(grid.colors[index_of(grid, 24, 16)]) == (1, 2, 3)
    assert tuple(grid.colors[index_of(grid, 32, 16)]) == (0, 0, 0)


@pytest.mark.parametrize(
    "background",
    [None, BackgroundFrame(np.full((48, 64, 4), 50, np.uint8), available=False)],
)
def test_reveal_mode_without_background_falls_back_to_flat(background):
    field = DotField(FLAT)
    field.rebuild((64, 48), SMALL)
    field.render(
        blank_canvas(64, 48),
        VisualMode.VIDEO_REVEAL,
        make_mask(np.ones((12, 16))),
        background,
    )
    grid = field.grid
    assert grid.active.any()
    assert all(tuple(c) == FLAT for c in grid.colors[grid.active])


def test_dots_view_matches_arrays():
    field = DotField(FLAT)
    field.rebuild((16, 16), SMALL)
    field.render(blank_canvas(16, 16), VisualMode.FLAT_COLOR, make_mask([[1]]), None)
    dots = list(field.grid.dots())
    assert len(dots) == 4
    assert dots[0].base_x == 0 and dots[0].base_y == 0
    assert all(d.active for d in dots)
    assert dots[0].color == FLAT
    assert dots[0].radius == pytest.approx(SMALL.base_size * ACTIVE_SCALE)
