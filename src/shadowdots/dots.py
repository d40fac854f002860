"""
The dot grid: anchors laid out at the density preset's spacing, switched on
where the stabilized mask covers them and painted onto the RGBA canvas.
"""

from __future__ import annotations
import math
from dataclasses import dataclass

import cv2
import numpy as np

from .compositor import BackgroundFrame
from .modes import VisualMode
from .logging import get_logger
from .profiler import get_profiler
from .stabilizer import StabilizedMask

ACTIVE_SCALE = 1.5
INACTIVE_SCALE = 0.5

# cv2 sub-pixel drawing: coordinates are fixed point with this many fraction bits
_SHIFT = 4
_ONE = 1 << _SHIFT


@dataclass(frozen=True)
class DensityPreset:
    id: str
    label: str
    spacing: int
    base_size: float


DENSITY_PRESETS = (
    DensityPreset("SMALL", "Dense Small Dots", 8, 1.0),
    DensityPreset("MEDIUM", "Standard Dots", 12, 2.0),
    DensityPreset("LARGE", "Bold Dense Dots", 16, 2.7),
)


@dataclass(frozen=True)
class Dot:
    base_x: int
    base_y: int
    base_size: float
    active: bool
    color: tuple[int, int, int]
    radius: float


class DotGrid:
    """
    Column-major grid of dot anchors for one canvas size and density preset.

    Per-dot state lives in parallel numpy arrays; ``dots()`` gives a per-dot
    view.
    """

    def __init__(self, canvas_size: tuple[int, int], preset: DensityPreset):
        cw, ch = (max(0, int(v)) for v in canvas_size)
        self.canvas_size = (cw, ch)
        self.preset = preset
        cols = math.ceil(cw / preset.spacing)
        rows = math.ceil(ch / preset.spacing)
        xs = np.arange(cols, dtype=np.int32) * preset.spacing
        ys = np.arange(rows, dtype=np.int32) * preset.spacing
        gx, gy = np.meshgrid(xs, ys, indexing="ij")
        self.base_x = gx.ravel()
        self.base_y = gy.ravel()
        n = self.base_x.size
        self.active = np.zeros(n, dtype=bool)
        self.colors = np.zeros((n, 3), dtype=np.uint8)
        self.radii = np.full(n, preset.base_size * INACTIVE_SCALE, dtype=np.float32)

    def __len__(self) -> int:
        return int(self.base_x.size)

    def dots(self):
        for i in range(len(self)):
            yield Dot(
                int(self.base_x[i]),
                int(self.base_y[i]),
                self.preset.base_size,
                bool(self.active[i]),
                tuple(int(c) for c in self.colors[i]),
                float(self.radii[i]),
            )

    def mask_indices(self, mask: StabilizedMask):
        """Map anchors into mask space; returns (mx, my, in_bounds)."""
        cw, ch = self.canvas_size
        sx = mask.width / cw
        sy = mask.height / ch
        mx = np.floor(self.base_x * sx).astype(np.int64)
        my = np.floor(self.base_y * sy).astype(np.int64)
        inside = (mx >= 0) & (my >= 0) & (mx < mask.width) & (my < mask.height)
        return mx, my, inside

    def sample(self, mask: StabilizedMask | None):
        """Update ``active`` from the stabilized mask."""
        self.active[:] = False
        if mask is None or len(self) == 0:
            return
        mx, my, inside = self.mask_indices(mask)
        self.active[inside] = mask.cells[my[inside], mx[inside]] > 0


class DotField:
    """Owns the DotGrid and paints it onto the RGBA canvas each tick."""

    def __init__(
        self,
        flat_color: tuple[int, int, int] = (110, 247, 110),
        background_tone: tuple[int, int, int] = (0, 0, 0),
    ):
        self.flat_color = np.array(flat_color, dtype=np.uint8)
        self.background_tone = tuple(int(c) for c in background_tone)
        self.logger = get_logger(__name__)
        self.profiler = get_profiler()
        self.grid: DotGrid | None = None

    def rebuild(self, canvas_size: tuple[int, int], preset: DensityPreset):
        self.grid = DotGrid(canvas_size, preset)
        self.logger.info(
            f"Rebuilt dot grid: {len(self.grid)} dots "
            f"({preset.id}, spacing {preset.spacing}) for "
            f"{self.grid.canvas_size[0]}x{self.grid.canvas_size[1]}"
        )

    def resolve(
        self,
        mode: VisualMode,
        mask: StabilizedMask | None,
        background: BackgroundFrame | None,
    ):
        """Decide activation, fill colour and radius for every dot."""
        grid = self.grid
        grid.sample(mask)
        base = grid.preset.base_size
        grid.radii[:] = np.where(
            grid.active, base * ACTIVE_SCALE, base * INACTIVE_SCALE
        )
        grid.colors[:] = self.background_tone

        act = grid.active
        use_background = (
            mode is not VisualMode.FLAT_COLOR
            and background is not None
            and background.available
        )
        if not use_background:
            grid.colors[act] = self.flat_color
            return

        h, w = background.pixels.shape[:2]
        px = np.clip(grid.base_x[act], 0, w - 1)
        py = np.clip(grid.base_y[act], 0, h - 1)
        grid.colors[act] = background.pixels[py, px, :3]

    def render(
        self,
        canvas: np.ndarray,
        mode: VisualMode,
        mask: StabilizedMask | None,
        background: BackgroundFrame | None,
    ):
        if self.grid is None or len(self.grid) == 0:
            return
        with self.profiler.record("dots"):
            self.resolve(mode, mask, background)
            for dot in self.grid.dots():
                cv2.circle(
                    canvas,
                    (dot.base_x * _ONE, dot.base_y * _ONE),
                    max(1, round(dot.radius * _ONE)),
                    dot.color + (255,),
                    thickness=-1,
                    lineType=cv2.LINE_AA,
                    shift=_SHIFT,
                )
