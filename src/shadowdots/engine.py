from __future__ import annotations
import time
from typing import Callable

import numpy as np

from .compositor import BackgroundCompositor
from .config import AppConfig
from .controller import SessionModeController
from .dots import DotField
from .logging import get_logger
from .profiler import get_profiler
from .stabilizer import MaskStabilizer, binarize
from .trail import TrailAccumulator


class FrameScheduler:
    """
    Fixed-rate tick pacing for the render loop.

    ``wait`` sleeps until the next deadline. If the loop falls more than a
    whole period behind, the schedule restarts from now instead of bursting
    to catch up. ``stop`` ends the loop at the next check of ``running``.
    """

    def __init__(
        self,
        target_fps: float,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.period = 1.0 / target_fps if target_fps > 0 else 0.0
        self.clock = clock
        self.sleep = sleep
        self.running = True
        self._next: float | None = None

    def wait(self):
        now = self.clock()
        if self._next is None or now - self._next > self.period:
            self._next = now
        self._next += self.period
        delay = self._next - now
        if delay > 0:
            self.sleep(delay)

    def stop(self):
        self.running = False


class DotEngine:
    """
    The per-frame pipeline: trail fade, background compose, mask read, dots.

    The render loop owns the canvas, the dot grid and the compositor's scratch
    buffer. The segmentation callback only touches the stabilizer, and the
    render side only reads its published snapshots. The ``on_*`` methods are
    the mutation entry points for the window shell.
    """

    def __init__(
        self,
        cfg: AppConfig,
        controller: SessionModeController,
        stabilizer: MaskStabilizer,
        oracle=None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.cfg = cfg
        self.controller = controller
        self.stabilizer = stabilizer
        self.oracle = oracle
        self.clock = clock
        self.logger = get_logger(__name__)
        self.profiler = get_profiler()

        self.compositor = BackgroundCompositor()
        self.dot_field = DotField(cfg.flat_color, cfg.background_tone)
        self.trail = TrailAccumulator(cfg.background_tone, cfg.trail_tau_ms)

        self.frame_count = 0
        self.canvas_size = (0, 0)
        self.canvas = np.zeros((0, 0, 4), dtype=np.uint8)
        self.on_resize((cfg.width, cfg.height))

    # --- entry points ---

    def on_resize(self, new_size: tuple[int, int]):
        w, h = (max(0, int(v)) for v in new_size)
        if (w, h) == self.canvas_size and self.dot_field.grid is not None:
            return
        self.logger.info(f"Canvas resized to {w}x{h}")
        self.canvas_size = (w, h)
        self.canvas = np.zeros((h, w, 4), dtype=np.uint8)
        self.trail.clear(self.canvas)
        self.trail.reset()
        self.dot_field.rebuild(self.canvas_size, self.controller.density)

    def on_mode_cycle(self):
        return self.controller.cycle_mode()

    def on_density_cycle(self):
        preset = self.controller.cycle_density()
        self.dot_field.rebuild(self.canvas_size, preset)
        return preset

    def on_trail_toggle(self):
        enabled = self.controller.toggle_trail()
        if enabled:
            self.trail.reset()
        return enabled

    def on_mirror_toggle(self):
        return self.controller.toggle_mirror()

    def on_segmentation_result(self, mask: np.ndarray | None):
        """
        Oracle callback, runs on the segmentation worker thread.

        None means the model saw nobody: the published mask is dropped. A soft
        mask is thresholded into cells before it joins the history.
        """
        if mask is None:
            self.stabilizer.clear()
            return
        self.stabilizer.ingest(binarize(mask, self.cfg.mask_threshold))

    # --- per tick ---

    def submit(self, frame_rgb: np.ndarray | None) -> bool:
        """Offer a camera frame to the oracle on every ``submit_every``-th tick."""
        if self.oracle is None or frame_rgb is None:
            return False
        if self.frame_count % max(1, self.cfg.submit_every) != 0:
            return False
        return self.oracle.send(frame_rgb)

    def render(self, now_ms: float | None = None) -> np.ndarray:
        if now_ms is None:
            now_ms = self.clock() * 1000.0
        size = self.canvas_size
        if size[0] == 0 or size[1] == 0:
            return self.canvas

        self.trail.tick(self.canvas, size, now_ms, self.controller.trail_enabled)

        background = None
        source = self.controller.active_source()
        if source is not None:
            background = self.compositor.compose(
                source, size, self.controller.mirrored
            )

        mask = self.stabilizer.current_mask()
        self.dot_field.render(self.canvas, self.controller.mode, mask, background)
        return self.canvas

    def tick(
        self, frame_rgb: np.ndarray | None = None, now_ms: float | None = None
    ) -> np.ndarray:
        self.frame_count += 1
        self.submit(frame_rgb)
        return self.render(now_ms)
