"""
Ghost trail: the canvas is faded towards the background tone each frame
instead of cleared, by an amount that depends on the frame interval.
"""

from __future__ import annotations
import math

import numpy as np

from .profiler import get_profiler

DEFAULT_TAU_MS = 300.0


def fade_factor(elapsed_ms: float, tau_ms: float = DEFAULT_TAU_MS) -> float:
    """Overlay opacity for a frame interval: 0 at 0 ms, approaching 1 for long stalls."""
    if elapsed_ms <= 0.0:
        return 0.0
    return min(1.0, 1.0 - math.exp(-elapsed_ms / tau_ms))


class TrailAccumulator:
    """
    Ghost trail: instead of clearing the canvas, paint a translucent layer of
    the background tone over it, with an opacity that depends on how long the
    last frame took.
    """

    def __init__(
        self,
        tone: tuple[int, int, int] = (0, 0, 0),
        tau_ms: float = DEFAULT_TAU_MS,
    ):
        self.tone = np.array(tuple(tone) + (255,), dtype=np.float32)
        self.tau_ms = tau_ms
        self.last_ms: float | None = None
        self.profiler = get_profiler()

    def reset(self):
        self.last_ms = None

    def clear(self, canvas: np.ndarray):
        canvas[...] = self.tone.astype(np.uint8)

    def fade(
        self,
        canvas: np.ndarray,
        canvas_size: tuple[int, int],
        elapsed_ms: float,
        enabled: bool,
    ):
        cw, ch = canvas_size
        if cw <= 0 or ch <= 0:
            return
        with self.profiler.record("fade"):
            if not enabled:
                self.clear(canvas)
                return
            alpha = fade_factor(elapsed_ms, self.tau_ms)
            if alpha <= 0.0:
                return
            if alpha >= 1.0:
                self.clear(canvas)
                return
            tone = self.tone[:3]
            blended = canvas[..., :3].astype(np.float32)
            blended += (tone - blended) * alpha
            # Round towards the tone so trails always finish fading out
            below = blended < tone
            blended[below] = np.ceil(blended[below])
            blended[~below] = np.floor(blended[~below])
            canvas[..., :3] = blended.astype(np.uint8)
            canvas[..., 3] = 255

    def tick(
        self,
        canvas: np.ndarray,
        canvas_size: tuple[int, int],
        now_ms: float,
        enabled: bool,
    ) -> float:
        """Fade using the time since the previous tick; returns the elapsed ms used."""
        elapsed = 0.0 if self.last_ms is None else max(0.0, now_ms - self.last_ms)
        self.last_ms = now_ms
        self.fade(canvas, canvas_size, elapsed, enabled)
        return elapsed
