"""
Canvas-aligned background frames: a reveal image or video scaled to cover the
canvas (centered, no letterboxing), optionally mirrored.
"""

from __future__ import annotations
from dataclasses import dataclass

import cv2
import numpy as np

from .logging import get_logger
from .profiler import get_profiler


@dataclass(frozen=True)
class CoverFit:
    scale: float
    draw_w: float
    draw_h: float
    offset_x: float
    offset_y: float


@dataclass
class BackgroundFrame:
    pixels: np.ndarray  # (H, W, 4) RGBA uint8, canvas aligned
    available: bool = True


def cover_fit(sw: float, sh: float, cw: float, ch: float) -> CoverFit:
    """
    Scale a (sw, sh) source just enough to cover a (cw, ch) canvas, centered.

    Excess on the longer axis is cropped symmetrically, so the offsets are
    zero or negative.
    """
    scale = max(cw / sw, ch / sh)
    draw_w = sw * scale
    draw_h = sh * scale
    return CoverFit(
        scale=scale,
        draw_w=draw_w,
        draw_h=draw_h,
        offset_x=(cw - draw_w) / 2.0,
        offset_y=(ch - draw_h) / 2.0,
    )


def _to_rgba(frame: np.ndarray) -> np.ndarray:
    if frame.ndim == 2:
        return cv2.cvtColor(frame, cv2.COLOR_GRAY2RGBA)
    if frame.shape[2] == 3:
        return cv2.cvtColor(frame, cv2.COLOR_RGB2RGBA)
    return frame


class BackgroundCompositor:
    """
    Renders the current reveal source into a canvas-sized RGBA scratch buffer.

    The buffer is owned here and reused between ticks; it is only reallocated
    when the canvas size changes. Frames handed out are views of it and are
    valid until the next ``compose`` call.
    """

    def __init__(self):
        self.logger = get_logger(__name__)
        self.profiler = get_profiler()
        self._buffer: np.ndarray | None = None

    def _ensure_buffer(self, cw: int, ch: int) -> np.ndarray:
        if self._buffer is None or self._buffer.shape[:2] != (ch, cw):
            self.logger.debug(f"Allocating background scratch buffer {cw}x{ch}")
            self._buffer = np.zeros((ch, cw, 4), dtype=np.uint8)
        return self._buffer

    def compose(self, source, canvas_size: tuple[int, int], mirrored: bool):
        cw, ch = (int(v) for v in canvas_size)
        buf = self._ensure_buffer(max(cw, 0), max(ch, 0))

        frame = source.current_frame() if source is not None else None
        sw = source.width if source is not None else 0
        sh = source.height if source is not None else 0
        if frame is None or sw <= 0 or sh <= 0 or cw <= 0 or ch <= 0:
            buf.fill(0)
            return BackgroundFrame(buf, available=False)

        with self.profiler.record("compose"):
            fit = cover_fit(sw, sh, cw, ch)
            draw_w = max(cw, int(round(fit.draw_w)))
            draw_h = max(ch, int(round(fit.draw_h)))
            scaled = cv2.resize(
                frame, (draw_w, draw_h), interpolation=cv2.INTER_LINEAR
            )
            # Reflect the whole drawn image, then crop: with an odd excess the
            # crop window must mirror too.
            if mirrored:
                scaled = cv2.flip(scaled, 1)
            x0 = (draw_w - cw) // 2
            y0 = (draw_h - ch) // 2
            crop = scaled[y0 : y0 + ch, x0 : x0 + cw]
            buf[...] = _to_rgba(crop)

        return BackgroundFrame(buf, available=True)
