from __future__ import annotations
import moderngl
import numpy as np

from . import shaders as S
from .logging import get_logger
from .profiler import get_profiler


def fullscreen_quad(ctx):
    v = np.array([-1, -1, 1, -1, -1, 1, 1, 1], dtype="f4")
    return ctx.buffer(v.tobytes())


class CanvasPresenter:
    """Uploads the RGBA canvas to a texture and draws it over the whole window."""

    def __init__(self, ctx: moderngl.Context):
        self.ctx = ctx
        self.logger = get_logger(__name__)
        self.profiler = get_profiler()
        self.prog = ctx.program(vertex_shader=S.VS, fragment_shader=S.FS_SHOW_CANVAS)
        self.vbo = fullscreen_quad(ctx)
        self.vao = ctx.simple_vertex_array(self.prog, self.vbo, "in_vert")
        self.tex = None
        self.tex_size = (0, 0)

    def _ensure_texture(self, w: int, h: int):
        if self.tex is not None and self.tex_size == (w, h):
            return
        if self.tex is not None:
            self.tex.release()
        self.tex = self.ctx.texture((w, h), 4, dtype="f1")
        self.tex.filter = (moderngl.NEAREST, moderngl.NEAREST)
        self.tex.repeat_x = False
        self.tex.repeat_y = False
        self.tex_size = (w, h)
        self.logger.debug(f"Canvas texture {w}x{h}")

    def present(self, canvas: np.ndarray, viewport: tuple[int, int], mirrored: bool):
        h, w = canvas.shape[:2]
        if w == 0 or h == 0:
            self.ctx.clear(0.0, 0.0, 0.0, 1.0)
            return
        with self.profiler.record("present"):
            self._ensure_texture(w, h)
            self.tex.write(np.ascontiguousarray(canvas).tobytes())
            self.ctx.viewport = (0, 0, int(viewport[0]), int(viewport[1]))
            self.tex.use(location=0)
            self.prog["canvas"].value = 0
            self.prog["mirror"].value = 1 if mirrored else 0
            self.vao.render(moderngl.TRIANGLE_STRIP)

    def release(self):
        if self.tex is not None:
            self.tex.release()
            self.tex = None
        self.vao.release()
        self.vbo.release()
        self.prog.release()
