from __future__ import annotations
import os
import freetype
import moderngl
import numpy as np

from . import shaders as S
from .config import AppConfig
from .logging import get_logger

FONT_CANDIDATES = (
    "fonts/FiraCode-SemiBold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/System/Library/Fonts/Menlo.ttc",
    "C:/Windows/Fonts/consola.ttf",
)

LINE_HEIGHT = 18


class DebugOverlay:
    """Monospace status text drawn from a freetype glyph atlas (ASCII only)."""

    def __init__(self, ctx: moderngl.Context, cfg: AppConfig):
        self.ctx = ctx
        self.cfg = cfg
        self.logger = get_logger(__name__)
        self.prog = self.ctx.program(
            vertex_shader=S.VS_DEBUGOVERLAY, fragment_shader=S.FS_DEBUGOVERLAY
        )
        self.sampler = self.ctx.sampler(
            filter=(moderngl.LINEAR, moderngl.LINEAR),
            repeat_x=False,
            repeat_y=False,
        )

        self.max_chars = 1024
        # 6 vertices per glyph quad, (x, y, u, v) each
        self.vertices = np.zeros((self.max_chars * 6, 4), dtype="f4")
        self.vbo = self.ctx.buffer(self.vertices.tobytes(), dynamic=True)
        self.vao = self.ctx.vertex_array(
            self.prog, [(self.vbo, "2f 2f", "in_vert", "in_uv")]
        )
        self.char_count = 0
        self.glyphs = {}
        self.font_texture = None
        self.font_loaded = False

        font_path = self._find_font_path()
        if font_path is None:
            self.logger.warning("No monospace font found; debug overlay disabled.")
            return
        try:
            self._load_font(font_path)
            self.font_loaded = self.font_texture is not None
            self.logger.info(f"Debug overlay font: {font_path}")
        except Exception as e:
            self.logger.warning(f"Failed to load font '{font_path}': {e}")

    def _find_font_path(self) -> str | None:
        for path in FONT_CANDIDATES:
            if os.path.exists(path):
                return path
            self.logger.debug(f"Font not found at: {path}")
        return None

    def _load_font(self, font_path: str, size: int = 16):
        face = freetype.Face(font_path)
        face.set_pixel_sizes(0, size)

        bitmaps = []
        atlas_w, atlas_h = 0, 0
        for code in range(32, 127):
            face.load_char(chr(code), freetype.FT_LOAD_RENDER)
            g = face.glyph
            w, h = g.bitmap.width, g.bitmap.rows
            pixels = None
            if w > 0 and h > 0:
                pixels = np.array(g.bitmap.buffer, dtype="u1").reshape((h, w))
            bitmaps.append(
                (chr(code), pixels, w, h, g.bitmap_left, g.bitmap_top, g.advance.x >> 6)
            )
            atlas_w += w
            atlas_h = max(atlas_h, h)

        if not atlas_w or not atlas_h:
            self.logger.warning("Font atlas is empty, debug overlay will not render text.")
            return

        atlas = np.zeros((atlas_h, atlas_w), dtype="u1")
        x = 0
        for ch, pixels, w, h, left, top, advance in bitmaps:
            if pixels is not None:
                atlas[0:h, x : x + w] = pixels
            self.glyphs[ch] = {
                "size": (w, h),
                "bearing": (left, top),
                "advance": advance,
                "u": x / atlas_w,
            }
            x += w

        self.ctx.pack_alignment = 1
        self.font_texture = self.ctx.texture(
            (atlas_w, atlas_h), 1, atlas.tobytes(), dtype="f1"
        )
        self.ctx.pack_alignment = 4
        self.sampler.use(location=0)

    def render(self, lines: list[str], x: int, y: int, color=(1.0, 1.0, 1.0, 0.9)):
        if not self.font_loaded:
            return
        self.char_count = 0
        cursor_y = y
        for line in lines:
            cursor_x = x
            for ch in line:
                glyph = self.glyphs.get(ch)
                if glyph is None or self.char_count >= self.max_chars:
                    continue
                self._add_quad(glyph, cursor_x, cursor_y)
                cursor_x += glyph["advance"]
            cursor_y -= LINE_HEIGHT

        if self.char_count > 0:
            self.vbo.write(self.vertices[: self.char_count * 6].tobytes())
            self.prog["textColor"].value = color
            self.font_texture.use(location=0)
            self.ctx.enable(moderngl.BLEND)
            self.ctx.blend_func = moderngl.SRC_ALPHA, moderngl.ONE_MINUS_SRC_ALPHA
            self.vao.render(moderngl.TRIANGLES, vertices=self.char_count * 6)
            self.ctx.disable(moderngl.BLEND)

    def _add_quad(self, glyph, x, y):
        w, h = glyph["size"]
        xpos = x + glyph["bearing"][0]
        ypos = y - (h - glyph["bearing"][1])

        u0 = glyph["u"]
        u1 = u0 + w / self.font_texture.width
        v1 = h / self.font_texture.height

        # window pixels -> normalized device coordinates
        vw, vh = max(1, self.cfg.width), max(1, self.cfg.height)
        px0 = (xpos / vw) * 2.0 - 1.0
        py0 = (ypos / vh) * 2.0 - 1.0
        px1 = px0 + (w / vw) * 2.0
        py1 = py0 + (h / vh) * 2.0

        i = self.char_count * 6
        self.vertices[i : i + 6] = (
            (px0, py1, u0, 0.0),
            (px0, py0, u0, v1),
            (px1, py0, u1, v1),
            (px0, py1, u0, 0.0),
            (px1, py0, u1, v1),
            (px1, py1, u1, 0.0),
        )
        self.char_count += 1

    def release(self):
        if self.font_texture is not None:
            self.font_texture.release()
            self.font_texture = None
        self.font_loaded = False
        self.sampler.release()
        self.vao.release()
        self.vbo.release()
        self.prog.release()
