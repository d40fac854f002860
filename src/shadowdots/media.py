"""
Reveal media: directory discovery and the image / looping-video sources the
compositor draws from. Both source kinds expose ``width``, ``height`` and
``current_frame()`` so the compositor never branches on type.
"""

from __future__ import annotations
import os
import time
from dataclasses import dataclass
from typing import Callable

import cv2
import numpy as np

from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_EXTENSIONS = {
    "image": (".jpg", ".jpeg", ".png", ".gif"),
    "video": (".mp4", ".webm", ".mov"),
}


class MediaLoadError(RuntimeError):
    pass


@dataclass(frozen=True)
class MediaEntry:
    url: str
    name: str
    kind: str  # 'image' or 'video'


def discover_media(
    media_dir: str, extensions: dict[str, tuple[str, ...]] | None = None
) -> list[MediaEntry]:
    """List reveal media in ``media_dir``, sorted by file name."""
    extensions = extensions or DEFAULT_EXTENSIONS
    try:
        names = sorted(os.listdir(media_dir))
    except OSError as e:
        logger.warning(f"Error scanning media directory '{media_dir}': {e}")
        return []

    entries = []
    for name in names:
        ext = os.path.splitext(name)[1].lower()
        if ext in extensions.get("video", ()):
            kind = "video"
        elif ext in extensions.get("image", ()):
            kind = "image"
        else:
            continue
        entries.append(MediaEntry(os.path.join(media_dir, name), name, kind))
    return entries


class ImageSource:
    kind = "image"

    def __init__(self, rgb: np.ndarray):
        self._rgb = rgb

    @property
    def width(self) -> int:
        return int(self._rgb.shape[1])

    @property
    def height(self) -> int:
        return int(self._rgb.shape[0])

    def current_frame(self) -> np.ndarray:
        return self._rgb

    def release(self):
        pass

    @classmethod
    def load(cls, path: str) -> "ImageSource":
        bgr = cv2.imread(path, cv2.IMREAD_COLOR)
        if bgr is None:
            # cv2.imread has no GIF decoder; take the first frame instead
            cap = cv2.VideoCapture(path)
            try:
                ok, bgr = cap.read()
            finally:
                cap.release()
            if not ok:
                raise MediaLoadError(f"Cannot decode image: {path}")
        return cls(cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB))


class VideoSource:
    """
    Looping, muted background video.

    Frames are pulled from the capture on demand at the file's own frame rate,
    so a slow render loop skips frames rather than slowing the video down.
    """

    kind = "video"

    def __init__(self, cap, clock: Callable[[], float] = time.monotonic):
        self.cap = cap
        self.clock = clock
        fps = cap.get(cv2.CAP_PROP_FPS) or 0.0
        self.frame_period = 1.0 / fps if fps > 1e-3 else 1.0 / 30.0
        self._frame: np.ndarray | None = None
        self._next_t = 0.0

    @property
    def width(self) -> int:
        return 0 if self._frame is None else int(self._frame.shape[1])

    @property
    def height(self) -> int:
        return 0 if self._frame is None else int(self._frame.shape[0])

    def _read(self) -> bool:
        ok, bgr = self.cap.read()
        if not ok:
            # loop
            self.cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, bgr = self.cap.read()
            if not ok:
                return False
        self._frame = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
        return True

    def buffer(self):
        """Decode the first frame; after this, playback can start without stalling."""
        if not self._read():
            raise MediaLoadError("Video produced no frames")
        self._next_t = self.clock() + self.frame_period

    def current_frame(self) -> np.ndarray | None:
        now = self.clock()
        if self._frame is not None and now >= self._next_t:
            behind = int((now - self._next_t) / self.frame_period)
            for _ in range(behind):
                if not self.cap.grab():
                    break
            self._read()
            self._next_t = now + self.frame_period
        return self._frame

    def release(self):
        self.cap.release()

    @classmethod
    def load(cls, path: str) -> "VideoSource":
        cap = cv2.VideoCapture(path)
        if not cap.isOpened():
            raise MediaLoadError(f"Cannot open video: {path}")
        src = cls(cap)
        try:
            src.buffer()
        except MediaLoadError:
            cap.release()
            raise MediaLoadError(f"Video produced no frames: {path}")
        return src


def load_source(entry: MediaEntry):
    if entry.kind == "video":
        return VideoSource.load(entry.url)
    return ImageSource.load(entry.url)
