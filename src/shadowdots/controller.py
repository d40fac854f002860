from __future__ import annotations
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

from .dots import DENSITY_PRESETS, DensityPreset
from .logging import get_logger
from .media import MediaEntry, load_source
from .modes import VisualMode

__all__ = ["SessionModeController", "VisualMode"]

_MODE_FOR_KIND = {
    "image": VisualMode.IMAGE_REVEAL,
    "video": VisualMode.VIDEO_REVEAL,
}


class SessionModeController:
    """
    Session state the user can cycle through: visual mode and reveal media,
    dot density, trail and mirror toggles.

    Media is decoded on a worker thread. Each selection bumps a generation
    counter; a load that finishes after a newer selection is released and
    dropped instead of replacing the current source.
    """

    def __init__(
        self,
        discover: Callable[[], list[MediaEntry]],
        density: int = 1,
        trail_enabled: bool = True,
        mirrored: bool = True,
        loader: Callable[[MediaEntry], object] = load_source,
    ):
        self.discover = discover
        self.loader = loader
        self.logger = get_logger(__name__)

        self.mode = VisualMode.FLAT_COLOR
        self.media_index: int | None = None
        self.density_index = int(density) % len(DENSITY_PRESETS)
        self.trail_enabled = trail_enabled
        self.mirrored = mirrored

        self._lock = threading.Lock()
        self._generation = 0
        self._source = None
        self._pending: Future | None = None
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="media-loader"
        )
        self._closed = False
        self._settled = threading.Event()
        self._settled.set()

    # --- density / toggles ---

    @property
    def density(self) -> DensityPreset:
        return DENSITY_PRESETS[self.density_index]

    def cycle_density(self) -> DensityPreset:
        self.density_index = (self.density_index + 1) % len(DENSITY_PRESETS)
        self.logger.info(f"Dot density: {self.density.label}")
        return self.density

    def toggle_trail(self) -> bool:
        self.trail_enabled = not self.trail_enabled
        self.logger.info(f"Ghost trail {'on' if self.trail_enabled else 'off'}")
        return self.trail_enabled

    def toggle_mirror(self) -> bool:
        self.mirrored = not self.mirrored
        self.logger.info(f"Mirror {'on' if self.mirrored else 'off'}")
        return self.mirrored

    # --- mode / media ---

    def active_source(self):
        """The reveal source to composite this tick, or None while loading / flat."""
        with self._lock:
            if self.mode is VisualMode.FLAT_COLOR:
                return None
            return self._source

    @property
    def loading(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def cycle_mode(self) -> VisualMode:
        entries = self.discover()
        n = len(entries)
        current = -1 if self.media_index is None else self.media_index
        next_index = (current + 1) % (n + 1)

        if n == 0 or next_index == n:
            self.logger.info("Switching to: flat color")
            self._select(None)
            return self.mode

        entry = entries[next_index]
        self.logger.info(f"Switching to: {entry.name}")
        self._select(entry, next_index)
        return self.mode

    def _select(self, entry: MediaEntry | None, index: int | None = None):
        with self._lock:
            self._generation += 1
            generation = self._generation
            old, self._source = self._source, None
            if self._pending is not None:
                self._pending.cancel()
                self._pending = None
            if entry is None:
                self.mode = VisualMode.FLAT_COLOR
                self.media_index = None
                self._settled.set()
            else:
                self.mode = _MODE_FOR_KIND[entry.kind]
                self.media_index = index
                self._settled.clear()
        if old is not None:
            old.release()
        if entry is None or self._closed:
            return

        future = self._executor.submit(self.loader, entry)
        with self._lock:
            if generation == self._generation:
                self._pending = future
        future.add_done_callback(
            lambda f, g=generation, e=entry: self._on_loaded(f, g, e)
        )

    def _on_loaded(self, future: Future, generation: int, entry: MediaEntry):
        if future.cancelled():
            return
        try:
            source = future.result()
        except Exception as e:
            self.logger.warning(f"Failed to load {entry.name}: {e}")
            source = None

        with self._lock:
            stale = generation != self._generation or self._closed
            if not stale:
                self._source = source
                self._pending = None
                self._settled.set()
        if source is None:
            return
        if stale:
            self.logger.debug(f"Dropping stale load of {entry.name}")
            source.release()
        else:
            self.logger.info(f"Ready: {entry.name} ({source.width}x{source.height})")

    def wait_settled(self, timeout: float | None = None) -> bool:
        """Block until the current selection has finished loading (or failed)."""
        return self._settled.wait(timeout)

    def close(self):
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._generation += 1
            source, self._source = self._source, None
            pending, self._pending = self._pending, None
            self._settled.set()
        if pending is not None:
            pending.cancel()
        self._executor.shutdown(wait=True)
        if source is not None:
            source.release()
