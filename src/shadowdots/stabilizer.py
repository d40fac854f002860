"""
Temporal and spatial denoising of the person mask.

The segmentation model runs at a low resolution and flickers from frame to
frame. MaskStabilizer keeps the last few binary masks, takes a per-cell
majority vote over them and then closes small holes with a 3x3 dilation
followed by a 3x3 erosion. The result is published as an immutable
StabilizedMask that the render loop can read at any time.
"""

from __future__ import annotations
import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable

import cv2
import numpy as np

from .logging import get_logger

HISTORY_CAPACITY = 4
VOTE_RATIO = 0.75
KERNEL_RADIUS = 1

_KERNEL = np.ones((2 * KERNEL_RADIUS + 1, 2 * KERNEL_RADIUS + 1), dtype=np.uint8)


class HistoryShapeError(RuntimeError):
    """Raised in strict mode when history entries disagree on shape."""


@dataclass(frozen=True)
class StabilizedMask:
    cells: np.ndarray  # (Hs, Ws) uint8 0/1, read-only
    version: int
    timestamp: float

    @property
    def width(self) -> int:
        return int(self.cells.shape[1])

    @property
    def height(self) -> int:
        return int(self.cells.shape[0])


def binarize(mask: np.ndarray, threshold: float = 0.5) -> np.ndarray:
    """Threshold a soft (float) model mask into 0/1 cells."""
    return (np.asarray(mask) > threshold).astype(np.uint8)


def temporal_vote(history) -> np.ndarray:
    """
    Per-cell majority vote over a sequence of equally shaped binary masks.

    A cell is on when at least ceil(len(history) * VOTE_RATIO) entries agree:
    one entry passes through unchanged, four entries need three votes.
    """
    stack = np.stack([np.asarray(m, dtype=np.uint8) for m in history])
    needed = math.ceil(len(history) * VOTE_RATIO)
    return (stack.sum(axis=0) >= needed).astype(np.uint8)


def close_mask(mask: np.ndarray) -> np.ndarray:
    """
    Morphological closing with zero padding.

    Off-grid neighbours count as background for both passes, so dilation
    never wraps and any cell whose erosion footprint leaves the grid ends up
    off.
    """
    mask = np.ascontiguousarray(mask, dtype=np.uint8)
    dilated = cv2.dilate(
        mask, _KERNEL, borderType=cv2.BORDER_CONSTANT, borderValue=0
    )
    return cv2.erode(
        dilated, _KERNEL, borderType=cv2.BORDER_CONSTANT, borderValue=0
    )


class MaskStabilizer:
    """
    Owns the mask history and the published snapshot.

    ``ingest`` and ``clear`` are called from the segmentation callback thread;
    ``current_mask`` is polled by the render loop. Publication is a single
    reference swap, so a reader sees either the old or the new snapshot.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        strict: bool = False,
    ):
        self.clock = clock
        self.strict = strict
        self.logger = get_logger(__name__)
        self._history: deque[np.ndarray] = deque(maxlen=HISTORY_CAPACITY)
        self._lock = threading.Lock()
        self._snapshot: StabilizedMask | None = None
        self._version = 0

    @property
    def history_length(self) -> int:
        return len(self._history)

    def current_mask(self) -> StabilizedMask | None:
        return self._snapshot

    def ingest(self, raw_mask: np.ndarray | None):
        if raw_mask is None:
            return
        raw = np.asarray(raw_mask)
        if raw.ndim != 2 or raw.size == 0:
            return
        raw = (raw > 0).astype(np.uint8)

        with self._lock:
            if self._history and self._history[-1].shape != raw.shape:
                self.logger.info(
                    "Mask resolution changed %s -> %s, resetting history",
                    self._history[-1].shape,
                    raw.shape,
                )
                self._history.clear()
            self._history.append(raw)

            try:
                voted = temporal_vote(self._history)
            except ValueError:
                # np.stack refuses mixed shapes
                if self.strict:
                    raise HistoryShapeError(
                        f"mask history has mixed shapes: "
                        f"{[m.shape for m in self._history]}"
                    )
                self.logger.warning("Mask history corrupted, clearing and retrying")
                self._history.clear()
                self._history.append(raw)
                voted = temporal_vote(self._history)

            closed = close_mask(voted)
            closed.setflags(write=False)
            self._version += 1
            self._snapshot = StabilizedMask(closed, self._version, self.clock())

    def clear(self):
        """Forget everything; the oracle saw nobody in the frame."""
        with self._lock:
            self._history.clear()
            self._snapshot = None
