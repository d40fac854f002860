from __future__ import annotations
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable

import cv2
import numpy as np
import mediapipe as mp
import torch
from ultralytics import YOLO

from .logging import get_logger
from .profiler import get_profiler


class MediaPipeSegmenter:
    def __init__(self, model_selection: int = 1, mirror: bool = True):
        self.profiler = get_profiler()
        self.mirror = mirror
        mp_seg = mp.solutions.selfie_segmentation
        self.segmenter = mp_seg.SelfieSegmentation(model_selection=model_selection)

    def segment(self, frame_rgb: np.ndarray) -> np.ndarray | None:
        """
        Returns the soft person mask (float32, 0..1) at the model's resolution,
        or None when the model produced nothing.
        """
        if self.mirror:
            frame_rgb = cv2.flip(frame_rgb, 1)
        with self.profiler.record("mediapipe_process"):
            res = self.segmenter.process(frame_rgb)
        mask = res.segmentation_mask
        if mask is None:
            return None
        return mask.astype(np.float32)

    def close(self):
        self.segmenter.close()


class YOLOSegmenter:
    def __init__(
        self,
        model_name: str,
        seg_w: int,
        seg_h: int,
        device: str = "cuda",
        mirror: bool = True,
    ):
        self.profiler = get_profiler()
        self.mirror = mirror
        self.model = YOLO(model_name)
        self.seg_w = seg_w
        self.seg_h = seg_h
        self.device = device

    def _preprocess_image(self, img: np.ndarray) -> torch.Tensor:
        """Converts a NumPy image to a pre-processed torch tensor."""
        img = np.ascontiguousarray(img)
        tensor = torch.from_numpy(img).to(self.device)
        if self.device == "cuda":
            tensor = tensor.half()
        # HWC to CHW, add batch dimension
        tensor = tensor.permute(2, 0, 1).unsqueeze(0)
        return tensor / 255.0

    def segment(self, frame_rgb: np.ndarray) -> np.ndarray | None:
        if self.mirror:
            frame_rgb = cv2.flip(frame_rgb, 1)

        with self.profiler.record("yolo_preprocess"):
            model_input = cv2.resize(
                frame_rgb, (self.seg_w, self.seg_h), interpolation=cv2.INTER_LINEAR
            )
            input_tensor = self._preprocess_image(model_input)

        with self.profiler.record("yolo_inference"):
            results = self.model(
                input_tensor,
                classes=[0],  # class 0 is 'person'
                verbose=False,
                imgsz=(self.seg_h, self.seg_w),
            )

        if not results or not results[0].masks:
            return None

        # Union of all detected people at the model's native mask resolution
        combined = None
        for m in results[0].masks.data:
            m = m.cpu().numpy().astype(np.float32)
            combined = m if combined is None else np.maximum(combined, m)
        if combined is None or combined.max() == 0:
            return None
        return combined

    def close(self):
        pass


class SegmentationOracle:
    """
    Runs a segmenter off the render thread.

    ``send`` never blocks: at most one frame is in flight, and a frame offered
    while the previous one is still being processed is skipped, not queued.
    Each finished call invokes ``on_result(mask)`` from the worker thread with
    the soft mask or None. Failures are logged and counted; after
    ``degraded_after`` consecutive failures ``degraded`` turns on and
    ``on_degraded(True)`` fires, a later success turns it off again.
    """

    def __init__(
        self,
        backend,
        on_result: Callable[[np.ndarray | None], None],
        degraded_after: int = 3,
        on_degraded: Callable[[bool], None] | None = None,
    ):
        self.backend = backend
        self.on_result = on_result
        self.on_degraded = on_degraded
        self.degraded_after = degraded_after
        self.logger = get_logger(__name__)

        self.consecutive_failures = 0
        self.degraded = False
        self.submitted = 0
        self.skipped = 0

        self._lock = threading.Lock()
        self._in_flight: Future | None = None
        self._closed = False
        self._backend_closed = False
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="segmentation"
        )

    @property
    def busy(self) -> bool:
        return self._in_flight is not None

    def send(self, frame_rgb: np.ndarray) -> bool:
        """Submit a frame; returns False if it was skipped."""
        with self._lock:
            if self._closed or self._in_flight is not None:
                self.skipped += 1
                return False
            future = self._executor.submit(self._run, frame_rgb)
            self._in_flight = future
            self.submitted += 1
        future.add_done_callback(self._report_crash)
        return True

    def _report_crash(self, future: Future):
        # Errors raised by on_result itself (the backend's are handled in _run)
        if not future.cancelled() and future.exception() is not None:
            self.logger.error(
                "Segmentation result handler failed", exc_info=future.exception()
            )

    def _run(self, frame_rgb: np.ndarray):
        try:
            mask = self.backend.segment(frame_rgb)
        except Exception as e:
            self._record_failure(e)
        else:
            self._record_success()
            if not self._closed:
                self.on_result(mask)
        finally:
            with self._lock:
                self._in_flight = None
                close_now = self._closed and not self._backend_closed
                if close_now:
                    self._backend_closed = True
            if close_now:
                self._close_backend()

    def _record_failure(self, exc: Exception):
        self.consecutive_failures += 1
        self.logger.warning(
            f"Segmentation failed ({self.consecutive_failures} in a row): {exc}"
        )
        if not self.degraded and self.consecutive_failures >= self.degraded_after:
            self.degraded = True
            self.logger.error("Segmentation degraded: repeated oracle failures")
            if self.on_degraded is not None:
                self.on_degraded(True)

    def _record_success(self):
        self.consecutive_failures = 0
        if self.degraded:
            self.degraded = False
            self.logger.info("Segmentation recovered")
            if self.on_degraded is not None:
                self.on_degraded(False)

    def _close_backend(self):
        try:
            self.backend.close()
        except Exception as e:
            self.logger.warning(f"Error closing segmenter: {e}")

    def close(self):
        """Release the backend exactly once, after any in-flight call finishes."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            close_now = self._in_flight is None and not self._backend_closed
            if close_now:
                self._backend_closed = True
        if close_now:
            self._close_backend()
        self._executor.shutdown(wait=False)
