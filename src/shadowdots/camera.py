from __future__ import annotations
import cv2
import numpy as np

from .logging import get_logger
from .profiler import get_profiler


class Camera:
    """Webcam frames as RGB arrays, unflipped; mirroring is up to the consumer."""

    def __init__(self, camera_index: int, cam_w: int, cam_h: int):
        self.profiler = get_profiler()
        self.logger = get_logger(__name__)
        self.cap = cv2.VideoCapture(camera_index)
        if not self.cap.isOpened():
            raise RuntimeError("Cannot open webcam")
        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, cam_w)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, cam_h)
        self.logger.info(
            f"Camera {camera_index} opened at "
            f"{int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))}x"
            f"{int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))}"
        )

    def read(self) -> np.ndarray | None:
        with self.profiler.record("cam_read"):
            ok, frame = self.cap.read()
        if not ok:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)

    def release(self):
        self.cap.release()
