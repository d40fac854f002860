from unittest.mock import patch

import numpy as np
import pytest

from shadowdots.camera import Camera


@pytest.fixture
def mock_video_capture():
    with patch("shadowdots.camera.cv2.VideoCapture") as mock_cap:
        mock_instance = mock_cap.return_value
        mock_instance.isOpened.return_value = True
        mock_instance.get.return_value = 640
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        frame[..., 0] = 255  # blue in BGR
        mock_instance.read.return_value = (True, frame)
        yield mock_instance


def test_camera_read_returns_rgb(mock_video_capture):
    cam = Camera(0, 640, 480)
    rgb = cam.read()
    assert rgb.shape == (480, 640, 3)
    assert tuple(rgb[0, 0]) == (0, 0, 255)


def test_camera_read_failure_returns_none(mock_video_capture):
    mock_video_capture.read.return_value = (False, None)
    assert Camera(0, 640, 480).read() is None


def test_camera_that_cannot_open_raises(mock_video_capture):
    mock_video_capture.isOpened.return_value = False
    with pytest.raises(RuntimeError, match="Cannot open webcam"):
        Camera(3, 640, 480)


def test_release(mock_video_capture):
    Camera(0, 640, 480).release()
    mock_video_capture.release.assert_called_once()
