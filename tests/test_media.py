from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from shadowdots.media import (
    ImageSource,
    MediaEntry,
    MediaLoadError,
    VideoSource,
    discover_media,
    load_source,
)


def bgr(value):
    return np.full((4, 6, 3), value, dtype=np.uint8)


def test_discover_media_filters_and_sorts(tmp_path):
    for name in ["d.jpeg", "b.MP4", "a.png", "notes.txt", "c.webm"]:
        (tmp_path / name).write_bytes(b"")
    entries = discover_media(str(tmp_path))
    assert [(e.name, e.kind) for e in entries] == [
        ("a.png", "image"),
        ("b.MP4", "video"),
        ("c.webm", "video"),
        ("d.jpeg", "image"),
    ]
    assert entries[0].url == str(tmp_path / "a.png")


def test_discover_missing_directory_is_empty(tmp_path):
    assert discover_media(str(tmp_path / "nope")) == []


def test_image_source_loads_as_rgb(tmp_path):
    path = tmp_path / "red.png"
    cv2.imwrite(str(path), bgr((0, 0, 255)))
    src = load_source(MediaEntry(str(path), "red.png", "image"))
    assert isinstance(src, ImageSource)
    assert (src.width, src.height) == (6, 4)
    assert tuple(src.current_frame()[0, 0]) == (255, 0, 0)


def test_image_source_missing_file_raises(tmp_path):
    with pytest.raises(MediaLoadError):
        ImageSource.load(str(tmp_path / "missing.png"))


def fake_capture(frames, fps=10.0):
    cap = MagicMock()
    cap.get.return_value = fps
    reads = iter(frames)

    def read():
        try:
            return True, next(reads)
        except StopIteration:
            return False, None

    cap.read.side_effect = read
    cap.grab.return_value = True
    return cap


def test_video_source_has_no_size_until_buffered(clock):
    src = VideoSource(fake_capture([bgr(1)]), clock=clock)
    assert (src.width, src.height) == (0, 0)
    assert src.current_frame() is None
    src.buffer()
    assert (src.width, src.height) == (6, 4)


def test_video_source_advances_at_file_rate(clock):
    cap = fake_capture([bgr(1), bgr(2), bgr(3)], fps=10.0)
    src = VideoSource(cap, clock=clock)
    src.buffer()
    assert src.current_frame()[0, 0, 0] == 1
    clock.advance(0.05)
    assert src.current_frame()[0, 0, 0] == 1
    clock.advance(0.06)
    assert src.current_frame()[0, 0, 0] == 2


def test_video_source_loops_at_end(clock):
    frames = [bgr(1), bgr(2)]
    cap = fake_capture(frames, fps=10.0)
    src = VideoSource(cap, clock=clock)
    src.buffer()
    clock.advance(0.15)
    src.current_frame()
    # exhausted: rewind and start over
    cap.read.side_effect = [(False, None), (True, bgr(7))]
    clock.advance(0.15)
    assert src.current_frame()[0, 0, 0] == 7
    cap.set.assert_called_with(cv2.CAP_PROP_POS_FRAMES, 0)


def test_video_source_without_frames_fails_to_buffer(clock):
    src = VideoSource(fake_capture([]), clock=clock)
    with pytest.raises(MediaLoadError):
        src.buffer()
