from unittest.mock import patch

from shadowdots.app import build_config, parse_args
from shadowdots.config import AppConfig


def test_no_args_keeps_config_defaults():
    assert build_config(parse_args([])) == AppConfig()


def test_cli_args_override_config():
    """Test that every CLI argument lands in the config."""
    args = parse_args(
        [
            "--debug",
            "--segmenter",
            "yolo",
            "--yolo-model",
            "yolov8n-seg.pt",
            "--model-selection",
            "0",
            "--camera-index",
            "2",
            "--media-dir",
            "/tmp/reveal",
            "--density",
            "2",
            "--no-trail",
            "--no-mirror",
            "--fps",
            "30",
            "--log-file",
            "test.log",
            "--log-level",
            "DEBUG",
        ]
    )
    config = build_config(args)
    assert isinstance(config, AppConfig)

    assert config.debug is True
    assert config.segmenter == "yolo"
    assert config.yolo_model == "yolov8n-seg.pt"
    assert config.model_selection == 0
    assert config.camera_index == 2
    assert config.media_dir == "/tmp/reveal"
    assert config.density == 2
    assert config.trail_enabled is False
    assert config.mirrored is False
    assert config.target_fps == 30.0
    assert config.log_file == "test.log"
    assert config.log_level == "DEBUG"


def test_fps_is_clamped():
    assert build_config(parse_args(["--fps", "0"])).target_fps == 1.0


def test_parse_args_reads_sys_argv():
    with patch("sys.argv", ["shadowdots", "--density", "0"]):
        assert parse_args().density == 0
