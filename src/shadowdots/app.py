from __future__ import annotations
import argparse
import shutil
import sys
import time

import glfw, moderngl

from .camera import Camera
from .config import AppConfig
from .controller import SessionModeController
from .debug import LINE_HEIGHT, DebugOverlay
from .display import CanvasPresenter
from .engine import DotEngine, FrameScheduler
from .logging import get_logger, setup_logging
from .media import discover_media
from .profiler import get_profiler
from .segmentation import MediaPipeSegmenter, SegmentationOracle, YOLOSegmenter
from .stabilizer import MaskStabilizer


class KeyPoller:
    """Edge-triggered key polling: a held key fires once per press."""

    def __init__(self, keys):
        self.keys = tuple(keys)
        self._down = set()

    def poll(self, win):
        pressed = []
        for key in self.keys:
            is_down = glfw.get_key(win, key) == glfw.PRESS
            if is_down and key not in self._down:
                pressed.append(key)
            if is_down:
                self._down.add(key)
            else:
                self._down.discard(key)
        return pressed


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Shadow Dots")
    p.add_argument(
        "--fullscreen",
        action="store_true",
        help="Open in fullscreen on the primary monitor.",
    )
    p.add_argument(
        "--segmenter",
        type=str,
        choices=["mediapipe", "yolo"],
        default=None,
        help="Segmentation backend (mediapipe, yolo). Default: from config.",
    )
    p.add_argument(
        "--model-selection",
        type=int,
        choices=[0, 1],
        default=None,
        help="MediaPipe model: 0 general, 1 landscape. Default: from config.",
    )
    p.add_argument(
        "--yolo-model",
        type=str,
        default=None,
        help="Path to the YOLO segmentation model. Default: from config.",
    )
    p.add_argument(
        "--camera-index",
        type=int,
        default=None,
        help="Camera device index. Default: from config.",
    )
    p.add_argument(
        "--media-dir",
        type=str,
        default=None,
        help="Directory with reveal images/videos. Default: from config.",
    )
    p.add_argument(
        "--density",
        type=int,
        choices=[0, 1, 2],
        default=None,
        help="Initial dot density (0 small, 1 medium, 2 large).",
    )
    p.add_argument("--no-trail", action="store_true", help="Start with the ghost trail off.")
    p.add_argument("--no-mirror", action="store_true", help="Start unmirrored.")
    p.add_argument("--fps", type=float, default=None, help="Target render rate.")
    p.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log to a file instead of the console.",
    )
    p.add_argument("--log-level", type=str, default=None, help="Minimum log level.")
    p.add_argument(
        "--debug",
        action="store_true",
        help="Show debug overlay and fail hard on internal inconsistencies.",
    )
    return p.parse_args(argv)


def build_config(args: argparse.Namespace) -> AppConfig:
    cfg = AppConfig()
    if args.segmenter is not None:
        cfg.segmenter = args.segmenter
    if args.model_selection is not None:
        cfg.model_selection = args.model_selection
    if args.yolo_model is not None:
        cfg.yolo_model = args.yolo_model
    if args.camera_index is not None:
        cfg.camera_index = args.camera_index
    if args.media_dir is not None:
        cfg.media_dir = args.media_dir
    if args.density is not None:
        cfg.density = args.density
    if args.no_trail:
        cfg.trail_enabled = False
    if args.no_mirror:
        cfg.mirrored = False
    if args.fps is not None:
        cfg.target_fps = max(1.0, args.fps)
    if args.log_file is not None:
        cfg.log_file = args.log_file
    if args.log_level is not None:
        cfg.log_level = args.log_level
    if args.debug:
        cfg.debug = True
    return cfg


def build_segmenter(cfg: AppConfig):
    logger = get_logger(__name__)
    if cfg.segmenter == "yolo":
        logger.info("Using YOLO segmenter")
        return YOLOSegmenter(
            cfg.yolo_model,
            cfg.seg_width,
            cfg.seg_height,
            device=cfg.yolo_device,
            mirror=cfg.mirror_input,
        )
    if cfg.segmenter == "mediapipe":
        logger.info("Using MediaPipe segmenter")
        return MediaPipeSegmenter(cfg.model_selection, mirror=cfg.mirror_input)
    raise ValueError(f"Unknown segmenter: {cfg.segmenter}")


def _linux_gl_hint():
    if sys.platform.startswith("linux") and shutil.which("glxinfo") is None:
        return (
            "Linux OpenGL loaders not found.\n"
            "Install the dev libraries:\n"
            "  sudo apt install -y libgl1-mesa-dev libegl1-mesa-dev libglvnd-dev mesa-utils\n"
        )
    return None


def main(argv=None):
    args = parse_args(argv)
    cfg = build_config(args)

    setup_logging(cfg.log_level, cfg.log_file)
    logger = get_logger(__name__)

    # --- window / context ---
    if not glfw.init():
        raise RuntimeError("GLFW init failed")
    glfw.window_hint(glfw.CONTEXT_VERSION_MAJOR, 3)
    glfw.window_hint(glfw.CONTEXT_VERSION_MINOR, 3)
    glfw.window_hint(glfw.OPENGL_PROFILE, glfw.OPENGL_CORE_PROFILE)
    glfw.window_hint(glfw.OPENGL_FORWARD_COMPAT, True)

    monitor = None
    if args.fullscreen:
        monitor = glfw.get_primary_monitor()
        mode = glfw.get_video_mode(monitor)
        cfg.width, cfg.height = mode.size.width, mode.size.height

    win = glfw.create_window(cfg.width, cfg.height, "Shadow Dots", monitor, None)
    glfw.make_context_current(win)

    try:
        ctx = moderngl.create_context()
    except Exception:
        logger.error(_linux_gl_hint() or "Failed to create ModernGL context.")
        glfw.terminate()
        raise

    presenter = CanvasPresenter(ctx)
    camera = Camera(cfg.camera_index, cfg.camera_width, cfg.camera_height)
    stabilizer = MaskStabilizer(strict=cfg.debug)

    controller = SessionModeController(
        lambda: discover_media(cfg.media_dir, cfg.media_extensions),
        density=cfg.density,
        trail_enabled=cfg.trail_enabled,
        mirrored=cfg.mirrored,
    )
    engine = DotEngine(cfg, controller, stabilizer)
    oracle = SegmentationOracle(
        build_segmenter(cfg),
        engine.on_segmentation_result,
        degraded_after=cfg.degraded_after,
    )
    engine.oracle = oracle
    scheduler = FrameScheduler(cfg.target_fps)

    actions = {
        glfw.KEY_1: engine.on_mode_cycle,
        glfw.KEY_SPACE: engine.on_mode_cycle,
        glfw.KEY_2: engine.on_density_cycle,
        glfw.KEY_3: engine.on_trail_toggle,
        glfw.KEY_4: engine.on_mirror_toggle,
    }
    keys = KeyPoller(list(actions) + [glfw.KEY_D, glfw.KEY_ESCAPE])

    debug_overlay = None
    profiler = get_profiler()
    prev_t = time.perf_counter()
    frame_count = 0
    log_interval = 1.0  # seconds
    time_since_log = 0.0

    logger.info(
        "1/SPACE effect  2 dots  3 ghost trail  4 mirror  D debug  ESC quit"
    )

    try:
        while scheduler.running and not glfw.window_should_close(win):
            with profiler.record("frame"):
                glfw.poll_events()
                for key in keys.poll(win):
                    if key == glfw.KEY_ESCAPE:
                        scheduler.stop()
                    elif key == glfw.KEY_D:
                        cfg.debug = not cfg.debug
                        if cfg.debug:
                            profiler.reset()
                    else:
                        actions[key]()
                if not scheduler.running:
                    break

                now = time.perf_counter()
                actual_dt = max(1e-6, now - prev_t)
                prev_t = now

                fb_w, fb_h = glfw.get_framebuffer_size(win)
                cfg.width, cfg.height = fb_w, fb_h
                engine.on_resize((fb_w, fb_h))

                frame = camera.read()
                with profiler.record("render"):
                    canvas = engine.tick(frame, now * 1000.0)
                presenter.present(canvas, (fb_w, fb_h), controller.mirrored)

                if cfg.debug:
                    if debug_overlay is None:
                        debug_overlay = DebugOverlay(ctx, cfg)
                    mask = stabilizer.current_mask()
                    lines = [
                        f"FPS: {1.0 / actual_dt:.2f} | frame_t: {actual_dt * 1000.0:.2f}ms",
                        "--------------------",
                    ]
                    for k, v in sorted(profiler.get_timings().items()):
                        lines.append(
                            f"{k}: {v*1000:.2f}ms (max {profiler.worst(k)*1000:.1f})"
                        )
                    lines.append("--------------------")
                    lines.append(f"Mode: {controller.mode.value}")
                    lines.append(f"Dots: {controller.density.label}")
                    lines.append(
                        f"Mask: {mask.width}x{mask.height}" if mask else "Mask: none"
                    )
                    if controller.loading:
                        lines.append("Media: loading...")
                    lines.append(f"Segmenter: {cfg.segmenter}")
                    lines.append(
                        f"Oracle: {oracle.submitted} sent, {oracle.skipped} skipped"
                        + (" (busy)" if oracle.busy else "")
                    )
                    debug_overlay.render(lines, 10, fb_h - 20)
                    if oracle.degraded:
                        debug_overlay.render(
                            ["SEGMENTATION DEGRADED"],
                            10,
                            fb_h - 20 - len(lines) * LINE_HEIGHT,
                            color=(1.0, 0.3, 0.3, 1.0),
                        )

            frame_count += 1
            time_since_log += actual_dt
            if time_since_log >= log_interval:
                fps = frame_count / time_since_log
                logger.info(
                    f"FPS: {fps:.2f} | frame_t: {time_since_log / frame_count * 1000.0:.2f}ms"
                )
                profiler.log_stats()
                frame_count = 0
                time_since_log = 0.0

            with profiler.record("swap"):
                glfw.swap_buffers(win)
            scheduler.wait()

    finally:
        scheduler.stop()
        oracle.close()
        controller.close()
        camera.release()
        if debug_overlay is not None:
            debug_overlay.release()
        presenter.release()
        glfw.terminate()
