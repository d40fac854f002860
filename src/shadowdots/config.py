from dataclasses import dataclass, field


@dataclass
class AppConfig:
    # --- Debugging ---
    debug: bool = False  # Show debug overlay and fail hard on broken invariants

    # --- Logging ---
    log_level: str = "INFO"  # Minimum log level to output
    log_file: str | None = None  # Redirect logs to a file instead of the console

    # --- Window and Rendering ---
    width: int = 1280  # Initial window width
    height: int = 720  # Initial window height
    target_fps: float = 60.0  # Render tick rate

    # --- Camera ---
    camera_index: int = 0  # Index of the camera to use (e.g., 0 for /dev/video0)
    camera_width: int = 640  # Requested capture width
    camera_height: int = 480  # Requested capture height

    # --- Segmentation ---
    segmenter: str = "mediapipe"  # Segmentation backend ('mediapipe' or 'yolo')
    model_selection: int = 1  # MediaPipe model: 0 general (256x256), 1 landscape (256x144)
    mirror_input: bool = True  # Flip camera frames before segmentation (selfie mode)
    mask_threshold: float = 0.5  # Confidence above which a mask cell counts as person
    seg_width: int = 256  # Model input width for the YOLO backend
    seg_height: int = 144  # Model input height for the YOLO backend
    yolo_model: str = "yolo11n-seg.pt"  # Path to the YOLO model file
    yolo_device: str = "cuda"  # Torch device for the YOLO backend
    submit_every: int = 2  # Submit a camera frame every N render ticks
    degraded_after: int = 3  # Consecutive oracle failures before signalling degraded

    # --- Dots ---
    density: int = 1  # Initial density preset index (0 small, 1 medium, 2 large)
    flat_color: tuple[int, int, int] = (110, 247, 110)  # hsl(120, 90%, 70%)
    background_tone: tuple[int, int, int] = (0, 0, 0)  # Canvas clear / inactive dot tone

    # --- Trail ---
    trail_enabled: bool = True  # Fade instead of clearing each frame
    trail_tau_ms: float = 300.0  # Time constant of the exponential fade

    # --- Mirror ---
    mirrored: bool = True  # Show the output mirrored, like a mirror

    # --- Media ---
    media_dir: str = "media"  # Directory scanned for reveal images and videos
    media_extensions: dict[str, tuple[str, ...]] = field(
        default_factory=lambda: {
            "image": (".jpg", ".jpeg", ".png", ".gif"),
            "video": (".mp4", ".webm", ".mov"),
        }
    )
