import logging
import sys

# Thread name is included: segmentation and media loading log from worker threads.
LOG_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO during model and media setup.
_NOISY_LOGGERS = ("absl", "ultralytics", "PIL", "matplotlib")


def setup_logging(log_level: str = "INFO", log_file: str | None = None):
    """
    Configures the root logger for shadowdots.

    Calling it again replaces the previous handler, so the CLI can reconfigure
    after defaults were applied.

    Args:
        log_level: The minimum log level to output (e.g., "INFO", "DEBUG").
            Unknown names fall back to INFO.
        log_file: If provided, logs are appended to this file. Otherwise, logs
            go to stdout.
    """
    level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for old in root_logger.handlers[:]:
        root_logger.removeHandler(old)
        old.close()

    handler = (
        logging.FileHandler(log_file, mode="a")
        if log_file
        else logging.StreamHandler(sys.stdout)
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)

    # Model libraries stay at WARNING unless we go quieter still
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """Returns the logger for a module (pass ``__name__``)."""
    return logging.getLogger(name)
