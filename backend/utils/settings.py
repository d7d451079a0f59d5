import logging
import os
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[2]
load_dotenv(ROOT_DIR / ".env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

TIMELINE_FPS = int(os.getenv("TIMELINE_FPS", "30"))
BASE_PIXELS_PER_SECOND = float(os.getenv("TIMELINE_BASE_PIXELS_PER_SECOND", "100"))

MIN_ZOOM = float(os.getenv("TIMELINE_MIN_ZOOM", "0.25"))
MAX_ZOOM = float(os.getenv("TIMELINE_MAX_ZOOM", "4"))
DEFAULT_ZOOM = float(os.getenv("TIMELINE_DEFAULT_ZOOM", "1"))
ZOOM_STEP = float(os.getenv("TIMELINE_ZOOM_STEP", "1.5"))

# Max gap (px) between two clips that still counts as "touching".
SNAP_DISTANCE_PX = float(os.getenv("TIMELINE_SNAP_DISTANCE_PX", "10"))

HISTORY_LIMIT = int(os.getenv("TIMELINE_HISTORY_LIMIT", "100"))

DEFAULT_TIMELINE_WIDTH = float(os.getenv("TIMELINE_DEFAULT_WIDTH", "2000"))
EXPANSION_THRESHOLD = float(os.getenv("TIMELINE_EXPANSION_THRESHOLD", "200"))
EXPANSION_AMOUNT = float(os.getenv("TIMELINE_EXPANSION_AMOUNT", "1000"))

DEFAULT_TRACK_COUNT = int(os.getenv("TIMELINE_DEFAULT_TRACK_COUNT", "4"))

TIMELINE_LOG_FILE = os.getenv("TIMELINE_LOG_FILE", "").strip()


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    target_logger = logging.getLogger(logger_name)
    target_logger.setLevel(logger_level_value)
    if any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        return

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    target_logger.addHandler(file_handler)


def configure_logging(log_file: str | None = None) -> None:
    """Configure root logging and optionally mirror the core's loggers to a file."""
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

    target = (log_file if log_file is not None else TIMELINE_LOG_FILE).strip()
    if not target:
        return

    log_path = Path(target)
    if not log_path.is_absolute():
        log_path = ROOT_DIR / log_path
    _attach_file_handler("operators", log_path)
    _attach_file_handler("utils", log_path)
