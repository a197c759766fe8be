"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across the whole subtitle burner. It centralizes parameters for logging,
queue item statuses, admission safety limits and process supervision. It also
handles the loading of user-specific configuration from an external YAML file,
allowing for easy customization without modifying the source code.
"""
from pathlib import Path
import yaml
from loguru import logger

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root. Paths to FFmpeg/ffprobe and default encoding settings can
# be given there.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = PROJECT_ROOT / "config.user.yaml"

# The directory containing the FFmpeg and ffprobe executables. If not provided,
# the application assumes the executables are available in the system's PATH.
MODULE_PATH: Path | None = None

# The directory where updated versions of FFmpeg are dropped. Its contents are
# moved to `MODULE_PATH` on startup. If not provided the update step is skipped.
MODULE_UPDATE_PATH: Path | None = None

# Default encoding settings overriding the built-in ones (see config.encoding).
USER_ENCODING_DEFAULTS: dict = {}

if USER_CONFIG_PATH.is_file():
    try:
        with USER_CONFIG_PATH.open("r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f)
        if user_config:
            paths_config = user_config.get("paths") or {}
            ffmpeg_dir_str = paths_config.get("ffmpeg_dir")
            update_dir_str = paths_config.get("module_update_dir")

            if ffmpeg_dir_str:
                MODULE_PATH = Path(ffmpeg_dir_str)
            if update_dir_str:
                MODULE_UPDATE_PATH = Path(update_dir_str)

            encoding_config = user_config.get("encoding")
            if isinstance(encoding_config, dict):
                USER_ENCODING_DEFAULTS = encoding_config
    except Exception as e:
        logger.warning(f"Could not load or parse '{USER_CONFIG_PATH}': {e}")
else:
    logger.debug(f"User config '{USER_CONFIG_PATH}' not found. Relying on system PATH for executables.")


# --- Logging Configuration ---

# The format string for the Loguru logger.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{thread.name} - <level>{message}</level>"
)

# The length of the random string appended to dated success log files.
SUCCESS_LOG_RANDOM_LENGTH = 10

# The filename for the YAML log aggregating every successful burn of a run.
DEFAULT_SUCCESS_LOG_YAML = "burn_success_log.yaml"

# The filename for the plain-text error log.
DEFAULT_ERROR_LOG_TXT = "burn_error_log.txt"

# How many trailing encoder lines are kept per item for error messages.
ERROR_TAIL_LINES = 5


# --- Queue Item Status Constants ---
# The item state machine: pending -> processing -> completed | error | cancelled.
# `paused` exists for display only; pausing is a property of the queue.

ITEM_STATUS_PENDING = "pending"
ITEM_STATUS_PROCESSING = "processing"
ITEM_STATUS_PAUSED = "paused"
ITEM_STATUS_COMPLETED = "completed"
ITEM_STATUS_ERROR = "error"
ITEM_STATUS_CANCELLED = "cancelled"

ALL_ITEM_STATUSES = (
    ITEM_STATUS_PENDING,
    ITEM_STATUS_PROCESSING,
    ITEM_STATUS_PAUSED,
    ITEM_STATUS_COMPLETED,
    ITEM_STATUS_ERROR,
    ITEM_STATUS_CANCELLED,
)
TERMINAL_ITEM_STATUSES = (ITEM_STATUS_COMPLETED, ITEM_STATUS_ERROR, ITEM_STATUS_CANCELLED)


# --- Admission ---

# Multiplier applied to the estimated output size before comparing it with the
# free space of the destination volume (container overhead, VBR peaks, audio).
DISK_SPACE_SAFETY_MARGIN = 1.15


# --- Process Supervision ---

# Seconds to wait after SIGTERM before the encoder is killed outright.
TERMINATE_GRACE_SECONDS = 10

# Maximum accepted path length for anything handed to FFmpeg.
MAX_PATH_LENGTH = 32767
