"""
This module provides the run reports written next to the burned videos.

`SuccessLog` appends one machine-readable YAML record per completed burn, so a
batch can be audited or post-processed later. `ErrorLog` appends human-readable
text blocks for failed burns, with the tail of the encoder output, for
debugging. Both are fed from queue events by the batch pipeline.
"""

import random
import string
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Union

import yaml
from loguru import logger

from ..config.common import (
    DEFAULT_ERROR_LOG_TXT,
    DEFAULT_SUCCESS_LOG_YAML,
    SUCCESS_LOG_RANDOM_LENGTH,
)
from ..domain.models import LogType, QueueItem
from ..utils.format_utils import formatted_size

_YAML_DUMP_OPTIONS = dict(
    default_flow_style=False,
    sort_keys=False,
    allow_unicode=True,
    indent=4,
    width=220,
)


class Log:
    """
    Base class of the run reports.

    Args:
        log_base_path: A directory, or a file whose parent directory is used.
            The directory is created if missing.
    """

    linesep_marker: str = "=" * 50

    def __init__(self, log_base_path: Path):
        self.log_file_path: Path
        if log_base_path.is_dir() or not log_base_path.suffix:
            self.log_dir: Path = log_base_path.resolve()
        else:
            self.log_dir: Path = log_base_path.parent.resolve()
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def write(self, log_content: Union[dict, list, str]):
        raise NotImplementedError("Subclasses must implement the write() method.")

    @staticmethod
    def generate_random_string(length: int = SUCCESS_LOG_RANDOM_LENGTH) -> str:
        """Random uppercase/digit string used to keep dated log names unique."""
        return "".join(random.choices(string.ascii_uppercase + string.digits, k=length))


class ErrorLog(Log):
    """Chronological plain-text record of failed burns."""

    def __init__(self, error_log_dir: Path, filename: str = DEFAULT_ERROR_LOG_TXT):
        super().__init__(error_log_dir)
        self.log_file_path = self.log_dir / filename

    def write(self, *error_messages: str):
        """
        Appends the given lines as one block, closed by a separator line.

        A failure to write is reported through loguru together with the lines
        that could not be written.
        """
        if not error_messages:
            return

        content_to_write = "\n".join(error_messages) + "\n" + self.linesep_marker + "\n"
        try:
            with self.log_file_path.open("a", encoding="utf-8") as f:
                f.write(content_to_write)
        except OSError as e:
            logger.error(f"Failed to write to error log {self.log_file_path}: {e}")
            for msg in error_messages:
                logger.error(f"  - {msg}")

    def write_item(self, item: QueueItem):
        """Appends the block for a failed queue item: paths, message and the encoder's error lines."""
        error_lines = [log.line for log in item.logs if log.type == LogType.ERROR]
        self.write(
            f"{datetime.now():%Y-%m-%d %H:%M:%S} burn failed",
            f"video: {item.video_path}",
            f"subtitle: {item.subtitle_path}",
            f"output: {item.output_path}",
            f"message: {item.error_message}",
            *error_lines,
        )


class SuccessLog(Log):
    """
    YAML list of completed burns.

    Args:
        success_log_dir: Directory of the log file.
        use_dated_filename: Write to `burn_log_YYYYMMDD_<random>.yaml` instead of
            the fixed `DEFAULT_SUCCESS_LOG_YAML`. Useful when several runs share a
            directory.
    """

    def __init__(self, success_log_dir: Path, use_dated_filename: bool = False):
        super().__init__(success_log_dir)
        if use_dated_filename:
            log_filename = f"burn_log_{datetime.now():%Y%m%d}_{self.generate_random_string()}.yaml"
        else:
            log_filename = DEFAULT_SUCCESS_LOG_YAML
        self.log_file_path = self.log_dir / log_filename
        self.log_entries: List[Dict] = []

    def _load(self) -> List[Dict]:
        if not self.log_file_path.is_file():
            return []
        try:
            with self.log_file_path.open("r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error reading success log {self.log_file_path}: {e}. Starting a new log.")
            return []
        if loaded is None:
            return []
        if not isinstance(loaded, list):
            logger.warning(f"Success log {self.log_file_path} contained unexpected data. Starting a new log.")
            return []
        return loaded

    def write(self, new_log_entry: dict):
        """
        Adds `new_log_entry` with the next `index` and rewrites the file.

        The whole list is rewritten so the file always stays one valid YAML list.
        """
        if not isinstance(new_log_entry, dict):
            logger.error("SuccessLog.write expects a dictionary as a log entry.")
            return

        self.log_entries = self._load()
        current_max_index = max(
            (entry.get("index", 0) for entry in self.log_entries if isinstance(entry, dict)),
            default=0,
        )
        new_log_entry["index"] = current_max_index + 1
        self.log_entries.append(new_log_entry)

        try:
            with self.log_file_path.open("w", encoding="utf-8") as f:
                yaml.dump(self.log_entries, f, **_YAML_DUMP_OPTIONS)
        except OSError as e:
            logger.error(f"Failed to write to success log {self.log_file_path}: {e}")

    @staticmethod
    def entry_for(item: QueueItem) -> dict:
        """The YAML record of a completed queue item."""
        output_size = item.output_path.stat().st_size if item.output_path.is_file() else 0
        encode_seconds = item.encode_seconds
        return {
            "video": str(item.video_path),
            "subtitle": str(item.subtitle_path),
            "output": str(item.output_path),
            "output_size": formatted_size(output_size),
            "encode_time": round(encode_seconds, 1) if encode_seconds is not None else None,
            "settings": item.settings_snapshot.to_dict() if item.settings_snapshot else {},
            "started_datetime": item.started_at.strftime("%Y-%m-%d %H:%M:%S") if item.started_at else None,
            "ended_datetime": item.finished_at.strftime("%Y-%m-%d %H:%M:%S") if item.finished_at else None,
        }

    def write_item(self, item: QueueItem):
        self.write(self.entry_for(item))
