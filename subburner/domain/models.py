"""
Data models for the encoding queue.

`QueueItem` is the unit of work the queue manager owns. `EncodingSettings` is
the global configuration the host application edits; the queue only ever copies
it into an item when that item is dispatched. The remaining classes are derived
values handed across component boundaries: admission results, disk space and
conflict reports, telemetry and the events observers receive.
"""

import copy
import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config.common import ITEM_STATUS_PENDING
from ..config.encoding import (
    BITRATE_QUALITY_MODES,
    ENCODING_DEFAULTS,
    HARDWARE_ENCODERS,
    PRESETS,
    QUALITY_MODES,
)
from ..utils.format_utils import formatted_size
from .exceptions import ValidationError


@dataclass(frozen=True)
class EncodingSettings:
    """
    Encoding configuration for one burn.

    Instances are immutable: `merged()` returns a new object, so a snapshot
    stored on a dispatched item can never be changed by a later settings edit.
    """

    bitrate: str = ENCODING_DEFAULTS["bitrate"]
    gpu_encode: bool = ENCODING_DEFAULTS["gpu_encode"]
    codec: str = ENCODING_DEFAULTS["codec"]
    hw_encoder: str = ENCODING_DEFAULTS["hw_encoder"]
    preset: str = ENCODING_DEFAULTS["preset"]
    quality_mode: str = ENCODING_DEFAULTS["quality_mode"]
    cq: int = ENCODING_DEFAULTS["cq"]
    spatial_aq: bool = ENCODING_DEFAULTS["spatial_aq"]
    temporal_aq: bool = ENCODING_DEFAULTS["temporal_aq"]
    rc_lookahead: int = ENCODING_DEFAULTS["rc_lookahead"]
    scale_width: Optional[int] = ENCODING_DEFAULTS["scale_width"]
    scale_height: Optional[int] = ENCODING_DEFAULTS["scale_height"]

    def __post_init__(self):
        if self.quality_mode not in QUALITY_MODES:
            raise ValidationError(f"Unknown quality mode '{self.quality_mode}'. Expected one of {QUALITY_MODES}.")
        if self.preset not in PRESETS:
            raise ValidationError(f"Unknown preset '{self.preset}'. Expected one of {PRESETS}.")
        if self.hw_encoder != "auto" and self.hw_encoder not in HARDWARE_ENCODERS:
            raise ValidationError(f"Unknown hardware encoder '{self.hw_encoder}'.")

    @property
    def is_bitrate_based(self) -> bool:
        """True when the output size follows from `bitrate` rather than from `cq`."""
        return not self.gpu_encode or self.quality_mode in BITRATE_QUALITY_MODES

    def merged(self, partial: Dict[str, Any]) -> "EncodingSettings":
        known = {f.name for f in fields(self)}
        unknown = set(partial) - known
        if unknown:
            raise ValidationError(f"Unknown encoding setting(s): {', '.join(sorted(unknown))}")
        return replace(self, **partial)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Progress:
    """Last-known telemetry for a running encode."""

    frame: int = 0
    fps: float = 0.0
    time: str = "00:00:00.00"
    time_seconds: float = 0.0
    bitrate: str = "N/A"
    speed: str = "N/A"
    percentage: float = 0.0
    eta: Optional[str] = None


class LogType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"
    METADATA = "metadata"


@dataclass
class LogLine:
    line: str
    type: LogType = LogType.INFO
    stream: Optional[str] = None  # "stdout" / "stderr" for encoder output


def _new_item_id() -> str:
    return uuid.uuid4().hex


@dataclass
class QueueItem:
    """
    One subtitle-burn job.

    Paths are absolute. They may change only while the item is `pending`;
    `settings_snapshot` is filled in at dispatch and never changes afterwards.
    """

    video_path: Path
    subtitle_path: Path
    output_path: Path
    id: str = field(default_factory=_new_item_id)
    status: str = ITEM_STATUS_PENDING
    settings_snapshot: Optional[EncodingSettings] = None
    progress: Optional[Progress] = None
    error_message: Optional[str] = None
    logs: List[LogLine] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def video_name(self) -> str:
        return self.video_path.name

    @property
    def subtitle_name(self) -> str:
        return self.subtitle_path.name

    @property
    def encode_seconds(self) -> Optional[float]:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return None

    def snapshot(self) -> "QueueItem":
        """A deep copy safe to hand to observers."""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "video_path": str(self.video_path),
            "subtitle_path": str(self.subtitle_path),
            "output_path": str(self.output_path),
            "status": self.status,
            "settings_snapshot": self.settings_snapshot.to_dict() if self.settings_snapshot else None,
            "progress": asdict(self.progress) if self.progress else None,
            "error_message": self.error_message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass(frozen=True)
class DiskSpaceReport:
    """Free space versus estimated need on one volume. Computed on demand, never stored."""

    available: int
    total: int
    required: int
    sufficient: bool
    volume_label: str

    @property
    def available_formatted(self) -> str:
        return formatted_size(self.available)

    @property
    def required_formatted(self) -> str:
        return formatted_size(self.required)


@dataclass(frozen=True)
class ConflictReport:
    item_id: str
    existing_path: Path


class ConflictStrategy(str, Enum):
    AUTO_RENAME = "auto_rename"
    OVERWRITE = "overwrite"
    CANCEL = "cancel"


# --- Admission Results ---

@dataclass(frozen=True)
class AdmissionResult:
    @property
    def is_clear(self) -> bool:
        return isinstance(self, Clear)


@dataclass(frozen=True)
class Clear(AdmissionResult):
    """Nothing blocks the batch; dispatch may proceed."""


@dataclass(frozen=True)
class ConflictsFound(AdmissionResult):
    """Output paths already exist on disk. Resolve them, then retry admission."""

    conflicts: Tuple[ConflictReport, ...] = ()


@dataclass(frozen=True)
class InsufficientSpace(AdmissionResult):
    """
    A destination volume lacks room for the batch.

    `report` is the first short volume; `reports` lists every volume checked.
    """

    report: Optional[DiskSpaceReport] = None
    reports: Tuple[DiskSpaceReport, ...] = ()


@dataclass(frozen=True)
class Aborted(AdmissionResult):
    """The caller chose to cancel the batch start. Items stay pending."""

    reason: str = ""


@dataclass(frozen=True)
class QueueStats:
    total: int = 0
    pending: int = 0
    processing: int = 0
    paused: int = 0
    completed: int = 0
    error: int = 0
    cancelled: int = 0
    elapsed_seconds: float = 0.0
    estimated_remaining_seconds: Optional[float] = None


# --- Events ---

class QueueEventKind(str, Enum):
    QUEUE_SNAPSHOT_CHANGED = "queue-snapshot-changed"
    ITEM_STATUS_CHANGED = "item-status-changed"
    ITEM_PROGRESS = "item-progress"
    ITEM_LOG = "item-log"
    ITEM_COMPLETED = "item-completed"
    ITEM_ERROR = "item-error"
    QUEUE_COMPLETED = "queue-completed"


@dataclass(frozen=True)
class QueueEvent:
    kind: QueueEventKind
    item_id: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)


class RunnerEventKind(str, Enum):
    PROGRESS = "progress"
    LOG = "log"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (RunnerEventKind.COMPLETED, RunnerEventKind.ERROR, RunnerEventKind.CANCELLED)


@dataclass(frozen=True)
class RunnerEvent:
    """One event from a process runner, in the order the encoder produced it."""

    kind: RunnerEventKind
    progress: Optional[Progress] = None
    log: Optional[LogLine] = None
    output_path: Optional[Path] = None
    message: Optional[str] = None
