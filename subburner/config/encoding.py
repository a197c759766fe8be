"""
Configuration settings related to video encoding and file discovery.

This module defines the default encoding settings, the recognised video and
subtitle extensions, and the lookup tables used to guess output sizes for
quality-based encodes.
"""
from .common import USER_ENCODING_DEFAULTS

# --- File Identification ---
VIDEO_EXTENSIONS = (".mp4", ".mkv", ".avi", ".mov", ".webm", ".m4v", ".wmv", ".flv")
SUBTITLE_EXTENSIONS = (".ass", ".srt", ".sub", ".ssa", ".vtt")
OUTPUT_EXTENSION = ".mp4"

# Suffix added to output names when none is given, and the folder used by the
# "input_subfolder" output location mode.
DEFAULT_OUTPUT_SUFFIX = ""
OUTPUT_SUBFOLDER_NAME = "burned"

# --- Encoder Settings ---
SOFTWARE_ENCODER = "libx264"
SOFTWARE_PRESET = "veryfast"
SOFTWARE_TUNE = "animation"
HARDWARE_ENCODERS = {
    "nvenc": "h264_nvenc",
    "qsv": "h264_qsv",
    "amf": "h264_amf",
}

QUALITY_MODES = ("cq", "vbr", "vbr_hq", "cbr")
# Modes whose output size follows from the target bitrate. The others aim for
# constant quality and run with an unconstrained bitrate.
BITRATE_QUALITY_MODES = ("vbr", "cbr")
PRESETS = ("p1", "p2", "p3", "p4", "p5", "p6", "p7")

_BUILTIN_ENCODING_DEFAULTS = {
    "bitrate": "2400k",
    "gpu_encode": False,
    "codec": "h264",
    "hw_encoder": "auto",
    "preset": "p4",
    "quality_mode": "vbr_hq",
    "cq": 19,
    "spatial_aq": True,
    "temporal_aq": True,
    "rc_lookahead": 20,
    "scale_width": None,
    "scale_height": None,
}
ENCODING_DEFAULTS = {
    **_BUILTIN_ENCODING_DEFAULTS,
    **{k: v for k, v in USER_ENCODING_DEFAULTS.items() if k in _BUILTIN_ENCODING_DEFAULTS},
}

# --- Size Estimation ---
# Bitrate assumed when a bitrate string cannot be parsed (bps).
FALLBACK_BITRATE_BPS = 6_000_000

# Rough 1080p bitrate per CQ value, used only when the source bitrate is unknown.
# (upper CQ bound, bps)
CQ_BITRATE_TABLE = (
    (18, 15_000_000),
    (20, 10_000_000),
    (23, 6_000_000),
    (26, 4_000_000),
    (28, 3_000_000),
)
CQ_BITRATE_FLOOR = 2_000_000

# Fraction of the source bitrate expected in the output per CQ value.
# (upper CQ bound, multiplier)
CQ_SOURCE_MULTIPLIERS = (
    (18, 1.0),
    (20, 0.8),
    (23, 0.6),
    (26, 0.45),
    (28, 0.35),
)
CQ_SOURCE_MULTIPLIER_FLOOR = 0.25
