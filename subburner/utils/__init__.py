"""
Utilities Package for the subtitle burner.

Modules:
    - ffmpeg_utils.py: Burn command building, subtitle path escaping, path
      validation, executable lookup and GPU encoder detection.
    - ffmpeg_output.py: Parsing of FFmpeg progress and banner lines.
    - format_utils.py: Human-readable sizes, durations and bitrate strings.
    - paths.py: Output naming and video/subtitle discovery and pairing.
    - module_updater.py: FFmpeg availability checks and drop-in updates.
"""
