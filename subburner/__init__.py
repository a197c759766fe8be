"""
Subtitle burner: a single-worker FFmpeg encoding queue.

The package is organised in layers. `config` holds static settings and the user
YAML config, `domain` the data models and error types, `services` the queue and
its collaborators (disk space estimation, conflict resolution, process
supervision, admission), `utils` FFmpeg and path helpers, and `pipeline` the
headless driver used by the command line.
"""
