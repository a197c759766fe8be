"""
Core domain of the subtitle burner.

Modules:
    exceptions.py: The error taxonomy: validation failures, invariant violations,
                   job outcomes and ffprobe failures.
    models.py: `QueueItem`, `EncodingSettings`, admission results, reports,
               telemetry and the events delivered to observers.
    media.py: The `MediaFile` ffprobe wrapper with duration and bitrate probes.
"""
