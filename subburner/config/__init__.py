"""
Configuration Package for the subtitle burner.

This package centralizes the static configuration of the application so that
parameters can be adjusted without touching the queue logic.

This package includes settings for:
- Common application settings like the logging format, item statuses, disk
  space safety margin and process supervision timeouts.
- User-overridable paths for FFmpeg and default encoding settings, read from
  `config.user.yaml`.
- Encoder defaults, recognised file extensions and size-estimation tables.
"""
