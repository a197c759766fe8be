"""
Defines custom exception types for the subtitle burner.

These exceptions give each failure a scope: a single operation (validation,
invariant violations) or a single queue item (job errors, cancellations).
Nothing here is meant to bring down the hosting process.

All custom exceptions inherit from the base `SubBurnerException`.
"""


class SubBurnerException(Exception):
    """Base class for all custom exceptions in the subtitle burner."""

    pass


# --- Queue Operation Exceptions ---
class ValidationError(SubBurnerException):
    """
    Raised when a queue command is given bad input.

    Typical causes are a missing source video or subtitle file at `add` time,
    an unsafe path, or an index outside the queue. The queue is left unchanged.
    """

    pass


class ItemNotFoundError(ValidationError):
    """Raised when a command refers to an item id that is not in the queue."""

    pass


class InvariantViolation(SubBurnerException):
    """
    Raised when a command would break a queue invariant.

    For example removing or reordering the item that is currently processing,
    or changing the output path of an item that is no longer pending. The
    queue is left unchanged.
    """

    pass


# --- Job Outcome Exceptions ---
class JobError(SubBurnerException):
    """
    The external encoder failed for one item.

    The item moves to `error` and the queue continues with the next item.
    """

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        self.exit_code = exit_code


class JobCancelled(SubBurnerException):
    """
    The encode of one item was stopped on request.

    Distinct from `JobError`: a cancellation is user initiated and carries no
    failure message.
    """

    pass


# --- MediaFile / Probe Specific Exceptions ---
class MediaFileException(SubBurnerException):
    """
    Base class for exceptions related to media file analysis (probing with ffprobe).
    """

    pass


class NoDurationFoundException(MediaFileException):
    """
    Raised when duration information cannot be obtained for a media file.

    Callers treat this as advisory: the size estimate falls back to zero and the
    process runner reads the duration from the encoder's own output instead.
    """

    pass
