"""
Error kinds raised by the threshold determination engine.

Everything except ``NoActiveSession`` is recoverable: callers surface the
message as guidance and carry on. ``NoActiveSession`` means the engine was
driven before ``start_session`` and is a caller bug.
"""


class AudiometryTrainerError(Exception):
    """Base class for all engine errors."""


class NoActiveSession(AudiometryTrainerError, RuntimeError):
    """An operation needed the current session but none is active."""

    def __init__(self, message="No active test session. Call start_session() first."):
        super().__init__(message)


class InvalidPosition(AudiometryTrainerError, ValueError):
    """A navigation target is not part of the session's sequence."""

    def __init__(self, position, message=None):
        self.position = position
        super().__init__(message or f"{position} is not part of this test sequence")


class ThresholdNotConfirmed(AudiometryTrainerError):
    """Storing a threshold was attempted before any level met the 2-of-3 rule."""

    def __init__(self, validation):
        self.validation = validation
        super().__init__(validation.message)


class DuplicatePresentation(AudiometryTrainerError):
    """An outcome arrived for a presentation that was already processed."""

    def __init__(self, presentation_time, last_processed):
        self.presentation_time = presentation_time
        self.last_processed = last_processed
        super().__init__(
            f"Presentation at {presentation_time} is not newer than the last "
            f"processed presentation ({last_processed})"
        )


class AlreadyAtBoundary(AudiometryTrainerError):
    """Navigation tried to move past the first or last available step."""
