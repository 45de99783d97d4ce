"""Exception types for loop and playlist operations."""


class ABLoopError(Exception):
    """Base class for every error raised by abloop."""


class InvalidTimecodeError(ABLoopError, ValueError):
    """A timecode component is out of range or malformed."""


class InvalidRangeError(ABLoopError, ValueError):
    """An end point is not strictly after its start point."""


class InvalidFrameRateError(ABLoopError, ValueError):
    """A frame rate is not positive or exceeds the configured maximum."""

    def __init__(self, frame_rate: float, max_frame_rate: float):
        self.frame_rate = frame_rate
        self.max_frame_rate = max_frame_rate
        super().__init__(
            f"Invalid frame rate: {frame_rate}. "
            f"Frame rate must be greater than 0 and at most {max_frame_rate}."
        )


class InvalidConfigError(ABLoopError, ValueError):
    """Engine configuration rejected at construction time."""


class PersistenceError(ABLoopError):
    """Catalog data could not be encoded, decoded, read or written."""
