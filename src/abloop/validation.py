"""Validation of timecodes, loop ranges and segment playlists.

Every validator is a pure function that returns a ValidationResult instead of
raising, so callers can show the message and let the user try again.
"""

import math
import re
from dataclasses import dataclass
from typing import Optional

from .config import MAX_FRAME_RATE, MAX_TIMECODE_INPUT_LENGTH, TIMECODE_FORMAT
from .models import SegmentPlaylist, TimePoint

_NON_TIMECODE_CHARS = re.compile(r"[^0-9:]")


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation check."""

    is_valid: bool
    error_message: Optional[str] = None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(True)

    @classmethod
    def failure(cls, message: str) -> "ValidationResult":
        return cls(False, message)

    def __bool__(self) -> bool:
        return self.is_valid


# ── Timecodes ────────────────────────────────────────────────────────────────


def validate_timecode_format(timecode: str) -> ValidationResult:
    """Check that a string has the HH:MM:SS:FF shape (values are not range-checked)."""
    components = timecode.split(":")
    if len(components) != 4:
        return ValidationResult.failure(f"Timecode must have 4 components ({TIMECODE_FORMAT})")

    for component in components:
        if not component or len(component) > MAX_TIMECODE_INPUT_LENGTH:
            return ValidationResult.failure(
                f"Each timecode component must be 1 to {MAX_TIMECODE_INPUT_LENGTH} digits"
            )
        if not (component.isascii() and component.isdigit()):
            return ValidationResult.failure("Timecode components must be numeric")

    return ValidationResult.success()


def validate_timecode_components(
    hours: int,
    minutes: int,
    seconds: int,
    frames: int,
    frame_rate: float,
    max_frame_rate: float = MAX_FRAME_RATE,
) -> ValidationResult:
    """Check each timecode component against its valid range."""
    rate_result = validate_frame_rate(frame_rate, max_frame_rate)
    if not rate_result:
        return rate_result

    if hours < 0:
        return ValidationResult.failure("Hours must be non-negative")
    if not 0 <= minutes < 60:
        return ValidationResult.failure("Minutes must be between 0 and 59")
    if not 0 <= seconds < 60:
        return ValidationResult.failure("Seconds must be between 0 and 59")
    if not 0 <= frames < frame_rate:
        return ValidationResult.failure(
            f"Frames must be between 0 and {math.ceil(frame_rate) - 1}"
        )

    return ValidationResult.success()


def validate_frame_rate(frame_rate: float, max_frame_rate: float = MAX_FRAME_RATE) -> ValidationResult:
    if not 0 < frame_rate <= max_frame_rate:
        return ValidationResult.failure(
            f"Frame rate must be greater than 0 and at most {max_frame_rate:g}"
        )
    return ValidationResult.success()


# ── Ranges ───────────────────────────────────────────────────────────────────


def validate_loop_range(point_a: TimePoint, point_b: TimePoint) -> ValidationResult:
    """Point B must come strictly after point A."""
    if point_b.to_continuous() <= point_a.to_continuous():
        return ValidationResult.failure("Point B must be after Point A.")
    return ValidationResult.success()


def validate_time_point_within_duration(point: TimePoint, total_duration: float) -> ValidationResult:
    """
    Check that a point does not lie past the end of the video.

    Args:
        point: Time point to check
        total_duration: Video duration in seconds
    """
    if point.to_continuous() > total_duration:
        return ValidationResult.failure("Time point exceeds video duration")
    return ValidationResult.success()


def validate_segment_playlist(playlist: SegmentPlaylist) -> ValidationResult:
    """
    Check that a playlist can be activated.

    The playlist needs at least one segment, every segment must end after it
    starts, and the sorted orders must be exactly 0..N-1.
    """
    if not playlist.segments:
        return ValidationResult.failure("Segment playlist must contain at least one segment")

    for segment in playlist.segments:
        result = validate_loop_range(segment.start_point, segment.end_point)
        if not result:
            return ValidationResult.failure(f"Invalid segment: {result.error_message}")

    orders = sorted(segment.order for segment in playlist.segments)
    if orders != list(range(len(orders))):
        return ValidationResult.failure("Segment ordering is invalid")

    return ValidationResult.success()


# ── Input helpers ────────────────────────────────────────────────────────────


def sanitize_timecode_input(text: str) -> str:
    """Drop everything except digits and colons."""
    return _NON_TIMECODE_CHARS.sub("", text)


def pad_timecode_component(component: str) -> str:
    """Left-pad a component to two digits ("" becomes "00")."""
    if not component:
        return "00"
    return component.zfill(2)
