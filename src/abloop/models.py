"""Data models for A-B loops and segment playlists."""

import math
import uuid
from dataclasses import dataclass, field, replace
from typing import Iterable, Optional

from .config import DEFAULT_FRAME_RATE, DEFAULT_LOOP_NAME, MAX_FRAME_RATE
from .errors import InvalidFrameRateError, InvalidRangeError, InvalidTimecodeError

# Absorbs binary float error when a continuous time lands exactly on a frame.
# The error grows with the magnitude of the time, so from_continuous adds a
# few ulps of the input on top of this floor.
FRAME_EPSILON = 1e-6


@dataclass(frozen=True)
class TimePoint:
    """
    A frame-accurate position in a video.

    Equality is component-wise: two points with different frame rates are
    never equal, even when they describe the same wall-clock time.
    """

    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    frames: int = 0
    frame_rate: float = DEFAULT_FRAME_RATE

    def __post_init__(self):
        if not 0 < self.frame_rate <= MAX_FRAME_RATE:
            raise InvalidFrameRateError(self.frame_rate, MAX_FRAME_RATE)
        if self.hours < 0:
            raise InvalidTimecodeError("Hours must be non-negative")
        if not 0 <= self.minutes < 60:
            raise InvalidTimecodeError("Minutes must be between 0 and 59")
        if not 0 <= self.seconds < 60:
            raise InvalidTimecodeError("Seconds must be between 0 and 59")
        if not 0 <= self.frames < self.frame_rate:
            raise InvalidTimecodeError(
                f"Frames must be between 0 and {math.ceil(self.frame_rate) - 1}"
            )

    @classmethod
    def zero(cls, frame_rate: float = DEFAULT_FRAME_RATE) -> "TimePoint":
        return cls(frame_rate=frame_rate)

    @classmethod
    def from_continuous(cls, seconds: float, frame_rate: float = DEFAULT_FRAME_RATE) -> "TimePoint":
        """
        Build a TimePoint from a position in seconds.

        The frame component is truncated, so the result is the frame boundary
        at or before the given time.

        Args:
            seconds: Playback position in seconds (non-negative)
            frame_rate: Frames per second of the video

        Returns:
            TimePoint at the given frame rate
        """
        if not 0 < frame_rate <= MAX_FRAME_RATE:
            raise InvalidFrameRateError(frame_rate, MAX_FRAME_RATE)
        total = float(seconds)
        if math.isnan(total) or math.isinf(total) or total < 0:
            raise InvalidTimecodeError(f"Cannot convert {seconds!r} seconds to a timecode")

        whole = math.floor(total)
        fraction = total - whole
        exact = fraction * frame_rate
        nearest = round(exact)
        tolerance = FRAME_EPSILON + 4 * math.ulp(total) * frame_rate
        frames = nearest if abs(exact - nearest) <= tolerance else math.floor(exact)
        frames = min(frames, math.ceil(frame_rate) - 1)

        hours, remainder = divmod(int(whole), 3600)
        minutes, secs = divmod(remainder, 60)
        return cls(hours=hours, minutes=minutes, seconds=secs, frames=frames, frame_rate=frame_rate)

    @classmethod
    def parse(cls, text: str, frame_rate: float = DEFAULT_FRAME_RATE) -> Optional["TimePoint"]:
        """Parse an "HH:MM:SS:FF" string. Returns None if it is not a valid timecode."""
        parts = text.strip().split(":")
        if len(parts) != 4:
            return None
        if not all(part.isascii() and part.isdigit() for part in parts):
            return None

        hours, minutes, seconds, frames = (int(part) for part in parts)
        try:
            return cls(hours, minutes, seconds, frames, frame_rate)
        except ValueError:
            return None

    def to_continuous(self) -> float:
        """Position in seconds."""
        whole = self.hours * 3600 + self.minutes * 60 + self.seconds
        return whole + self.frames / self.frame_rate

    def to_string(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}:{self.frames:02d}"

    def __str__(self) -> str:
        return self.to_string()


@dataclass(frozen=True)
class ABLoop:
    """A named range that repeats from point A once playback reaches point B."""

    point_a: TimePoint
    point_b: TimePoint
    name: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if self.point_b.to_continuous() <= self.point_a.to_continuous():
            raise InvalidRangeError("Point B must be after Point A.")

    @property
    def display_name(self) -> str:
        return self.name or DEFAULT_LOOP_NAME

    def duration(self) -> float:
        return self.point_b.to_continuous() - self.point_a.to_continuous()

    def contains(self, seconds: float) -> bool:
        """True if the position lies inside the loop, both ends included."""
        return self.point_a.to_continuous() <= seconds <= self.point_b.to_continuous()


@dataclass(frozen=True)
class PlaybackSegment:
    """One bounded range of a segment playlist."""

    start_point: TimePoint
    end_point: TimePoint
    order: int
    name: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        if self.order < 0:
            raise ValueError(f"Segment order must be non-negative, got {self.order}")
        if self.end_point.to_continuous() <= self.start_point.to_continuous():
            raise InvalidRangeError("Segment end point must be after its start point.")

    def duration(self) -> float:
        return self.end_point.to_continuous() - self.start_point.to_continuous()


@dataclass(frozen=True)
class SegmentPlaylist:
    """
    Segments of one video played in sequence.

    Segments are kept sorted by `order`. Construction only sorts; it does not
    require the orders to be contiguous (see validation.validate_segment_playlist).
    """

    name: str
    segments: tuple[PlaybackSegment, ...]
    video_identifier: str
    is_looping: bool = False
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def __post_init__(self):
        object.__setattr__(self, "segments", tuple(sorted(self.segments, key=lambda s: s.order)))

    @property
    def first_segment(self) -> Optional[PlaybackSegment]:
        return self.segments[0] if self.segments else None

    def index_of(self, segment: PlaybackSegment) -> Optional[int]:
        for i, candidate in enumerate(self.segments):
            if candidate.id == segment.id:
                return i
        return None

    def next_segment(self, after: PlaybackSegment) -> Optional[PlaybackSegment]:
        """
        Segment that follows `after` in playback order.

        Wraps to the first segment when the playlist loops. Returns None at the
        end of a non-looping playlist or if `after` is not part of it.
        """
        index = self.index_of(after)
        if index is None:
            return None

        if index + 1 < len(self.segments):
            return self.segments[index + 1]
        if self.is_looping:
            return self.segments[0]
        return None

    def total_duration(self) -> float:
        return sum(segment.duration() for segment in self.segments)

    def with_segments(self, segments: Iterable[PlaybackSegment]) -> "SegmentPlaylist":
        return replace(self, segments=tuple(segments))

    def with_looping(self, is_looping: bool) -> "SegmentPlaylist":
        return replace(self, is_looping=is_looping)

    def normalized(self) -> "SegmentPlaylist":
        """Copy with segment orders renumbered 0..N-1 in their current order."""
        return self.with_segments(
            replace(segment, order=i) for i, segment in enumerate(self.segments)
        )


@dataclass
class VideoLoopData:
    """All loops and playlists saved for one video."""

    video_identifier: str
    ab_loops: list[ABLoop] = field(default_factory=list)
    segment_playlists: list[SegmentPlaylist] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.ab_loops and not self.segment_playlists

    def find_loop(self, loop_id: uuid.UUID) -> Optional[ABLoop]:
        return next((loop for loop in self.ab_loops if loop.id == loop_id), None)

    def find_playlist(self, playlist_id: uuid.UUID) -> Optional[SegmentPlaylist]:
        return next((p for p in self.segment_playlists if p.id == playlist_id), None)


def format_timestamp(seconds: float) -> str:
    """Format seconds as HH:MM:SS.mmm"""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = seconds % 60
    return f"{hours:02d}:{minutes:02d}:{secs:06.3f}"
