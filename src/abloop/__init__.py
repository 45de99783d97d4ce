"""
A-B Loop Engine

Frame-accurate A-B loops and segment playlists for a host video player.

Basic usage:
    from abloop import LoopEngine, TimePoint, ABLoop

    engine = LoopEngine()
    loop = ABLoop(TimePoint(seconds=5), TimePoint(seconds=10), name="chorus")
    engine.add_loop("movie.mp4", loop)
    engine.activate_loop(loop)

    # once per second from the player:
    target = engine.on_time_tick(player.current_time)
    if target is not None:
        player.seek(target.to_continuous())
"""

from .models import ABLoop, PlaybackSegment, SegmentPlaylist, TimePoint, VideoLoopData, format_timestamp
from .engine import Activation, LoopEngine, MutationResult, PlaybackMode
from .events import EventQueue, LoopEvent, LoopEventKind
from .config import EngineConfig
from .errors import (
    ABLoopError,
    InvalidConfigError,
    InvalidFrameRateError,
    InvalidRangeError,
    InvalidTimecodeError,
    PersistenceError,
)
from .store import JsonFileStore, KeyValueStore, MemoryStore
from .validation import ValidationResult

__version__ = "0.1.0"

__all__ = [
    # Main API
    "LoopEngine",
    "Activation",
    "PlaybackMode",
    "MutationResult",
    # Data models
    "TimePoint",
    "ABLoop",
    "PlaybackSegment",
    "SegmentPlaylist",
    "VideoLoopData",
    # Events
    "LoopEvent",
    "LoopEventKind",
    "EventQueue",
    # Persistence
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    # Configuration and errors
    "EngineConfig",
    "ValidationResult",
    "ABLoopError",
    "InvalidTimecodeError",
    "InvalidRangeError",
    "InvalidFrameRateError",
    "InvalidConfigError",
    "PersistenceError",
    # Utilities
    "format_timestamp",
]
