"""
Domain events raised by the loop engine.

Observers are plain callables taking a LoopEvent. They run synchronously on
the thread that called `LoopEngine.on_time_tick`. Hosts that would rather
poll from their own loop can register an EventQueue instead.
"""

from __future__ import annotations

import queue
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from .models import ABLoop, PlaybackSegment, SegmentPlaylist


class LoopEventKind(str, Enum):
    LOOP_REACHED_END = "loop_reached_end"
    SEGMENT_FINISHED = "segment_finished"
    PLAYLIST_COMPLETED = "playlist_completed"


@dataclass(frozen=True)
class LoopEvent:
    kind: LoopEventKind
    time: float  # playback position of the tick that raised the event
    loop: Optional[ABLoop] = None
    segment: Optional[PlaybackSegment] = None
    playlist: Optional[SegmentPlaylist] = None

    @classmethod
    def loop_reached_end(cls, loop: ABLoop, time: float) -> LoopEvent:
        return cls(LoopEventKind.LOOP_REACHED_END, time, loop=loop)

    @classmethod
    def segment_finished(cls, segment: PlaybackSegment, playlist: SegmentPlaylist, time: float) -> LoopEvent:
        return cls(LoopEventKind.SEGMENT_FINISHED, time, segment=segment, playlist=playlist)

    @classmethod
    def playlist_completed(cls, playlist: SegmentPlaylist, time: float) -> LoopEvent:
        return cls(LoopEventKind.PLAYLIST_COMPLETED, time, playlist=playlist)


Observer = Callable[[LoopEvent], None]


class EventQueue:
    """Observer that buffers events in a thread-safe FIFO for the host to drain."""

    def __init__(self) -> None:
        self._fifo: "queue.Queue[LoopEvent]" = queue.Queue()

    def __call__(self, event: LoopEvent) -> None:
        self._fifo.put(event)

    def poll(self) -> LoopEvent | None:
        """Return next queued event or None (non-blocking)."""
        try:
            return self._fifo.get_nowait()
        except queue.Empty:
            return None

    def drain(self) -> list[LoopEvent]:
        events = []
        while (event := self.poll()) is not None:
            events.append(event)
        return events

    def __len__(self) -> int:
        return self._fifo.qsize()
