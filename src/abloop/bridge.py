"""Host bridge API for the loop engine.

Exposes the engine to a host player running in another process (see
bridge_server). Methods take and return JSON-serializable data; timecodes
travel as "HH:MM:SS:FF" strings and positions as seconds.
"""

import uuid
from typing import Optional

from .config import DEFAULT_FRAME_RATE
from .engine import Activation, LoopEngine, MutationResult
from .events import EventQueue, LoopEvent
from .models import ABLoop, SegmentPlaylist, TimePoint
from .serialization import loop_to_dict, playlist_to_dict, segment_to_dict


def _parse_id(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _time_payload(point: Optional[TimePoint]) -> Optional[dict]:
    if point is None:
        return None
    return {"seconds": point.to_continuous(), "timecode": point.to_string()}


def _event_payload(event: LoopEvent) -> dict:
    payload = {"kind": event.kind.value, "time": event.time}
    if event.loop is not None:
        payload["loopId"] = str(event.loop.id)
    if event.segment is not None:
        payload["segmentId"] = str(event.segment.id)
    if event.playlist is not None:
        payload["playlistId"] = str(event.playlist.id)
    return payload


def _activation_payload(activation: Activation) -> dict:
    return {
        "mode": activation.mode.value,
        "loopId": str(activation.loop.id) if activation.loop else None,
        "playlistId": str(activation.playlist.id) if activation.playlist else None,
        "segmentId": str(activation.segment.id) if activation.segment else None,
    }


def _mutation_payload(result: MutationResult) -> dict:
    return {
        "applied": result.applied,
        "persisted": result.persisted,
        "message": result.message,
    }


class HostBridge:
    """Engine facade for one host player; one video is open at a time."""

    def __init__(self, engine: LoopEngine):
        self.engine = engine
        self.video_id: Optional[str] = None
        self.frame_rate = engine.config.default_frame_rate
        self._events = EventQueue()
        engine.add_observer(self._events)

    def _require_video(self) -> str:
        if self.video_id is None:
            raise RuntimeError("No video open. Call open_video first.")
        return self.video_id

    def _find_loop(self, loop_id: str) -> ABLoop:
        target = _parse_id(loop_id)
        for loop in self.engine.list_loops(self._require_video()):
            if loop.id == target:
                return loop
        raise ValueError(f"Unknown loop: {loop_id}")

    def _find_playlist(self, playlist_id: str) -> SegmentPlaylist:
        target = _parse_id(playlist_id)
        for playlist in self.engine.list_segment_playlists(self._require_video()):
            if playlist.id == target:
                return playlist
        raise ValueError(f"Unknown playlist: {playlist_id}")

    def open_video(self, video_id: str, frame_rate: float = DEFAULT_FRAME_RATE) -> dict:
        """Select the video that later calls refer to and return its catalog."""
        self.engine.deactivate()
        self._events.drain()
        self.video_id = video_id
        self.frame_rate = frame_rate
        return self.list_catalog()

    def list_catalog(self) -> dict:
        video_id = self._require_video()
        return {
            "videoIdentifier": video_id,
            "abLoops": [loop_to_dict(loop) for loop in self.engine.list_loops(video_id)],
            "segmentPlaylists": [playlist_to_dict(p) for p in self.engine.list_segment_playlists(video_id)],
        }

    def tick(self, time: float) -> dict:
        """Feed one playback position; returns the seek target and any events."""
        target = self.engine.on_time_tick(float(time))
        return {
            "seek": _time_payload(target),
            "events": [_event_payload(e) for e in self._events.drain()],
        }

    def status(self) -> dict:
        activation = self.engine.get_activation()
        payload = _activation_payload(activation)
        if activation.segment is not None:
            payload["segment"] = segment_to_dict(activation.segment)
        return payload

    def activate_loop(self, loop_id: str) -> dict:
        loop = self._find_loop(loop_id)
        return _activation_payload(self.engine.activate_loop(loop))

    def activate_playlist(self, playlist_id: str) -> dict:
        playlist = self._find_playlist(playlist_id)
        return _activation_payload(self.engine.activate_segment_playlist(playlist))

    def deactivate(self) -> dict:
        self.engine.deactivate()
        return _activation_payload(self.engine.get_activation())

    def create_loop(self, point_a: str, point_b: str, name: Optional[str] = None) -> dict:
        result = self.engine.create_loop(
            self._require_video(), point_a, point_b, name=name, frame_rate=self.frame_rate
        )
        payload = _mutation_payload(result)
        payload["loop"] = loop_to_dict(result.value) if result.applied else None
        return payload

    def remove_loop(self, loop_id: str) -> dict:
        return _mutation_payload(self.engine.remove_loop(loop_id, self._require_video()))

    def create_playlist(self, name: str, segments: list, looping: bool = False) -> dict:
        """
        Create a playlist from [[start, end], ...] or [[start, end, name], ...].
        """
        result = self.engine.create_segment_playlist(
            self._require_video(),
            name,
            [tuple(entry) for entry in segments],
            is_looping=looping,
            frame_rate=self.frame_rate,
        )
        payload = _mutation_payload(result)
        payload["playlist"] = playlist_to_dict(result.value) if result.applied else None
        return payload

    def set_playlist_looping(self, playlist_id: str, looping: bool) -> dict:
        playlist = self._find_playlist(playlist_id)
        result = self.engine.update_segment_playlist(playlist.with_looping(bool(looping)), self._require_video())
        return _mutation_payload(result)

    def remove_playlist(self, playlist_id: str) -> dict:
        return _mutation_payload(self.engine.remove_segment_playlist(playlist_id, self._require_video()))

    def clear_catalog(self) -> dict:
        return _mutation_payload(self.engine.clear_catalog(self._require_video()))
