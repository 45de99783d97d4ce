"""Conversion of catalogs to and from the stored JSON layout.

The whole catalog is one JSON array with one record per video:

    [{"videoIdentifier": ..., "abLoops": [...], "segmentPlaylists": [...]}]
"""

import json
import uuid
from typing import Any, Iterable

from .errors import PersistenceError
from .models import ABLoop, PlaybackSegment, SegmentPlaylist, TimePoint, VideoLoopData


def time_point_to_dict(point: TimePoint) -> dict:
    return {
        "hours": point.hours,
        "minutes": point.minutes,
        "seconds": point.seconds,
        "frames": point.frames,
        "frameRate": point.frame_rate,
    }


def time_point_from_dict(data: dict) -> TimePoint:
    return TimePoint(
        hours=_int(data["hours"]),
        minutes=_int(data["minutes"]),
        seconds=_int(data["seconds"]),
        frames=_int(data["frames"]),
        frame_rate=float(data["frameRate"]),
    )


def loop_to_dict(loop: ABLoop) -> dict:
    return {
        "id": str(loop.id),
        "pointA": time_point_to_dict(loop.point_a),
        "pointB": time_point_to_dict(loop.point_b),
        "name": loop.name,
    }


def loop_from_dict(data: dict) -> ABLoop:
    return ABLoop(
        id=uuid.UUID(data["id"]),
        point_a=time_point_from_dict(data["pointA"]),
        point_b=time_point_from_dict(data["pointB"]),
        name=data.get("name"),
    )


def segment_to_dict(segment: PlaybackSegment) -> dict:
    return {
        "id": str(segment.id),
        "startPoint": time_point_to_dict(segment.start_point),
        "endPoint": time_point_to_dict(segment.end_point),
        "order": segment.order,
        "name": segment.name,
    }


def segment_from_dict(data: dict) -> PlaybackSegment:
    return PlaybackSegment(
        id=uuid.UUID(data["id"]),
        start_point=time_point_from_dict(data["startPoint"]),
        end_point=time_point_from_dict(data["endPoint"]),
        order=_int(data["order"]),
        name=data.get("name"),
    )


def playlist_to_dict(playlist: SegmentPlaylist) -> dict:
    return {
        "id": str(playlist.id),
        "name": playlist.name,
        "segments": [segment_to_dict(s) for s in playlist.segments],
        "videoIdentifier": playlist.video_identifier,
        "isLooping": playlist.is_looping,
    }


def playlist_from_dict(data: dict) -> SegmentPlaylist:
    return SegmentPlaylist(
        id=uuid.UUID(data["id"]),
        name=str(data["name"]),
        segments=tuple(segment_from_dict(s) for s in data["segments"]),
        video_identifier=str(data["videoIdentifier"]),
        is_looping=bool(data.get("isLooping", False)),
    )


def catalog_to_dict(catalog: VideoLoopData) -> dict:
    return {
        "videoIdentifier": catalog.video_identifier,
        "abLoops": [loop_to_dict(loop) for loop in catalog.ab_loops],
        "segmentPlaylists": [playlist_to_dict(p) for p in catalog.segment_playlists],
    }


def catalog_from_dict(data: dict) -> VideoLoopData:
    return VideoLoopData(
        video_identifier=str(data["videoIdentifier"]),
        ab_loops=[loop_from_dict(loop) for loop in data.get("abLoops", [])],
        segment_playlists=[playlist_from_dict(p) for p in data.get("segmentPlaylists", [])],
    )


def encode_catalogs(catalogs: Iterable[VideoLoopData]) -> bytes:
    """Serialize every catalog into a single JSON blob."""
    try:
        payload = [catalog_to_dict(catalog) for catalog in catalogs]
        return json.dumps(payload, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Failed to encode loop data: {e}") from e


def decode_catalogs(data: bytes | str) -> list[VideoLoopData]:
    """
    Parse a blob written by encode_catalogs.

    Raises:
        PersistenceError: If the blob is not valid JSON or any record is malformed
    """
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        if not isinstance(text, str):
            raise TypeError(f"expected bytes or str, got {type(data).__name__}")
        payload = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError, RecursionError, TypeError) as e:
        raise PersistenceError(f"Loop data is not valid JSON: {e}") from e

    if not isinstance(payload, list):
        raise PersistenceError("Loop data must be a JSON array")

    try:
        return [catalog_from_dict(record) for record in payload]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise PersistenceError(f"Malformed loop record: {e!r}") from e


def _int(value: Any) -> int:
    # bool is an int subclass; a stored true/false is never a timecode field
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected an integer, got {value!r}")
    return value
