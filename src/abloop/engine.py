"""A-B loop and segment playlist engine.

LoopEngine owns two pieces of state: which loop or playlist is active, and the
per-video catalog of saved loops and playlists. The host calls
`on_time_tick()` about once per second with the playback position and performs
whatever seek the engine returns.

Threading model: a single state lock guards activation and catalogs and is
never held across store I/O or observer callbacks. A second lock admits one
catalog mutation at a time, including its write to the store, so writes can
never interleave. Ticks only take the state lock.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Iterable, Optional, Sequence, Union

from .config import EngineConfig
from .errors import PersistenceError
from .events import LoopEvent, Observer
from .models import ABLoop, PlaybackSegment, SegmentPlaylist, TimePoint, VideoLoopData
from .serialization import decode_catalogs, encode_catalogs
from .store import KeyValueStore, MemoryStore
from . import validation

logger = logging.getLogger(__name__)

TimeInput = Union[TimePoint, str]
IdInput = Union[uuid.UUID, str]


class PlaybackMode(str, Enum):
    IDLE = "idle"
    LOOP = "loop"
    PLAYLIST = "playlist"


@dataclass(frozen=True)
class Activation:
    """The single playback constraint currently enforced."""

    mode: PlaybackMode
    loop: Optional[ABLoop] = None
    playlist: Optional[SegmentPlaylist] = None
    segment: Optional[PlaybackSegment] = None

    @classmethod
    def idle(cls) -> "Activation":
        return cls(PlaybackMode.IDLE)

    @classmethod
    def for_loop(cls, loop: ABLoop) -> "Activation":
        return cls(PlaybackMode.LOOP, loop=loop)

    @classmethod
    def for_playlist(cls, playlist: SegmentPlaylist, segment: PlaybackSegment) -> "Activation":
        return cls(PlaybackMode.PLAYLIST, playlist=playlist, segment=segment)

    @property
    def is_idle(self) -> bool:
        return self.mode is PlaybackMode.IDLE


@dataclass(frozen=True)
class MutationResult:
    """
    Outcome of a catalog change.

    `applied` is False for rejected input and for no-ops such as removing an
    unknown id. `persisted` is False when the change was applied in memory but
    the store write failed; `message` then carries the warning.
    """

    applied: bool
    persisted: bool = True
    message: Optional[str] = None
    value: Any = None

    @classmethod
    def rejected(cls, message: str) -> "MutationResult":
        return cls(applied=False, message=message)

    @classmethod
    def noop(cls) -> "MutationResult":
        return cls(applied=False)

    @property
    def ok(self) -> bool:
        return self.applied and self.persisted


def _as_uuid(value: IdInput) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class LoopEngine:
    """
    Decides loop and segment transitions and keeps the loop catalog.

    Construct one engine per playback session owner and pass it to whatever
    drives playback; there is no shared global instance.
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        config: Optional[EngineConfig] = None,
    ):
        """
        Initialize the engine and load the saved catalog.

        Args:
            store: Blob store for the catalog (in-memory if None)
            config: Engine configuration (defaults if None)
        """
        self.config = config or EngineConfig()
        self.store = store if store is not None else MemoryStore()

        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._activation = Activation.idle()
        self._observers: list[Observer] = []
        self._catalogs: dict[str, VideoLoopData] = self._read_store()

    # ── Observers ────────────────────────────────────────────────────────────

    def add_observer(self, observer: Observer) -> None:
        with self._lock:
            if observer not in self._observers:
                self._observers.append(observer)

    def remove_observer(self, observer: Observer) -> None:
        with self._lock:
            if observer in self._observers:
                self._observers.remove(observer)

    def _dispatch(self, events: list[LoopEvent]) -> None:
        if not events:
            return
        with self._lock:
            observers = list(self._observers)
        for event in events:
            for observer in observers:
                try:
                    observer(event)
                except Exception:
                    logger.exception("Observer %r failed on %s", observer, event.kind.value)

    # ── Activation ───────────────────────────────────────────────────────────

    def activate_loop(self, loop: ABLoop) -> Activation:
        """Make `loop` the active constraint, replacing any active playlist."""
        activation = Activation.for_loop(loop)
        with self._lock:
            self._activation = activation
        logger.info("Activated loop %s (%s -> %s)", loop.display_name, loop.point_a, loop.point_b)
        return activation

    def activate_segment_playlist(self, playlist: SegmentPlaylist) -> Activation:
        """
        Start a playlist at its first segment, replacing any active loop.

        An empty playlist leaves the engine idle.
        """
        first = playlist.first_segment
        activation = Activation.for_playlist(playlist, first) if first else Activation.idle()
        with self._lock:
            self._activation = activation

        if first is None:
            logger.warning("Playlist %r has no segments; engine is idle", playlist.name)
        else:
            logger.info("Activated playlist %r with %d segment(s)", playlist.name, len(playlist.segments))
        return activation

    def deactivate(self) -> None:
        with self._lock:
            self._activation = Activation.idle()
        logger.info("Deactivated loop/playlist")

    def get_activation(self) -> Activation:
        with self._lock:
            return self._activation

    def get_active_loop(self) -> Optional[ABLoop]:
        with self._lock:
            return self._activation.loop

    def get_active_segment_playlist(self) -> Optional[SegmentPlaylist]:
        with self._lock:
            return self._activation.playlist

    def get_current_segment(self) -> Optional[PlaybackSegment]:
        with self._lock:
            return self._activation.segment

    def has_active_loop_or_playlist(self) -> bool:
        with self._lock:
            return not self._activation.is_idle

    # ── Time ticks ───────────────────────────────────────────────────────────

    def on_time_tick(self, current_time: Union[float, TimePoint]) -> Optional[TimePoint]:
        """
        Decide what to do at the given playback position.

        Reaching the end point exactly counts as reaching it. Events raised by
        the tick are delivered to observers before this returns.

        Args:
            current_time: Playback position in seconds

        Returns:
            Position the host should seek to, or None to keep playing
        """
        if isinstance(current_time, TimePoint):
            current_time = current_time.to_continuous()

        events: list[LoopEvent] = []
        target: Optional[TimePoint] = None

        with self._lock:
            activation = self._activation

            if activation.mode is PlaybackMode.LOOP:
                loop = activation.loop
                if current_time >= loop.point_b.to_continuous():
                    events.append(LoopEvent.loop_reached_end(loop, current_time))
                    target = loop.point_a

            elif activation.mode is PlaybackMode.PLAYLIST:
                playlist, segment = activation.playlist, activation.segment
                if current_time >= segment.end_point.to_continuous():
                    events.append(LoopEvent.segment_finished(segment, playlist, current_time))
                    following = playlist.next_segment(segment)

                    if following is not None:
                        self._activation = Activation.for_playlist(playlist, following)
                        target = following.start_point
                    else:
                        events.append(LoopEvent.playlist_completed(playlist, current_time))
                        first = playlist.first_segment
                        if playlist.is_looping and first is not None:
                            self._activation = Activation.for_playlist(playlist, first)
                            target = first.start_point
                        else:
                            self._activation = Activation.idle()

        if target is not None:
            logger.debug("Tick %.3fs: seek to %s", current_time, target)
        for event in events:
            logger.debug("Tick %.3fs: %s", current_time, event.kind.value)

        self._dispatch(events)
        return target

    # ── Catalog: loops ───────────────────────────────────────────────────────

    def add_loop(self, video_id: str, loop: ABLoop) -> MutationResult:
        def apply() -> MutationResult:
            catalog = self._catalogs.setdefault(video_id, VideoLoopData(video_identifier=video_id))
            if catalog.find_loop(loop.id) is not None:
                return MutationResult.rejected(f"Loop {loop.id} already exists")
            catalog.ab_loops.append(loop)
            return MutationResult(applied=True, value=loop)

        return self._mutate(apply)

    def create_loop(
        self,
        video_id: str,
        point_a: TimeInput,
        point_b: TimeInput,
        name: Optional[str] = None,
        frame_rate: Optional[float] = None,
    ) -> MutationResult:
        """
        Validate raw input, then build and add a loop.

        Timecode strings are parsed at `frame_rate` (the configured default if
        None). Invalid input comes back as a rejected result, never an exception.
        """
        if frame_rate is None:
            frame_rate = self.config.default_frame_rate
        result = validation.validate_frame_rate(frame_rate, self.config.max_frame_rate)
        if not result:
            return MutationResult.rejected(result.error_message)

        start, end = self._coerce_point(point_a, frame_rate), self._coerce_point(point_b, frame_rate)
        if start is None or end is None:
            return MutationResult.rejected("Please enter valid timecodes for both Point A and Point B.")

        result = validation.validate_loop_range(start, end)
        if not result:
            return MutationResult.rejected(result.error_message)

        return self.add_loop(video_id, ABLoop(point_a=start, point_b=end, name=name or None))

    def remove_loop(self, loop_id: IdInput, video_id: Optional[str] = None) -> MutationResult:
        """Remove a loop by id. Unknown ids are a no-op."""
        target_id = _as_uuid(loop_id)

        def apply() -> MutationResult:
            for catalog in self._candidate_catalogs(video_id):
                loop = catalog.find_loop(target_id)
                if loop is None:
                    continue
                catalog.ab_loops.remove(loop)
                self._drop_if_empty(catalog)
                if self._activation.loop is not None and self._activation.loop.id == target_id:
                    self._activation = Activation.idle()
                return MutationResult(applied=True, value=loop)
            return MutationResult.noop()

        return self._mutate(apply)

    def list_loops(self, video_id: str) -> list[ABLoop]:
        with self._lock:
            catalog = self._catalogs.get(video_id)
            return list(catalog.ab_loops) if catalog else []

    def get_loop(self, loop_id: IdInput) -> Optional[ABLoop]:
        target_id = _as_uuid(loop_id)
        with self._lock:
            for catalog in self._catalogs.values():
                loop = catalog.find_loop(target_id)
                if loop is not None:
                    return loop
        return None

    # ── Catalog: segment playlists ───────────────────────────────────────────

    def add_segment_playlist(self, playlist: SegmentPlaylist, video_id: Optional[str] = None) -> MutationResult:
        video_id = video_id or playlist.video_identifier

        def apply() -> MutationResult:
            catalog = self._catalogs.setdefault(video_id, VideoLoopData(video_identifier=video_id))
            if catalog.find_playlist(playlist.id) is not None:
                return MutationResult.rejected(f"Playlist {playlist.id} already exists")
            catalog.segment_playlists.append(playlist)
            return MutationResult(applied=True, value=playlist)

        return self._mutate(apply)

    def create_segment_playlist(
        self,
        video_id: str,
        name: str,
        ranges: Iterable[Sequence],
        is_looping: bool = False,
        frame_rate: Optional[float] = None,
    ) -> MutationResult:
        """
        Validate raw ranges, then build and add a playlist.

        Args:
            video_id: Video the playlist belongs to
            name: Playlist name
            ranges: (start, end) or (start, end, name) per segment, in play order
            is_looping: Whether the playlist restarts after the last segment
            frame_rate: Frame rate for parsing timecode strings
        """
        if frame_rate is None:
            frame_rate = self.config.default_frame_rate
        result = validation.validate_frame_rate(frame_rate, self.config.max_frame_rate)
        if not result:
            return MutationResult.rejected(result.error_message)

        segments = []
        for order, entry in enumerate(ranges):
            start = self._coerce_point(entry[0], frame_rate)
            end = self._coerce_point(entry[1], frame_rate)
            if start is None or end is None:
                return MutationResult.rejected(f"Segment {order + 1}: invalid timecode")
            result = validation.validate_loop_range(start, end)
            if not result:
                return MutationResult.rejected(f"Segment {order + 1}: {result.error_message}")
            segment_name = entry[2] if len(entry) > 2 else None
            segments.append(PlaybackSegment(start_point=start, end_point=end, order=order, name=segment_name))

        playlist = SegmentPlaylist(
            name=name,
            segments=tuple(segments),
            video_identifier=video_id,
            is_looping=is_looping,
        )
        result = validation.validate_segment_playlist(playlist)
        if not result:
            return MutationResult.rejected(result.error_message)

        return self.add_segment_playlist(playlist, video_id)

    def remove_segment_playlist(self, playlist_id: IdInput, video_id: Optional[str] = None) -> MutationResult:
        """Remove a playlist by id. Unknown ids are a no-op."""
        target_id = _as_uuid(playlist_id)

        def apply() -> MutationResult:
            for catalog in self._candidate_catalogs(video_id):
                playlist = catalog.find_playlist(target_id)
                if playlist is None:
                    continue
                catalog.segment_playlists.remove(playlist)
                self._drop_if_empty(catalog)
                active = self._activation.playlist
                if active is not None and active.id == target_id:
                    self._activation = Activation.idle()
                return MutationResult(applied=True, value=playlist)
            return MutationResult.noop()

        return self._mutate(apply)

    def update_segment_playlist(self, playlist: SegmentPlaylist, video_id: Optional[str] = None) -> MutationResult:
        """
        Replace a stored playlist that has the same id.

        If the playlist is active, the activation switches to the new version
        and keeps playing the same segment when it still exists.
        """
        video_id = video_id or playlist.video_identifier

        def apply() -> MutationResult:
            catalog = self._catalogs.get(video_id)
            if catalog is None:
                return MutationResult.noop()
            for i, existing in enumerate(catalog.segment_playlists):
                if existing.id == playlist.id:
                    catalog.segment_playlists[i] = playlist
                    break
            else:
                return MutationResult.noop()

            active = self._activation.playlist
            if active is not None and active.id == playlist.id:
                self._activation = self._rebase_activation(playlist)
            return MutationResult(applied=True, value=playlist)

        return self._mutate(apply)

    def list_segment_playlists(self, video_id: str) -> list[SegmentPlaylist]:
        with self._lock:
            catalog = self._catalogs.get(video_id)
            return list(catalog.segment_playlists) if catalog else []

    def get_segment_playlist(self, playlist_id: IdInput) -> Optional[SegmentPlaylist]:
        target_id = _as_uuid(playlist_id)
        with self._lock:
            for catalog in self._catalogs.values():
                playlist = catalog.find_playlist(target_id)
                if playlist is not None:
                    return playlist
        return None

    # ── Catalog: whole videos ────────────────────────────────────────────────

    def video_identifiers(self) -> list[str]:
        with self._lock:
            return sorted(self._catalogs)

    def clear_catalog(self, video_id: str) -> MutationResult:
        """Delete every loop and playlist of one video."""

        def apply() -> MutationResult:
            removed = self._catalogs.pop(video_id, None)
            if removed is None:
                return MutationResult.noop()
            if self._references(removed, self._activation):
                self._activation = Activation.idle()
            return MutationResult(applied=True, value=removed)

        return self._mutate(apply)

    def clear_all_catalogs(self) -> MutationResult:
        """Delete every catalog and remove the stored blob."""
        with self._write_lock:
            with self._lock:
                self._catalogs.clear()
                self._activation = Activation.idle()

            try:
                persisted = self.store.delete(self.config.storage_key)
                message = None if persisted else "Failed to remove saved loop data"
            except (PersistenceError, OSError) as e:
                persisted, message = False, f"Failed to remove saved loop data: {e}"

        if not persisted:
            logger.warning(message)
        return MutationResult(applied=True, persisted=persisted, message=message)

    # ── Internals ────────────────────────────────────────────────────────────

    def _coerce_point(self, value: TimeInput, frame_rate: float) -> Optional[TimePoint]:
        if isinstance(value, TimePoint):
            return value
        return TimePoint.parse(str(value), frame_rate)

    def _candidate_catalogs(self, video_id: Optional[str]) -> list[VideoLoopData]:
        if video_id is None:
            return list(self._catalogs.values())
        catalog = self._catalogs.get(video_id)
        return [catalog] if catalog else []

    def _drop_if_empty(self, catalog: VideoLoopData) -> None:
        if catalog.is_empty:
            self._catalogs.pop(catalog.video_identifier, None)

    def _rebase_activation(self, playlist: SegmentPlaylist) -> Activation:
        current = self._activation.segment
        if current is not None:
            index = playlist.index_of(current)
            if index is not None:
                return Activation.for_playlist(playlist, playlist.segments[index])
        first = playlist.first_segment
        return Activation.for_playlist(playlist, first) if first else Activation.idle()

    @staticmethod
    def _references(catalog: VideoLoopData, activation: Activation) -> bool:
        if activation.loop is not None:
            return catalog.find_loop(activation.loop.id) is not None
        if activation.playlist is not None:
            return (
                activation.playlist.video_identifier == catalog.video_identifier
                or catalog.find_playlist(activation.playlist.id) is not None
            )
        return False

    def _snapshot(self) -> list[VideoLoopData]:
        # Entities are immutable, so copying the lists is enough.
        return [
            VideoLoopData(
                video_identifier=c.video_identifier,
                ab_loops=list(c.ab_loops),
                segment_playlists=list(c.segment_playlists),
            )
            for c in self._catalogs.values()
        ]

    def _mutate(self, apply) -> MutationResult:
        with self._write_lock:
            with self._lock:
                result = apply()
                if not result.applied:
                    return result
                snapshot = self._snapshot()

            persisted, message = self._write_store(snapshot)

        if not persisted:
            return replace(result, persisted=False, message=message)
        return result

    def _write_store(self, catalogs: list[VideoLoopData]) -> tuple[bool, Optional[str]]:
        try:
            data = encode_catalogs(catalogs)
            saved = self.store.save(self.config.storage_key, data)
        except (PersistenceError, OSError) as e:
            logger.warning("Failed to save loop data: %s", e)
            return False, f"Failed to save loop data: {e}"

        if not saved:
            logger.warning("Failed to save loop data: store rejected the write")
            return False, "Failed to save loop data"
        logger.debug("Saved %d catalog(s)", len(catalogs))
        return True, None

    def _read_store(self) -> dict[str, VideoLoopData]:
        try:
            data = self.store.load(self.config.storage_key)
        except (PersistenceError, OSError) as e:
            logger.warning("Failed to load loop data, starting empty: %s", e)
            return {}
        if not data:
            return {}

        try:
            records = decode_catalogs(data)
        except PersistenceError as e:
            logger.warning("Discarding unreadable loop data: %s", e)
            return {}

        catalogs: dict[str, VideoLoopData] = {}
        for record in records:
            existing = catalogs.get(record.video_identifier)
            if existing is None:
                catalogs[record.video_identifier] = record
            else:
                existing.ab_loops.extend(record.ab_loops)
                existing.segment_playlists.extend(record.segment_playlists)
        for video_id in [v for v, c in catalogs.items() if c.is_empty]:
            del catalogs[video_id]

        logger.info("Loaded loop data for %d video(s)", len(catalogs))
        return catalogs
