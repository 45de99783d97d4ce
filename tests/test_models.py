import itertools
import uuid

import pytest

from abloop import (
    ABLoop,
    InvalidFrameRateError,
    InvalidRangeError,
    InvalidTimecodeError,
    PlaybackSegment,
    SegmentPlaylist,
    TimePoint,
    VideoLoopData,
    format_timestamp,
)

from conftest import tp


class TestTimePoint:
    def test_to_continuous(self):
        point = TimePoint(hours=1, minutes=2, seconds=3, frames=15, frame_rate=30)
        assert point.to_continuous() == pytest.approx(3723.5)

    def test_to_string_pads_fields(self):
        assert TimePoint(0, 1, 2, 3).to_string() == "00:01:02:03"
        assert str(TimePoint(0, 1, 2, 3)) == "00:01:02:03"

    def test_to_string_keeps_wide_hours(self):
        assert TimePoint(hours=123, minutes=4).to_string() == "123:04:00:00"

    def test_from_continuous_truncates_to_frame(self):
        # 10.99s at 30fps is frame 29.7 -> frame 29
        point = TimePoint.from_continuous(10.99, 30)
        assert (point.hours, point.minutes, point.seconds, point.frames) == (0, 0, 10, 29)

    def test_from_continuous_splits_hours_and_minutes(self):
        point = TimePoint.from_continuous(3723.5, 24)
        assert point == TimePoint(1, 2, 3, 12, 24)

    def test_from_continuous_rejects_negative(self):
        with pytest.raises(InvalidTimecodeError):
            TimePoint.from_continuous(-1.0)

    @pytest.mark.parametrize("frame_rate", [23.976, 24, 25, 29.97, 30, 50, 59.94, 60, 120])
    def test_continuous_round_trip_keeps_frame(self, frame_rate):
        for frames in range(int(frame_rate)):
            point = TimePoint(hours=2, minutes=59, seconds=59, frames=frames, frame_rate=frame_rate)
            assert TimePoint.from_continuous(point.to_continuous(), frame_rate) == point

    @pytest.mark.parametrize("frame_rate", [23.976, 29.97, 59.94, 60, 120])
    @pytest.mark.parametrize("hours", [9999, 77020, 99999])
    def test_continuous_round_trip_at_large_hours(self, hours, frame_rate):
        for frames in range(int(frame_rate)):
            point = TimePoint(hours=hours, minutes=18, seconds=28, frames=frames, frame_rate=frame_rate)
            assert TimePoint.from_continuous(point.to_continuous(), frame_rate) == point

    def test_string_round_trip(self):
        for h, m, s, f in itertools.product([0, 7, 100], [0, 30, 59], [0, 59], [0, 12, 29]):
            point = TimePoint(h, m, s, f, 30)
            assert TimePoint.parse(point.to_string(), 30) == point

    def test_parse_valid(self):
        assert TimePoint.parse("01:02:03:04", 25) == TimePoint(1, 2, 3, 4, 25)
        assert TimePoint.parse("  00:00:05:00 ") == TimePoint(seconds=5)

    @pytest.mark.parametrize(
        "text",
        [
            "1:2:3",
            "00:61:00:00",
            "00:00:60:00",
            "00:00:00:30",
            "00:00:00",
            "00:00:00:00:00",
            "aa:00:00:00",
            "-1:00:00:00",
            "00:+1:00:00",
            "00::00:00",
            "",
        ],
    )
    def test_parse_rejects(self, text):
        assert TimePoint.parse(text, 30) is None

    def test_parse_rejects_bad_frame_rate(self):
        assert TimePoint.parse("00:00:01:00", 0) is None

    def test_non_integer_rate_allows_last_partial_frame(self):
        assert TimePoint(frames=29, frame_rate=29.97).frames == 29
        with pytest.raises(InvalidTimecodeError):
            TimePoint(frames=30, frame_rate=29.97)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"hours": -1},
            {"minutes": 60},
            {"seconds": -1},
            {"frames": 30},
        ],
    )
    def test_constructor_rejects_out_of_range(self, kwargs):
        with pytest.raises(InvalidTimecodeError):
            TimePoint(**kwargs)

    @pytest.mark.parametrize("rate", [0, -24, 121])
    def test_constructor_rejects_frame_rate(self, rate):
        with pytest.raises(InvalidFrameRateError):
            TimePoint(frame_rate=rate)

    def test_equality_includes_frame_rate(self):
        a = TimePoint(seconds=1, frame_rate=25)
        b = TimePoint(seconds=1, frame_rate=30)
        assert a.to_continuous() == b.to_continuous()
        assert a != b

    def test_is_immutable(self):
        point = TimePoint()
        with pytest.raises(AttributeError):
            point.seconds = 4

    def test_zero(self):
        assert TimePoint.zero(24).to_continuous() == 0
        assert TimePoint.zero(24).frame_rate == 24


class TestABLoop:
    def test_requires_b_after_a(self):
        with pytest.raises(InvalidRangeError):
            ABLoop(point_a=tp(10), point_b=tp(10))
        with pytest.raises(InvalidRangeError):
            ABLoop(point_a=tp(10), point_b=tp(5))

    def test_ids_are_unique(self):
        a = ABLoop(point_a=tp(0), point_b=tp(1))
        b = ABLoop(point_a=tp(0), point_b=tp(1))
        assert isinstance(a.id, uuid.UUID)
        assert a.id != b.id

    def test_duration_and_contains(self, loop):
        assert loop.duration() == pytest.approx(5.0)
        assert loop.contains(5.0)
        assert loop.contains(10.0)
        assert not loop.contains(10.01)

    def test_display_name_defaults(self):
        assert ABLoop(point_a=tp(0), point_b=tp(1)).display_name == "A-B Loop"


class TestPlaybackSegment:
    def test_rejects_empty_range(self):
        with pytest.raises(InvalidRangeError):
            PlaybackSegment(start_point=tp(3), end_point=tp(3), order=0)

    def test_rejects_negative_order(self):
        with pytest.raises(ValueError):
            PlaybackSegment(start_point=tp(0), end_point=tp(3), order=-1)


class TestSegmentPlaylist:
    def test_sorts_segments_by_order(self, segments):
        shuffled = (segments[2], segments[0], segments[1])
        playlist = SegmentPlaylist(name="p", segments=shuffled, video_identifier="v")
        assert [s.order for s in playlist.segments] == [0, 1, 2]
        assert playlist.first_segment is segments[0]

    def test_does_not_renumber_orders(self):
        gapped = (
            PlaybackSegment(start_point=tp(0), end_point=tp(1), order=5),
            PlaybackSegment(start_point=tp(2), end_point=tp(3), order=2),
        )
        playlist = SegmentPlaylist(name="p", segments=gapped, video_identifier="v")
        assert [s.order for s in playlist.segments] == [2, 5]
        assert [s.order for s in playlist.normalized().segments] == [0, 1]
        assert playlist.normalized().segments[0].id == playlist.segments[0].id

    def test_next_segment(self, playlist, segments):
        assert playlist.next_segment(segments[0]) == segments[1]
        assert playlist.next_segment(segments[1]) == segments[2]
        assert playlist.next_segment(segments[2]) is None

    def test_next_segment_wraps_when_looping(self, playlist, segments):
        looping = playlist.with_looping(True)
        assert looping.next_segment(segments[2]) == segments[0]
        assert looping.id == playlist.id

    def test_next_segment_of_foreign_segment(self, playlist):
        stranger = PlaybackSegment(start_point=tp(0), end_point=tp(1), order=0)
        assert playlist.next_segment(stranger) is None

    def test_total_duration(self, playlist):
        assert playlist.total_duration() == pytest.approx(15.0)

    def test_empty_playlist(self):
        playlist = SegmentPlaylist(name="empty", segments=(), video_identifier="v")
        assert playlist.first_segment is None
        assert playlist.total_duration() == 0


class TestVideoLoopData:
    def test_find_and_empty(self, loop, playlist):
        data = VideoLoopData(video_identifier="v")
        assert data.is_empty
        data.ab_loops.append(loop)
        data.segment_playlists.append(playlist)
        assert not data.is_empty
        assert data.find_loop(loop.id) is loop
        assert data.find_playlist(playlist.id) is playlist
        assert data.find_loop(uuid.uuid4()) is None


def test_format_timestamp():
    assert format_timestamp(3723.5) == "01:02:03.500"
