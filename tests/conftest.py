import pytest

from abloop import ABLoop, LoopEngine, MemoryStore, PlaybackSegment, SegmentPlaylist, TimePoint


class FailingStore(MemoryStore):
    """Store whose writes always fail; reads behave normally."""

    def save(self, key, data):
        return False

    def delete(self, key):
        return False


class RaisingStore(MemoryStore):
    def save(self, key, data):
        raise OSError("disk full")


class RecordingObserver:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def kinds(self):
        return [e.kind for e in self.events]


def tp(seconds: float, frame_rate: float = 30.0) -> TimePoint:
    return TimePoint.from_continuous(seconds, frame_rate)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def engine(store):
    return LoopEngine(store)


@pytest.fixture
def observer(engine):
    recorder = RecordingObserver()
    engine.add_observer(recorder)
    return recorder


@pytest.fixture
def loop():
    return ABLoop(point_a=TimePoint(seconds=5), point_b=TimePoint(seconds=10), name="chorus")


@pytest.fixture
def segments():
    return (
        PlaybackSegment(start_point=tp(0), end_point=tp(5), order=0, name="intro"),
        PlaybackSegment(start_point=tp(10), end_point=tp(15), order=1, name="verse"),
        PlaybackSegment(start_point=tp(20), end_point=tp(25), order=2, name="outro"),
    )


@pytest.fixture
def playlist(segments):
    return SegmentPlaylist(name="drills", segments=segments, video_identifier="movie.mp4")
