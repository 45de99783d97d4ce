import base64
import json

import pytest

from abloop import JsonFileStore, MemoryStore, PersistenceError, VideoLoopData
from abloop.serialization import catalog_to_dict, decode_catalogs, encode_catalogs


class TestSerialization:
    def test_layout(self, loop, playlist):
        catalog = VideoLoopData("movie.mp4", ab_loops=[loop], segment_playlists=[playlist])
        record = json.loads(encode_catalogs([catalog]))[0]

        assert set(record) == {"videoIdentifier", "abLoops", "segmentPlaylists"}
        assert record["videoIdentifier"] == "movie.mp4"
        assert record["abLoops"][0] == {
            "id": str(loop.id),
            "pointA": {"hours": 0, "minutes": 0, "seconds": 5, "frames": 0, "frameRate": 30.0},
            "pointB": {"hours": 0, "minutes": 0, "seconds": 10, "frames": 0, "frameRate": 30.0},
            "name": "chorus",
        }
        stored_playlist = record["segmentPlaylists"][0]
        assert stored_playlist["videoIdentifier"] == "movie.mp4"
        assert stored_playlist["isLooping"] is False
        assert [s["order"] for s in stored_playlist["segments"]] == [0, 1, 2]
        assert set(stored_playlist["segments"][0]) == {"id", "startPoint", "endPoint", "order", "name"}

    def test_decode_restores_entities(self, loop, playlist):
        catalog = VideoLoopData("movie.mp4", ab_loops=[loop], segment_playlists=[playlist])
        restored = decode_catalogs(encode_catalogs([catalog]))

        assert len(restored) == 1
        assert restored[0].ab_loops == [loop]
        assert restored[0].segment_playlists == [playlist]

    def test_matches_catalog_to_dict(self, loop):
        catalog = VideoLoopData("v", ab_loops=[loop])
        assert json.loads(encode_catalogs([catalog])) == [catalog_to_dict(catalog)]

    @pytest.mark.parametrize(
        "blob",
        [
            b"not json",
            b"\xff\xfe",
            b'{"videoIdentifier": "v"}',
            b'[{"abLoops": []}]',
            b'[{"videoIdentifier": "v", "abLoops": [{"id": "nope"}]}]',
        ],
    )
    def test_decode_rejects_malformed(self, blob):
        with pytest.raises(PersistenceError):
            decode_catalogs(blob)

    def test_decode_rejects_deep_nesting(self):
        with pytest.raises(PersistenceError):
            decode_catalogs(b"[" * 200000 + b"]" * 200000)

    def test_decode_accepts_text(self, loop):
        text = encode_catalogs([VideoLoopData("v", ab_loops=[loop])]).decode("utf-8")
        assert decode_catalogs(text)[0].ab_loops == [loop]

    def test_decode_rejects_non_text(self):
        with pytest.raises(PersistenceError):
            decode_catalogs(42)

    def test_decode_rejects_invalid_range(self, loop):
        record = catalog_to_dict(VideoLoopData("v", ab_loops=[loop]))
        record["abLoops"][0]["pointB"] = record["abLoops"][0]["pointA"]
        with pytest.raises(PersistenceError):
            decode_catalogs(json.dumps([record]).encode())

    def test_decode_rejects_out_of_range_component(self, loop):
        record = catalog_to_dict(VideoLoopData("v", ab_loops=[loop]))
        record["abLoops"][0]["pointA"]["minutes"] = 75
        with pytest.raises(PersistenceError):
            decode_catalogs(json.dumps([record]).encode())

    def test_decode_rejects_non_integer_component(self, loop):
        record = catalog_to_dict(VideoLoopData("v", ab_loops=[loop]))
        record["abLoops"][0]["pointA"]["frames"] = 1.5
        with pytest.raises(PersistenceError):
            decode_catalogs(json.dumps([record]).encode())


class TestMemoryStore:
    def test_load_save_delete(self):
        store = MemoryStore()
        assert store.load("k") is None
        assert store.save("k", b"data")
        assert store.load("k") == b"data"
        assert store.keys() == ["k"]
        assert store.delete("k")
        assert store.load("k") is None


class TestJsonFileStore:
    def test_missing_file_loads_nothing(self, tmp_path):
        assert JsonFileStore(tmp_path / "store.json").load("k") is None

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "store.json"
        store = JsonFileStore(path)
        assert store.save("k", b"\x00binary\xff")
        assert JsonFileStore(path).load("k") == b"\x00binary\xff"

        on_disk = json.loads(path.read_text())
        assert on_disk == {"k": base64.b64encode(b"\x00binary\xff").decode()}

    def test_keys_are_independent(self, tmp_path):
        store = JsonFileStore(tmp_path / "store.json")
        store.save("a", b"1")
        store.save("b", b"2")
        store.delete("a")
        assert store.load("a") is None
        assert store.load("b") == b"2"

    def test_no_temp_files_left(self, tmp_path):
        store = JsonFileStore(tmp_path / "store.json")
        store.save("k", b"v")
        assert [p.name for p in tmp_path.iterdir()] == ["store.json"]

    def test_corrupt_file_raises_on_load(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{broken")
        with pytest.raises(PersistenceError):
            JsonFileStore(path).load("k")

    def test_non_utf8_file_raises_on_load(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(PersistenceError):
            JsonFileStore(path).load("k")

    def test_save_overwrites_non_utf8_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_bytes(b"\xff\xfe\x00garbage")
        store = JsonFileStore(path)
        assert store.save("k", b"v")
        assert store.load("k") == b"v"

    def test_delete_resets_non_utf8_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_bytes(b"\xff\xfe\x00garbage")
        assert JsonFileStore(path).delete("k")

    def test_deeply_nested_file_raises_on_load(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_bytes(b"[" * 200000 + b"]" * 200000)
        with pytest.raises(PersistenceError):
            JsonFileStore(path).load("k")

    def test_empty_file_loads_nothing(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("   ")
        assert JsonFileStore(path).load("k") is None

    def test_save_overwrites_corrupt_file(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("[1, 2")
        store = JsonFileStore(path)
        assert store.save("k", b"v")
        assert store.load("k") == b"v"

    def test_save_reports_write_failure(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        store = JsonFileStore(blocker / "store.json")
        assert store.save("k", b"v") is False
