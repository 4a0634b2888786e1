"""Category A: Codec, Record View and Shard Key Tests

The leaf utilities every stage depends on: the msgpack+xz wire format, the
fixed-width record views, and the shard keys shared with the serving layer.
"""

import lzma

import pytest

from stats_converter import codec
from stats_converter.constants import MAX_JSON_SIZE
from stats_converter.errors import (
    DecompressionError, DeserializationError, IntegrityCheckError, MissingFileError,
    SerializationError, ValidationError,
)
from stats_converter.models import (
    BoardSummary, GameLeaderboardData, HistoricalSnapshot, IdMap, LatestSummary,
    LeaderboardPage, PlayerProfile, PlayerShard, StatRecord, legacy_int,
)
from stats_converter.records import LEADERBOARD_RECORD, PLAYER_STAT_RECORD
from stats_converter.routes import names_index_bin, player_shard_bin
from stats_converter.sharding import name_shard, uuid_shard


# ─── A1: read(write(v)) == v for every persisted type ────────────

class TestA1_RoundTrip:
    """Every persisted type must survive a write/read cycle unchanged."""

    def test_id_map(self, tmp_path):
        id_map = IdMap(boards={1: "daily"}, games={10: "Battle Royale"}, stats={100: "wins"})
        codec.write(tmp_path / "meta" / "map.bin", id_map)
        assert codec.read(tmp_path / "meta" / "map.bin", IdMap) == id_map

    def test_leaderboard_page(self, tmp_path):
        page = LeaderboardPage(ranks=[1, 2], uuids=["uuid-aaa", "uuid-bbb"],
                               names=["Alice", "Bob"], scores=[500, 2 ** 63 + 5])
        codec.write(tmp_path / "chunk_0000.bin.xz", page)
        assert codec.read(tmp_path / "chunk_0000.bin.xz", LeaderboardPage) == page

    def test_player_shard(self, tmp_path):
        shard = PlayerShard(profiles={
            "abc-1": PlayerProfile("abc-1", "Alice", [StatRecord(1, 10, 100, 500, 1, 1714521600)]),
            "abc-2": PlayerProfile("abc-2", None, []),
        })
        codec.write(tmp_path / "ABC.bin", shard)
        assert codec.read(tmp_path / "ABC.bin", PlayerShard) == shard

    def test_name_index_map(self, tmp_path):
        index = {"Alice": "uuid-aaa", "Alicia": "uuid-ccc"}
        codec.write(tmp_path / "ali.bin", index)
        assert codec.read(tmp_path / "ali.bin") == index

    def test_game_data(self, tmp_path):
        data = GameLeaderboardData(
            game_id="10", game_name="Battle Royale",
            stats={"wins": {"daily": BoardSummary(
                latest=LatestSummary(total_entries=2, total_pages=1, timestamp=5),
                history=[HistoricalSnapshot("s1", 4, 1, 4)],
            )}},
        )
        codec.write(tmp_path / "10.bin", data)
        assert codec.read(tmp_path / "10.bin", GameLeaderboardData) == data

    def test_output_is_xz(self, tmp_path):
        codec.write(tmp_path / "x.bin", {"a": 1})
        assert (tmp_path / "x.bin").read_bytes().startswith(b"\xfd7zXZ\x00")

    def test_no_temp_files_left(self, tmp_path):
        codec.write(tmp_path / "x.bin", [1, 2, 3])
        assert [p.name for p in tmp_path.iterdir()] == ["x.bin"]


# ─── A2: Error categories ────────────────────────────────────────

class TestA2_ErrorCategories:
    """Codec failures surface as the documented error types."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(MissingFileError):
            codec.read(tmp_path / "nope.bin")

    def test_missing_file_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            codec.decompress_raw(tmp_path / "nope.bin")

    def test_garbage_is_decompression_error(self, tmp_path):
        (tmp_path / "bad.bin").write_bytes(b"definitely not xz")
        with pytest.raises(DecompressionError):
            codec.read(tmp_path / "bad.bin")

    def test_truncated_xz_is_decompression_error(self, tmp_path):
        data = lzma.compress(b"x" * 1000, format=lzma.FORMAT_XZ)
        (tmp_path / "cut.bin").write_bytes(data[: len(data) // 2])
        with pytest.raises(DecompressionError):
            codec.decompress_raw(tmp_path / "cut.bin")

    def test_unserializable_value(self, tmp_path):
        with pytest.raises(SerializationError):
            codec.write(tmp_path / "x.bin", {"a": object()})

    def test_wrong_shape_is_deserialization_error(self, tmp_path):
        codec.write(tmp_path / "x.bin", {"ranks": [1]})
        with pytest.raises(DeserializationError):
            codec.read(tmp_path / "x.bin", LeaderboardPage)

    def test_uneven_columns_fail_integrity(self, tmp_path):
        codec.write(tmp_path / "x.bin", {"ranks": [1, 2], "uuids": ["a"], "names": ["A"], "scores": [1]})
        with pytest.raises(IntegrityCheckError):
            codec.read(tmp_path / "x.bin", LeaderboardPage)


# ─── A3: JSON size guard ─────────────────────────────────────────

class TestA3_JsonSizeGuard:
    """Empty or oversized JSON is rejected before parsing."""

    def test_empty_file(self, tmp_path):
        (tmp_path / "empty.json").write_bytes(b"")
        with pytest.raises(ValidationError):
            codec.read_json(tmp_path / "empty.json")

    def test_empty_buffer(self):
        with pytest.raises(ValidationError):
            codec.parse_json_bytes(b"")

    def test_limit_is_100_mib(self):
        assert MAX_JSON_SIZE == 100 * 1024 * 1024

    def test_oversized_buffer(self, monkeypatch):
        monkeypatch.setattr(codec, "MAX_JSON_SIZE", 8)
        with pytest.raises(ValidationError):
            codec.parse_json_bytes(b'{"a": 12345}')

    def test_oversized_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(codec, "MAX_JSON_SIZE", 8)
        (tmp_path / "big.json").write_text('{"a": 12345}')
        with pytest.raises(ValidationError):
            codec.read_json(tmp_path / "big.json")

    def test_invalid_json(self, tmp_path):
        (tmp_path / "bad.json").write_text("{not json")
        with pytest.raises(DeserializationError):
            codec.read_json(tmp_path / "bad.json")

    def test_write_json_compact(self, tmp_path):
        codec.write_json(tmp_path / "m.json", {"a": 1, "b": 2}, compact=True)
        assert (tmp_path / "m.json").read_text() == '{"a":1,"b":2}'


# ─── A4: Fixed-width record views ────────────────────────────────

class TestA4_RecordViews:
    """Big-endian strides, remainder bytes discarded with a warning."""

    def test_leaderboard_record_size(self):
        assert LEADERBOARD_RECORD.size == 16

    def test_player_stat_record_size(self):
        assert PLAYER_STAT_RECORD.size == 36

    def test_big_endian_decode(self):
        buf = bytes.fromhex("000000000000000a" "00000000000001f4")
        assert list(LEADERBOARD_RECORD.iter_records(buf)) == [(10, 500)]

    def test_remainder_discarded(self, capsys):
        skip_log = []
        buf = LEADERBOARD_RECORD.pack(10, 500) + b"\x00\x01\x02"
        assert list(LEADERBOARD_RECORD.iter_records(buf, skip_log=skip_log)) == [(10, 500)]
        assert skip_log == ["trailing bytes in leaderboard buffer"]
        assert "discarding 3 trailing bytes" in capsys.readouterr().out

    def test_negative_player_id_preserved(self):
        buf = LEADERBOARD_RECORD.pack(-1, 7)
        assert LEADERBOARD_RECORD.unpack_at(buf, 0) == (-1, 7)

    def test_player_stat_fields(self):
        buf = PLAYER_STAT_RECORD.pack(1, 10, 100, 3, 500, 7, 1714521600)
        record = PLAYER_STAT_RECORD.as_dict(PLAYER_STAT_RECORD.unpack_at(buf, 0))
        assert record == {"board_id": 1, "game_id": 10, "stat_id": 100, "save_id": 3,
                          "score": 500, "rank": 7, "timestamp": 1714521600}

    def test_unpack_out_of_range(self):
        with pytest.raises(IndexError):
            LEADERBOARD_RECORD.unpack_at(LEADERBOARD_RECORD.pack(1, 1), 1)


# ─── A5: Shard keys ──────────────────────────────────────────────

class TestA5_ShardKeys:
    """Producer and consumer must compute identical keys."""

    def test_uuid_shard(self):
        assert uuid_shard("abc123de") == "ABC"
        assert uuid_shard("XyZ789-000") == "XYZ"

    def test_name_shard(self):
        assert name_shard("Player123") == "pla"
        assert name_shard("TestUser") == "tes"

    @pytest.mark.parametrize("value", ["", "a", "ab"])
    def test_short_inputs_rejected(self, value):
        with pytest.raises(ValidationError):
            uuid_shard(value)
        with pytest.raises(ValidationError):
            name_shard(value)

    @pytest.mark.parametrize("name", ["\x00ab-name", "/zqname", "../etc", "ab\\cd", ".hidden"])
    def test_unsafe_name_keys_rejected(self, name):
        with pytest.raises(ValidationError):
            name_shard(name)

    @pytest.mark.parametrize("uuid", ["../x-uuid", "a/b-uuid", "\x00bc-uuid", ".ab-uuid"])
    def test_unsafe_uuid_keys_rejected(self, uuid):
        with pytest.raises(ValidationError):
            uuid_shard(uuid)

    @pytest.mark.parametrize("key", ["/zq", "../", "", "a\x00b"])
    def test_routes_refuse_unsafe_keys(self, key):
        with pytest.raises(ValidationError):
            names_index_bin(key)
        with pytest.raises(ValidationError):
            player_shard_bin(key)

    def test_routes_stay_in_their_directory(self):
        assert str(names_index_bin("pla")) == "names_index/pla.bin"
        assert str(player_shard_bin("ABC")) == "players/ABC.bin"


# ─── A6: Legacy scalar coercion ──────────────────────────────────

class TestA6_LegacyInt:
    """Old dumps mix types; anything not an integer becomes 0."""

    @pytest.mark.parametrize("value,expected", [
        (5, 5), (5.9, 5), ("42", 42), ("CSV", 0), (None, 0), (-3, 0), (True, 0), ("", 0),
        (2 ** 64 - 1, 2 ** 64 - 1), (2 ** 64, 0), (10 ** 30, 0), (1e30, 0), (float("inf"), 0),
        ("99999999999999999999999", 0), ("\u00b2", 0), ([1], 0),
    ])
    def test_coercion(self, value, expected):
        assert legacy_int(value) == expected
