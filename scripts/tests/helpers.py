"""Shared test factories for converter tests.

Builds small but realistic upstream dump trees under a tmp_path: id map,
dictionary shards, raw leaderboard chunks, history archives and player
stride files, with sensible defaults and easy overrides.
"""

import io
import json
import lzma
import struct
import sys
import tarfile
from pathlib import Path

# Add scripts/ to path so we can import stats_converter
SCRIPTS_DIR = Path(__file__).resolve().parent.parent
if str(SCRIPTS_DIR) not in sys.path:
    sys.path.insert(0, str(SCRIPTS_DIR))


# ─── Raw Encoders ────────────────────────────────────────────────

def leaderboard_bytes(records):
    """[(player_id, score), ...] -> raw 16-byte big-endian records."""
    return b"".join(struct.pack(">qQ", pid, score) for pid, score in records)


def write_xz(path, data):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(lzma.compress(data, format=lzma.FORMAT_XZ))
    return path


def write_json_file(path, data):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))
    return path


def tar_bytes(entries):
    """{member_name: bytes} -> uncompressed tar archive bytes, in the given order."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w") as archive:
        for name, data in entries.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mtime = 0
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


# ─── Upstream Tree Factories ─────────────────────────────────────

DEFAULT_ID_MAP = {
    "boards": {"1": "daily", "2": "monthly"},
    "games": {"10": "Battle Royale", "11": "Parkour"},
    "stats": {"100": "wins", "101": "kills"},
}

DEFAULT_DICTIONARY = {
    "10": ["uuid-aaa", "Alice"],
    "11": ["uuid-bbb", "Bob"],
}


def make_id_map(edition_dir, id_map=None):
    return write_json_file(Path(edition_dir) / "meta" / "map.json", id_map or DEFAULT_ID_MAP)


def make_dictionary(edition_dir, shards=None):
    """shards: {filename: {player_id: [uuid, name|None]}}"""
    shards = shards if shards is not None else {"0.json": DEFAULT_DICTIONARY}
    for filename, entries in shards.items():
        write_json_file(Path(edition_dir) / "dictionary" / "ids" / filename, entries)


def stat_dir(edition_dir, board="daily", game="10", stat="wins"):
    return Path(edition_dir) / "leaderboards" / board / game / stat


def make_latest(edition_dir, chunks, meta=None, board="daily", game="10", stat="wins"):
    """chunks: list of record lists, written as chunk_0000.xz, chunk_0001.xz, ..."""
    latest = stat_dir(edition_dir, board, game, stat) / "latest"
    latest.mkdir(parents=True, exist_ok=True)
    for i, records in enumerate(chunks):
        write_xz(latest / f"chunk_{i:04d}.xz", leaderboard_bytes(records))
    if meta is not None:
        write_json_file(latest / "_meta.json", meta)
    return latest


def make_history(edition_dir, snapshots, board="daily", game="10", stat="wins"):
    """snapshots: {snapshot_id: {"meta": dict | None, "chunks": [records, ...]}}"""
    entries = {}
    for snapshot_id, snap in snapshots.items():
        if snap.get("meta") is not None:
            entries[f"{snapshot_id}/_meta.json"] = json.dumps(snap["meta"]).encode()
        for i, records in enumerate(snap.get("chunks", [])):
            entries[f"{snapshot_id}/chunk_{i:04d}.bin"] = leaderboard_bytes(records)
    path = stat_dir(edition_dir, board, game, stat) / "history.tar.xz"
    return write_xz(path, tar_bytes(entries))


def make_player_file(edition_dir, name, players):
    """players: {player_id: flat stride list}"""
    path = Path(edition_dir) / "players" / name
    return write_xz(path, json.dumps(players).encode())


def make_edition(root, edition="java", dictionary=None, latest_chunks=None, history=None,
                 players=None):
    """A complete small edition tree. Returns the edition directory."""
    edition_dir = Path(root) / edition
    make_id_map(edition_dir)
    make_dictionary(edition_dir, {"0.json": dictionary or DEFAULT_DICTIONARY})
    make_latest(
        edition_dir,
        latest_chunks if latest_chunks is not None else [[(10, 500), (11, 300)]],
        meta={"save_time": "2024-05-01", "save_time_unix": 1714521600, "total_entries": 99,
              "total_pages": 9},
    )
    if history is not None:
        make_history(edition_dir, history)
    make_player_file(
        edition_dir, "0/0.json.xz",
        players if players is not None else {
            "10": [1, 10, 100, 0, 500, 1, 1714521600],
            "11": [1, 10, 100, 0, 300, 2, 1714521600],
        },
    )
    return edition_dir


# ─── Readers ─────────────────────────────────────────────────────

def read_pages(directory):
    """All LeaderboardPages in a directory, in page order."""
    from stats_converter import codec
    from stats_converter.models import LeaderboardPage
    return [codec.read(p, LeaderboardPage) for p in sorted(Path(directory).glob("chunk_*.bin.xz"))]


def read_json(path):
    with open(path, "r") as f:
        return json.load(f)


def snapshot_files(root):
    """{relative_path: bytes} for every file under root (symlinks followed)."""
    root = Path(root).resolve()
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*")) if p.is_file()
    }
