"""Output layout, relative to one edition's output root.

The serving layer resolves the same relative paths, so they are built here
and nowhere else.
"""

from pathlib import Path

from stats_converter.constants import (
    CHUNK_FILENAME, FILE_META, FILE_SNAPSHOTS, HISTORY_DIR, LATEST_DIR,
    LEADERBOARDS_DIR, PLAYERS_DIR,
)
from stats_converter.sharding import check_shard_key

META_MAP_BIN = Path("meta") / "map.bin"
GAMES_DIR = Path("games")
NAMES_INDEX_DIR = Path("names_index")


def chunk_filename(index):
    return CHUNK_FILENAME.format(index)


def game_bin(game_id):
    return GAMES_DIR / f"{game_id}.bin"


def leaderboard_dir(board, game, stat):
    return Path(LEADERBOARDS_DIR) / board / game / stat


def latest_chunk_bin(board, game, stat, index):
    return leaderboard_dir(board, game, stat) / LATEST_DIR / chunk_filename(index)


def latest_meta_json(board, game, stat):
    return leaderboard_dir(board, game, stat) / LATEST_DIR / FILE_META


def history_chunk_bin(board, game, stat, snapshot_id, index):
    return leaderboard_dir(board, game, stat) / HISTORY_DIR / snapshot_id / chunk_filename(index)


def history_snapshots_json(board, game, stat):
    return leaderboard_dir(board, game, stat) / HISTORY_DIR / FILE_SNAPSHOTS


def player_shard_bin(shard):
    return Path(PLAYERS_DIR) / f"{check_shard_key(shard)}.bin"


def names_index_bin(prefix):
    return NAMES_INDEX_DIR / f"{check_shard_key(prefix)}.bin"
