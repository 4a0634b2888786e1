"""Pipeline constants: paths, layout names, format constants, thresholds."""

import os
from pathlib import Path

# ─── Paths ──────────────────────────────────────────────────────

DEFAULT_INPUT_DIR = Path(os.environ.get("CONVERTER_INPUT_DIR", "data"))
DEFAULT_OUTPUT_DIR = Path(os.environ.get("CONVERTER_OUTPUT_DIR", "target/converted_data"))

# Platform editions, each with its own subtree under input and output
EDITIONS = [
    e.strip().lower()
    for e in os.environ.get("CONVERTER_EDITIONS", "java,bedrock").split(",")
    if e.strip()
]

# ─── Upstream Layout ────────────────────────────────────────────

META_MAP_JSON = Path("meta") / "map.json"
DICTIONARY_DIR = Path("dictionary") / "ids"
LEADERBOARDS_DIR = "leaderboards"
PLAYERS_DIR = "players"
LATEST_DIR = "latest"
HISTORY_DIR = "history"

FILE_META = "_meta.json"
FILE_SNAPSHOTS = "_snapshots.json"
HISTORY_ARCHIVE = "history.tar.xz"

PLAYER_SHARD_SUFFIX = ".json.xz"
LATEST_CHUNK_SUFFIX = ".xz"

# ─── Format Constants ───────────────────────────────────────────

# Rows per leaderboard page, fixed for the lifetime of the format
ENTRIES_PER_PAGE = 1000

# Output page names: chunk_0000.bin.xz, chunk_0001.bin.xz, ...
CHUNK_FILENAME = "chunk_{:04d}.bin.xz"

# Raw snapshot chunks inside history archives: chunk_0000.bin, ...
RAW_CHUNK_PREFIX = "chunk_"
RAW_CHUNK_SUFFIX = ".bin"

MIN_PREFIX_LENGTH = 3
MIN_NAME_LENGTH = 3

# Values per player stat in the JSON stride arrays:
# (board_id, game_id, stat_id, padding, score, rank, save_time)
PLAYER_STRIDE = 7

# xz preset for every .bin artifact (0-9)
XZ_PRESET = int(os.environ.get("CONVERTER_XZ_PRESET", "6"))

# ─── Thresholds & Configuration ─────────────────────────────────

# Any JSON input outside (0, MAX_JSON_SIZE] bytes is rejected before parsing
MAX_JSON_SIZE = 100 * 1024 * 1024

MAX_WORKERS = int(os.environ.get("CONVERTER_WORKERS", "0")) or (os.cpu_count() or 4)

# Generation directories kept next to the published output after a swap
KEEP_GENERATIONS = 1
