"""Game metadata aggregator: one summary artifact per game.

Reads the upstream leaderboard tree directly (latest/_meta.json and the
_meta.json entries of history.tar.xz), so it does not depend on the
leaderboard processor having run.
"""

from collections import defaultdict

from stats_converter import codec, routes
from stats_converter.constants import FILE_META, HISTORY_ARCHIVE, LATEST_DIR
from stats_converter.models import (
    BoardSummary, GameLeaderboardData, HistoricalSnapshot, LatestSummary,
)
from stats_converter.leaderboards import read_history_archive
from stats_converter.parallel import run_parallel, unit_boundary


def _subdirs(path):
    return sorted(p for p in path.iterdir() if p.is_dir())


def discover_stat_dirs(lb_in):
    """Yield (board, game, stat, path) for every directory exactly 3 levels deep."""
    if not lb_in.is_dir():
        return
    for board_dir in _subdirs(lb_in):
        for game_dir in _subdirs(board_dir):
            for stat_dir in _subdirs(game_dir):
                yield board_dir.name, game_dir.name, stat_dir.name, stat_dir


def group_by_game(triples):
    """game -> [(board, stat, path), ...]"""
    games = defaultdict(list)
    for board, game, stat, path in triples:
        games[game].append((board, stat, path))
    return dict(games)


def resolve_game_name(game_id, id_map=None):
    """Display name from IdMap.games when the directory is a known numeric id."""
    if id_map is not None and game_id.isdigit():
        return id_map.games.get(int(game_id), game_id)
    return game_id


def read_latest_summary(stat_dir, skip_log):
    """LatestSummary from latest/_meta.json, or None if missing/unreadable."""
    meta_path = stat_dir / LATEST_DIR / FILE_META
    if not meta_path.is_file():
        return None
    summary = None
    with unit_boundary(f"metadata {meta_path}", "unreadable _meta.json", skip_log):
        summary = LatestSummary.from_meta(codec.read_json(meta_path))
    return summary


def read_history_summaries(stat_dir, skip_log):
    """HistoricalSnapshot list from the archive's _meta.json entries only."""
    archive_path = stat_dir / HISTORY_ARCHIVE
    if not archive_path.is_file():
        return []

    snapshots = []
    with unit_boundary(f"history {archive_path}", "unreadable history archive", skip_log):
        tar_bytes = codec.decompress_raw(archive_path)
        grouped = read_history_archive(tar_bytes, source=str(archive_path), include_chunks=False)
        for snapshot_id in sorted(grouped):
            meta_bytes = grouped[snapshot_id]["meta"]
            if meta_bytes is None:
                continue
            meta = None
            with unit_boundary(f"metadata for snapshot {snapshot_id}", "unreadable snapshot _meta.json",
                               skip_log):
                meta = codec.parse_json_bytes(meta_bytes, source=f"{archive_path}:{snapshot_id}")
            if meta is not None:
                snapshots.append(HistoricalSnapshot.from_meta(snapshot_id, meta))
    return sorted(snapshots, key=HistoricalSnapshot.sort_key)


def build_game_data(game_id, entries, id_map=None, skip_log=None):
    """Assemble GameLeaderboardData for one game from its (board, stat, path) entries."""
    if skip_log is None:
        skip_log = []
    stats = defaultdict(dict)
    for board, stat, stat_dir in entries:
        stats[stat][board] = BoardSummary(
            latest=read_latest_summary(stat_dir, skip_log),
            history=read_history_summaries(stat_dir, skip_log),
        )
    return GameLeaderboardData(
        game_id=game_id,
        game_name=resolve_game_name(game_id, id_map),
        stats=dict(stats),
    )


def process_game_metadata(lb_in, edition_out, id_map=None, skip_log=None, workers=None):
    """Write games/{game_id}.bin for every game. Returns the number written."""
    if skip_log is None:
        skip_log = []

    games = group_by_game(discover_stat_dirs(lb_in))
    print(f"  Found {len(games)} games")

    def _write(game_id):
        data = build_game_data(game_id, games[game_id], id_map, skip_log)
        codec.write(edition_out / routes.game_bin(game_id), data)
        return game_id

    written = run_parallel(_write, sorted(games), "game", skip_log, workers)
    count = sum(1 for w in written if w is not None)
    print(f"  Wrote {count} game summaries")
    return count
