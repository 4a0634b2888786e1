"""Leaderboard processor: resolve raw records and re-page them with ranks.

Upstream layout per leaf::

    leaderboards/{board}/{game}/{stat}/latest/*.xz        raw 16-byte records
    leaderboards/{board}/{game}/{stat}/latest/_meta.json
    leaderboards/{board}/{game}/{stat}/history.tar.xz     {snapshot}/_meta.json
                                                          {snapshot}/chunk_NNNN.bin

Leaves and snapshots run in parallel. The scan inside one leaf or snapshot
never does: ranks are handed out in sorted chunk-filename order, one per
resolved record, so only records that resolve to a known player get a rank.
"""

import io
import tarfile
from collections import defaultdict

from stats_converter import codec
from stats_converter.constants import (
    FILE_META, FILE_SNAPSHOTS, HISTORY_ARCHIVE, HISTORY_DIR, LATEST_CHUNK_SUFFIX,
    LATEST_DIR, RAW_CHUNK_PREFIX, RAW_CHUNK_SUFFIX,
)
from stats_converter.errors import DataError, InvalidFormatError
from stats_converter.models import HistoricalSnapshot, LeaderboardMeta, LeaderboardPage
from stats_converter.parallel import run_parallel, unit_boundary
from stats_converter.records import LEADERBOARD_RECORD
from stats_converter.routes import chunk_filename


# ─── Pagination ─────────────────────────────────────────────────

def _flush_page(page, out_dir, index):
    codec.write(out_dir / chunk_filename(index), page)
    return index + 1


def _discard_pages(out_dir):
    """Remove pages from a failed run so no partial sequence is left behind."""
    if not out_dir.is_dir():
        return
    for path in out_dir.glob("chunk_*.bin.xz"):
        path.unlink()


def paginate(chunks, out_dir, lookup, skip_log, source=""):
    """Resolve records from chunks (in the given order) and write ranked pages.

    Returns the authoritative LeaderboardMeta for what was written.
    """
    page = LeaderboardPage()
    pages = 0
    rank = 1
    for chunk in chunks:
        for player_id, score in LEADERBOARD_RECORD.iter_records(chunk, source, skip_log):
            if player_id <= 0:
                skip_log.append("non-positive player id")
                continue
            identity = lookup.get(str(player_id))
            if identity is None:
                skip_log.append("unresolved player id")
                continue
            uuid, name = identity
            page.append(rank, uuid, name, score)
            rank += 1
            if page.is_full():
                pages = _flush_page(page, out_dir, pages)
                page = LeaderboardPage()

    if len(page):
        pages = _flush_page(page, out_dir, pages)

    return LeaderboardMeta(total_entries=rank - 1, total_pages=pages)


def write_meta(meta_path, counts, upstream=None):
    """Write _meta.json: upstream fields kept, counts replaced by our own."""
    codec.write_json(meta_path, counts.apply_to(upstream), compact=True)


def paginate_into(out_dir, chunks, lookup, skip_log, upstream=None, source=""):
    """paginate() plus _meta.json; on failure the directory's pages are removed."""
    try:
        counts = paginate(chunks, out_dir, lookup, skip_log, source=source)
        write_meta(out_dir / FILE_META, counts, upstream)
    except DataError:
        _discard_pages(out_dir)
        raise
    return counts


# ─── Latest ─────────────────────────────────────────────────────

def list_latest_chunks(latest_in):
    """Compressed chunk files of a latest view, sorted by filename."""
    chunks = [p for p in latest_in.iterdir() if p.is_file() and p.name.endswith(LATEST_CHUNK_SUFFIX)]
    return sorted(chunks, key=lambda p: p.name)


def _iter_decompressed(paths, skip_log):
    for path in paths:
        try:
            data = codec.decompress_raw(path)
        except DataError as e:
            print(f"  Warning: skipped chunk {path}: {e}")
            skip_log.append("corrupt latest chunk")
            continue
        yield data


def _read_upstream_meta(path, skip_log):
    if not path.is_file():
        return None
    meta = None
    with unit_boundary(f"metadata {path}", "unreadable _meta.json", skip_log):
        meta = codec.read_json(path)
    return meta if isinstance(meta, dict) else None


def process_latest(latest_in, latest_out, lookup, skip_log):
    """Re-page one latest view. Returns its LeaderboardMeta."""
    chunk_paths = list_latest_chunks(latest_in)
    upstream = _read_upstream_meta(latest_in / FILE_META, skip_log)

    return paginate_into(
        latest_out, _iter_decompressed(chunk_paths, skip_log), lookup, skip_log,
        upstream=upstream, source=str(latest_in),
    )


# ─── History ────────────────────────────────────────────────────

def _split_member_name(name):
    """'s1/chunk_0000.bin' -> ('s1', 'chunk_0000.bin'); None if not two parts."""
    parts = [p for p in name.split("/") if p and p != "."]
    if len(parts) != 2:
        return None
    snapshot_id, filename = parts
    if snapshot_id == "..":
        return None
    return snapshot_id, filename


def is_raw_chunk_name(filename):
    return filename.startswith(RAW_CHUNK_PREFIX) and filename.endswith(RAW_CHUNK_SUFFIX)


def read_history_archive(tar_bytes, source="", include_chunks=True, skip_log=None):
    """Group an uncompressed history tar by snapshot.

    Returns {snapshot_id: {"meta": bytes | None, "chunks": {filename: bytes}}}.
    Unrecognised entries are ignored. A truncated or corrupt tar raises
    InvalidFormatError, since a partially read snapshot cannot be told apart
    from a complete one.
    """
    snapshots = defaultdict(lambda: {"meta": None, "chunks": {}})
    try:
        with tarfile.open(fileobj=io.BytesIO(tar_bytes), mode="r:") as archive:
            for member in archive:
                if not member.isfile():
                    continue
                split = _split_member_name(member.name)
                if split is None:
                    continue
                snapshot_id, filename = split
                if filename == FILE_META:
                    snapshots[snapshot_id]["meta"] = archive.extractfile(member).read()
                elif is_raw_chunk_name(filename):
                    if include_chunks:
                        snapshots[snapshot_id]["chunks"][filename] = archive.extractfile(member).read()
                elif skip_log is not None:
                    skip_log.append("unrecognised history entry")
    except (tarfile.TarError, EOFError) as e:
        raise InvalidFormatError(f"{source}: unreadable tar archive: {e}") from e
    return dict(snapshots)


def _parse_snapshot_meta(snapshot_id, meta_bytes, skip_log):
    if meta_bytes is None:
        return None
    meta = None
    with unit_boundary(f"metadata for snapshot {snapshot_id}", "unreadable snapshot _meta.json", skip_log):
        meta = codec.parse_json_bytes(meta_bytes, source=f"{snapshot_id}/{FILE_META}")
    return meta if isinstance(meta, dict) else None


def process_snapshot(snapshot_id, data, history_out, lookup, skip_log):
    """Re-page one snapshot. Returns its HistoricalSnapshot entry."""
    snapshot_out = history_out / snapshot_id
    upstream = _parse_snapshot_meta(snapshot_id, data["meta"], skip_log)
    chunks = [data["chunks"][name] for name in sorted(data["chunks"])]

    counts = paginate_into(
        snapshot_out, chunks, lookup, skip_log,
        upstream=upstream, source=f"snapshot {snapshot_id}",
    )

    timestamp = HistoricalSnapshot.from_meta(snapshot_id, upstream).timestamp
    return HistoricalSnapshot(
        snapshot_id=snapshot_id,
        timestamp=timestamp,
        total_pages=counts.total_pages,
        total_entries=counts.total_entries,
    )


def process_history(stat_in, stat_out, lookup, skip_log, workers=None):
    """Re-page every snapshot in history.tar.xz and write _snapshots.json.

    Returns the processed snapshots ordered by (timestamp, snapshot_id).
    """
    archive_path = stat_in / HISTORY_ARCHIVE
    if not archive_path.is_file():
        return []

    tar_bytes = codec.decompress_raw(archive_path)
    snapshot_data = read_history_archive(tar_bytes, source=str(archive_path), skip_log=skip_log)

    history_out = stat_out / HISTORY_DIR
    snapshot_ids = sorted(snapshot_data)
    results = run_parallel(
        lambda sid: process_snapshot(sid, snapshot_data[sid], history_out, lookup, skip_log),
        snapshot_ids, "snapshot", skip_log, workers,
    )

    snapshots = sorted((s for s in results if s is not None), key=HistoricalSnapshot.sort_key)
    if snapshots:
        codec.write_json(
            history_out / FILE_SNAPSHOTS,
            {"snapshots": [s.to_wire() for s in snapshots]},
        )
    return snapshots


# ─── Leaves ─────────────────────────────────────────────────────

def find_latest_dirs(lb_in):
    """Every directory named 'latest' under the leaderboard tree."""
    if not lb_in.is_dir():
        return []
    return sorted(p for p in lb_in.rglob(LATEST_DIR) if p.is_dir())


def leaf_key(latest_in, lb_in):
    """.../{board}/{game}/{stat}/latest -> (board, game, stat)."""
    parts = latest_in.parent.relative_to(lb_in).parts
    if len(parts) != 3:
        raise InvalidFormatError(f"{latest_in}: expected {{board}}/{{game}}/{{stat}}/latest")
    return parts


def process_single_leaderboard(latest_in, lb_in, lb_out, lookup, skip_log, workers=None):
    """Latest view then history for one leaf. Returns (latest counts, snapshot count)."""
    board, game, stat = leaf_key(latest_in, lb_in)
    stat_in = latest_in.parent
    stat_out = lb_out / board / game / stat

    counts = process_latest(latest_in, stat_out / LATEST_DIR, lookup, skip_log)

    snapshots = []
    with unit_boundary(f"history of {board}/{game}/{stat}", "unreadable history archive", skip_log):
        snapshots = process_history(stat_in, stat_out, lookup, skip_log, workers)

    return counts, len(snapshots)


def process_leaderboards(lb_in, lb_out, lookup, skip_log=None, workers=None):
    """Process every leaf under lb_in. Returns the number of leaves written."""
    if skip_log is None:
        skip_log = []

    latest_dirs = find_latest_dirs(lb_in)
    print(f"  Found {len(latest_dirs)} leaderboard 'latest' directories")

    # snapshots only get their own pool when there is no leaf-level parallelism
    snapshot_workers = workers if len(latest_dirs) == 1 else 1
    results = run_parallel(
        lambda d: process_single_leaderboard(d, lb_in, lb_out, lookup, skip_log, snapshot_workers),
        latest_dirs, "leaderboard", skip_log, workers,
    )

    done = [r for r in results if r is not None]
    entries = sum(counts.total_entries for counts, _ in done)
    pages = sum(counts.total_pages for counts, _ in done)
    snapshots = sum(n for _, n in done)
    print(f"  Wrote {len(done)} leaderboards: {entries} ranked entries in {pages} pages, "
          f"{snapshots} history snapshots")
    return len(done)
