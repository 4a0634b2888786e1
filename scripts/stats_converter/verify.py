"""Consistency checks over a converted tree.

These only check that the artifacts agree with each other (page sequence,
column lengths, dense ranks, _meta.json counts); they never compare against
upstream totals.
"""

from pathlib import Path

from stats_converter import codec
from stats_converter.constants import (
    ENTRIES_PER_PAGE, FILE_META, HISTORY_DIR, LATEST_DIR, LEADERBOARDS_DIR,
)
from stats_converter.errors import IntegrityCheckError
from stats_converter.models import LeaderboardPage
from stats_converter.routes import chunk_filename


def verify_leaderboard_dir(directory):
    """Check one latest view or snapshot directory. Returns its entry count."""
    directory = Path(directory)
    pages = sorted(p.name for p in directory.glob("chunk_*.bin.xz"))
    expected = [chunk_filename(i) for i in range(len(pages))]
    if pages != expected:
        raise IntegrityCheckError(f"{directory}: page files are not contiguous from 0: {pages}")

    next_rank = 1
    for i, name in enumerate(pages):
        page = codec.read(directory / name, LeaderboardPage)
        if len(page) == 0:
            raise IntegrityCheckError(f"{directory / name}: empty page")
        if i < len(pages) - 1 and len(page) != ENTRIES_PER_PAGE:
            raise IntegrityCheckError(
                f"{directory / name}: only the last page may hold fewer than {ENTRIES_PER_PAGE} rows"
            )
        if page.ranks != list(range(next_rank, next_rank + len(page))):
            raise IntegrityCheckError(f"{directory / name}: ranks are not dense from {next_rank}")
        next_rank += len(page)

    total = next_rank - 1
    meta = codec.read_json(directory / FILE_META)
    if meta.get("total_entries") != total or meta.get("total_pages") != len(pages):
        raise IntegrityCheckError(
            f"{directory}: _meta.json reports {meta.get('total_entries')} entries / "
            f"{meta.get('total_pages')} pages, found {total} / {len(pages)}"
        )
    return total


def iter_leaderboard_dirs(root):
    """Every latest view and history snapshot directory under root/*/leaderboards."""
    root = Path(root)
    for lb_dir in sorted(root.glob(f"*/{LEADERBOARDS_DIR}")):
        for latest in sorted(p for p in lb_dir.rglob(LATEST_DIR) if p.is_dir()):
            yield latest
            history = latest.parent / HISTORY_DIR
            if history.is_dir():
                yield from sorted(p for p in history.iterdir() if p.is_dir())


def verify_output(root):
    """Verify every leaderboard directory in a converted tree. Returns dirs checked."""
    checked = 0
    for directory in iter_leaderboard_dirs(root):
        verify_leaderboard_dir(directory)
        checked += 1
    print(f"  Verified {checked} leaderboard directories")
    return checked
