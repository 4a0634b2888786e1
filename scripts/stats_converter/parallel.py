"""Fork-join helpers: a fixed thread pool with per-unit failure boundaries.

Work units (files, leaves, snapshots, games) write disjoint outputs, so each
runs independently. A unit that raises a DataError or OSError is reported
and skipped; it never takes the rest of the batch down with it.
"""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import contextmanager

from stats_converter.constants import MAX_WORKERS
from stats_converter.errors import DataError

UNIT_ERRORS = (DataError, OSError)


def run_parallel(fn, items, label, skip_log=None, workers=None):
    """Apply fn to every item on a thread pool.

    Returns results in input order; a failed unit's slot is None.
    """
    items = list(items)
    results = [None] * len(items)
    if not items:
        return results

    workers = max(1, min(workers or MAX_WORKERS, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(fn, item): i for i, item in enumerate(items)}
        for future in as_completed(futures):
            i = futures[future]
            try:
                results[i] = future.result()
            except UNIT_ERRORS as e:
                print(f"  Warning: skipped {label} {items[i]}: {e}")
                if skip_log is not None:
                    skip_log.append(f"{label} failed")
    return results


@contextmanager
def unit_boundary(label, reason, skip_log=None):
    """Turn a unit-level failure inside the block into a logged skip."""
    try:
        yield
    except UNIT_ERRORS as e:
        print(f"  Warning: skipped {label}: {e}")
        if skip_log is not None:
            skip_log.append(reason)


def summarize_skips(skip_log, indent="  "):
    """Print 'reason: count' lines, most frequent first."""
    if not skip_log:
        return
    counts = Counter(skip_log)
    print(f"{indent}Skipped {len(skip_log)} item(s):")
    for reason, count in sorted(counts.items(), key=lambda x: (-x[1], x[0])):
        print(f"{indent}  {reason}: {count}")
