"""Player profile sharder.

Input files are xz-compressed JSON objects mapping a player id to a flat
array read in strides of 7 values::

    {"15432": [board, game, stat, pad, score, rank, save_time, board, ...]}

Each file is parsed on the worker pool into a task-local accumulator keyed
by uuid prefix. The partial accumulators are merged in sorted file order,
so a uuid present in two files keeps the profile from the later file; stat
lists are never merged.
"""

from collections import defaultdict

from stats_converter import codec, routes
from stats_converter.constants import PLAYER_SHARD_SUFFIX, PLAYER_STRIDE
from stats_converter.errors import InvalidFormatError, ValidationError
from stats_converter.models import PlayerProfile, PlayerShard, StatRecord
from stats_converter.parallel import run_parallel
from stats_converter.sharding import uuid_shard


def find_player_files(players_in):
    if not players_in.is_dir():
        return []
    return sorted(p for p in players_in.rglob(f"*{PLAYER_SHARD_SUFFIX}") if p.is_file())


def parse_strides(values, skip_log=None):
    """Flat stride array -> [StatRecord]. A trailing partial stride is dropped."""
    whole, remainder = divmod(len(values), PLAYER_STRIDE)
    if remainder and skip_log is not None:
        skip_log.append("partial player stride")
    return [
        StatRecord.from_stride(values[i * PLAYER_STRIDE:(i + 1) * PLAYER_STRIDE])
        for i in range(whole)
    ]


def load_player_file(path, lookup, skip_log):
    """Parse one shard file into {uuid_prefix: {uuid: PlayerProfile}}."""
    raw = codec.parse_json_bytes(codec.decompress_raw(path), source=path)
    if not isinstance(raw, dict):
        raise InvalidFormatError(f"{path}: player shard must be a JSON object")

    local = defaultdict(dict)
    for player_id, strides in raw.items():
        identity = lookup.get(player_id)
        if identity is None:
            skip_log.append("unresolved player id")
            continue
        if not isinstance(strides, list):
            skip_log.append("malformed player stats")
            continue

        uuid, name = identity
        try:
            prefix = uuid_shard(uuid)
        except ValidationError:
            skip_log.append("uuid unusable as shard key")
            continue

        local[prefix][uuid] = PlayerProfile(
            uuid=uuid,
            # the lookup falls back to the uuid when a player has no name
            name=name if name != uuid else None,
            stats=parse_strides(strides, skip_log),
        )
    return local


def merge_shards(partials):
    """Fold task-local accumulators in order; later profiles replace earlier ones."""
    shards = defaultdict(dict)
    replaced = 0
    for partial in partials:
        if partial is None:
            continue
        for prefix, profiles in partial.items():
            bucket = shards[prefix]
            replaced += sum(1 for uuid in profiles if uuid in bucket)
            bucket.update(profiles)
    return dict(shards), replaced


def process_players(players_in, edition_out, lookup, skip_log=None, workers=None):
    """Write players/{UUID3}.bin for every populated prefix. Returns shards written."""
    if skip_log is None:
        skip_log = []

    files = find_player_files(players_in)
    print(f"  Found {len(files)} player shard files")

    partials = run_parallel(
        lambda path: load_player_file(path, lookup, skip_log),
        files, "player file", skip_log, workers,
    )
    shards, replaced = merge_shards(partials)
    if replaced:
        print(f"  {replaced} player(s) appeared in more than one file (later file wins)")

    def _write(prefix):
        codec.write(edition_out / routes.player_shard_bin(prefix), PlayerShard(profiles=shards[prefix]))
        return prefix

    print(f"  Writing {len(shards)} player shards...")
    written = run_parallel(_write, sorted(shards), "player shard", skip_log, workers)
    return sum(1 for w in written if w is not None)
