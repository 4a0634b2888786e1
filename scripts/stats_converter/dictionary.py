"""Dictionary resolver: player id -> (uuid, name) lookup and the name index.

Input is a tree of JSON shards shaped ``{"15432": ["<uuid>", "<name>" | null]}``.
Each shard is parsed on the worker pool into a local name multimap and a
local identity map; the partial results are then folded in sorted file
order, so when two shards disagree about one id the later file wins and the
outcome does not depend on thread scheduling.
"""

from collections import defaultdict
from types import MappingProxyType

from stats_converter import codec, routes
from stats_converter.constants import MIN_NAME_LENGTH
from stats_converter.errors import InvalidFormatError, ValidationError
from stats_converter.parallel import run_parallel
from stats_converter.sharding import name_shard


def find_dictionary_files(dict_in):
    """All *.json files under dict_in, in a stable order."""
    if not dict_in.is_dir():
        return []
    return sorted(p for p in dict_in.rglob("*.json") if p.is_file())


def _parse_entry(entry):
    """["uuid", "name"|null] -> (uuid, name or None). Returns None if malformed."""
    if not isinstance(entry, (list, tuple)) or not entry:
        return None
    uuid = entry[0]
    name = entry[1] if len(entry) > 1 else None
    if not isinstance(uuid, str) or not uuid:
        return None
    if not isinstance(name, str) or not name:
        name = None
    return uuid, name


def load_dictionary_file(path, skip_log):
    """Parse one shard into (local_names, local_ids).

    local_names: name prefix -> [(name, uuid), ...]
    local_ids:   player id   -> (uuid, name, falling back to the uuid)
    """
    raw = codec.read_json(path)
    if not isinstance(raw, dict):
        raise InvalidFormatError(f"{path}: dictionary shard must be a JSON object")

    local_names = defaultdict(list)
    local_ids = {}
    for player_id, entry in raw.items():
        parsed = _parse_entry(entry)
        if parsed is None:
            skip_log.append("malformed dictionary entry")
            continue
        uuid, name = parsed
        if name is not None and len(name) >= MIN_NAME_LENGTH:
            try:
                local_names[name_shard(name)].append((name, uuid))
            except ValidationError:
                # still resolvable by id, just not searchable by name
                skip_log.append("name unusable as index key")
        local_ids[player_id] = (uuid, name if name is not None else uuid)
    return local_names, local_ids


def merge_partials(partials):
    """Fold (local_names, local_ids) pairs in order. Returns (names, ids, collisions)."""
    names_map = defaultdict(list)
    lookup = {}
    collisions = 0
    for partial in partials:
        if partial is None:
            continue
        local_names, local_ids = partial
        for prefix, entries in local_names.items():
            names_map[prefix].extend(entries)
        for player_id, identity in local_ids.items():
            previous = lookup.get(player_id)
            if previous is not None and previous != identity:
                collisions += 1
            lookup[player_id] = identity
    return names_map, lookup, collisions


def build_name_index(entries):
    """[(name, uuid), ...] -> {name: uuid} with sorted keys; later pairs win."""
    index = {}
    for name, uuid in entries:
        index[name] = uuid
    return {name: index[name] for name in sorted(index)}


def write_names_index(names_map, edition_out, skip_log=None, workers=None):
    """One compressed name -> uuid artifact per 3-character prefix."""
    def _write(prefix):
        codec.write(edition_out / routes.names_index_bin(prefix), build_name_index(names_map[prefix]))
        return prefix

    written = run_parallel(_write, sorted(names_map), "name index", skip_log, workers)
    return sum(1 for w in written if w is not None)


def process_dictionary_and_names(dict_in, edition_out, skip_log=None, workers=None):
    """Build the identity lookup and write names_index/. Returns a read-only mapping."""
    if skip_log is None:
        skip_log = []

    files = find_dictionary_files(dict_in)
    if not files:
        print(f"  Warning: no dictionary files under {dict_in}")
    print(f"  Processing {len(files)} dictionary files in parallel...")

    partials = run_parallel(
        lambda path: load_dictionary_file(path, skip_log),
        files, "dictionary file", skip_log, workers,
    )
    names_map, lookup, collisions = merge_partials(partials)

    print(f"  Resolved {len(lookup)} player ids, {len(names_map)} name prefixes")
    if collisions:
        print(f"  Warning: {collisions} player id(s) defined differently in more than one shard "
              f"(later file wins)")

    written = write_names_index(names_map, edition_out, skip_log, workers)
    print(f"  Wrote {written} name index shards")

    return MappingProxyType(lookup)
