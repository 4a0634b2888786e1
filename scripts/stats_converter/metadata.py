"""Id map export: meta/map.json in, meta/map.bin out."""

from stats_converter import codec, routes
from stats_converter.constants import META_MAP_JSON
from stats_converter.errors import MissingFileError
from stats_converter.models import IdMap


def load_id_map(edition_in):
    map_path = edition_in / META_MAP_JSON
    if not map_path.is_file():
        raise MissingFileError(f"map.json not found at {map_path}")
    return IdMap.from_json(codec.read_json(map_path))


def export_id_map(edition_in, edition_out):
    """Read the edition's IdMap and persist it. Any failure here is fatal."""
    id_map = load_id_map(edition_in)
    codec.write(edition_out / routes.META_MAP_BIN, id_map)
    print(f"  Id map: {len(id_map.boards)} boards, {len(id_map.games)} games, "
          f"{len(id_map.stats)} stats")
    return id_map
