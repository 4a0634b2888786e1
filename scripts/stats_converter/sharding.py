"""Deterministic shard keys shared with the serving layer.

Producer and consumer must derive identical keys, so these stay tiny and
free of locale-dependent behaviour beyond str.upper()/str.lower(). A key is
also a file name, so it may not contain path separators or NUL, or start
with a dot.
"""

from stats_converter.constants import MIN_NAME_LENGTH, MIN_PREFIX_LENGTH
from stats_converter.errors import ValidationError

UNSAFE_KEY_CHARS = ("\x00", "/", "\\")


def check_shard_key(key):
    """Return key unchanged if it is usable as a single file name."""
    if not isinstance(key, str) or not key or key.startswith("."):
        raise ValidationError(f"Unusable shard key: {key!r}")
    if any(c in key for c in UNSAFE_KEY_CHARS):
        raise ValidationError(f"Unusable shard key: {key!r}")
    return key


def uuid_shard(uuid):
    """'abc123de' -> 'ABC'. Player profile shards are keyed this way."""
    if not isinstance(uuid, str) or len(uuid) < MIN_PREFIX_LENGTH:
        raise ValidationError(f"UUID too short for sharding: {uuid!r}")
    return check_shard_key(uuid[:MIN_PREFIX_LENGTH].upper())


def name_shard(name):
    """'Player123' -> 'pla'. Name index shards are keyed this way."""
    if not isinstance(name, str) or len(name) < MIN_NAME_LENGTH:
        raise ValidationError(f"Name too short for sharding: {name!r}")
    return check_shard_key(name[:MIN_NAME_LENGTH].lower())
