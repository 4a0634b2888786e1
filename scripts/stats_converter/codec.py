"""Binary codec: msgpack payloads in xz containers, plus guarded JSON I/O.

Every ``.bin`` artifact in the output tree uses one wire format: the value is
packed with msgpack, the whole buffer is compressed into a single xz stream,
and the result is written atomically (temp file + rename) so a reader never
sees a half-written page.
"""

import json
import lzma
import os
import threading
from pathlib import Path

import msgpack

from stats_converter.constants import MAX_JSON_SIZE, XZ_PRESET
from stats_converter.errors import (
    CompressionError,
    DataIOError,
    DecompressionError,
    DeserializationError,
    MissingFileError,
    SerializationError,
    ValidationError,
)


# ─── Primitives ─────────────────────────────────────────────────

def serialize(value):
    """Pack a plain value (dicts, lists, ints, strs, None) into msgpack bytes."""
    try:
        return msgpack.packb(value, use_bin_type=True)
    except (TypeError, ValueError, OverflowError) as e:
        raise SerializationError(f"msgpack encoding failed: {e}") from e


def deserialize(data, source="<bytes>"):
    try:
        return msgpack.unpackb(data, raw=False, strict_map_key=False)
    except (TypeError, ValueError) as e:
        raise DeserializationError(f"{source}: msgpack decoding failed: {e}") from e


def compress(data):
    try:
        return lzma.compress(data, format=lzma.FORMAT_XZ, check=lzma.CHECK_CRC64, preset=XZ_PRESET)
    except lzma.LZMAError as e:
        raise CompressionError(f"xz compression failed: {e}") from e


def decompress(data, source="<bytes>"):
    """Decompress an xz (or legacy .lzma) buffer."""
    try:
        return lzma.decompress(data, format=lzma.FORMAT_AUTO)
    except lzma.LZMAError as e:
        raise DecompressionError(f"{source}: {e}") from e


# ─── File Operations ────────────────────────────────────────────

def _atomic_write(path, data):
    """Write bytes next to path, then rename over it. Creates parent dirs."""
    path = Path(path)
    tmp = path.with_name(f".{path.name}.{os.getpid()}.{threading.get_ident()}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except OSError as e:
        try:
            tmp.unlink()
        except OSError:
            pass
        raise DataIOError(f"Failed to write {path}: {e}") from e


def _read_bytes(path):
    path = Path(path)
    if not path.is_file():
        raise MissingFileError(f"{path}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise DataIOError(f"Failed to read {path}: {e}") from e


def write(path, value):
    """Serialize value, compress the full buffer and write it atomically."""
    if hasattr(value, "to_wire"):
        value = value.to_wire()
    write_raw(path, serialize(value))


def write_raw(path, data):
    """Compress raw bytes into an xz artifact at path."""
    _atomic_write(path, compress(data))


def decompress_raw(path):
    """Return the fully decompressed payload of an xz file."""
    return decompress(_read_bytes(path), source=path)


def read(path, model=None):
    """Inverse of write(). With a model class, returns model.from_wire(value)."""
    value = deserialize(decompress_raw(path), source=path)
    if model is None:
        return value
    try:
        return model.from_wire(value)
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise DeserializationError(f"{path}: not a valid {model.__name__}: {e}") from e


# ─── JSON ───────────────────────────────────────────────────────

def parse_json_bytes(data, source="<bytes>"):
    """Parse a JSON document, rejecting empty or oversized buffers first."""
    if len(data) == 0:
        raise ValidationError(f"{source}: JSON input is empty")
    if len(data) > MAX_JSON_SIZE:
        raise ValidationError(
            f"{source}: JSON input too large ({len(data)} bytes, max {MAX_JSON_SIZE})"
        )
    try:
        return json.loads(data)
    except ValueError as e:
        raise DeserializationError(f"{source}: invalid JSON: {e}") from e


def read_json(path):
    """Read a JSON file after checking its size on disk."""
    path = Path(path)
    if not path.is_file():
        raise MissingFileError(f"{path}")
    size = path.stat().st_size
    if size == 0 or size > MAX_JSON_SIZE:
        raise ValidationError(f"{path}: JSON file size {size} outside (0, {MAX_JSON_SIZE}]")
    return parse_json_bytes(_read_bytes(path), source=path)


def write_json(path, data, compact=False):
    """Write data as JSON atomically."""
    try:
        if compact:
            text = json.dumps(data, separators=(",", ":"))
        else:
            text = json.dumps(data, indent=2)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"{path}: {e}") from e
    _atomic_write(path, text.encode("utf-8"))
