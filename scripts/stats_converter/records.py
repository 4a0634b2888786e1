"""Fixed-width big-endian record views over flat byte buffers.

Leaderboard chunks are arrays of 16-byte ``(player_id, score)`` records and
player stat dumps are arrays of 36-byte stat records. Both are read through
one RecordLayout so the stride check happens in exactly one place.
"""

import struct


class RecordLayout:
    """A named big-endian struct with stride-checked iteration."""

    def __init__(self, name, fields):
        self.name = name
        self.fields = tuple(field for field, _ in fields)
        self._struct = struct.Struct(">" + "".join(code for _, code in fields))
        self.size = self._struct.size

    def count(self, buffer, source="", skip_log=None):
        """Number of whole records in buffer. Trailing bytes are reported and ignored."""
        whole, remainder = divmod(len(buffer), self.size)
        if remainder:
            print(
                f"  Warning: {source or self.name}: {len(buffer)} bytes is not a multiple of "
                f"{self.size}, discarding {remainder} trailing bytes"
            )
            if skip_log is not None:
                skip_log.append(f"trailing bytes in {self.name} buffer")
        return whole

    def iter_records(self, buffer, source="", skip_log=None):
        """Yield one tuple per whole record, in buffer order, without copying."""
        whole = self.count(buffer, source=source, skip_log=skip_log)
        view = memoryview(buffer)[: whole * self.size]
        return self._struct.iter_unpack(view)

    def unpack_at(self, buffer, index):
        """Record number `index` as a tuple."""
        offset = index * self.size
        if index < 0 or offset + self.size > len(buffer):
            raise IndexError(f"{self.name} record {index} out of range")
        return self._struct.unpack_from(buffer, offset)

    def pack(self, *values):
        return self._struct.pack(*values)

    def as_dict(self, record):
        return dict(zip(self.fields, record))


# player_id is signed so legacy negative sentinels are caught by the <= 0 check
LEADERBOARD_RECORD = RecordLayout("leaderboard", [
    ("player_id", "q"),
    ("score", "Q"),
])

PLAYER_STAT_RECORD = RecordLayout("player_stat", [
    ("board_id", "I"),
    ("game_id", "I"),
    ("stat_id", "I"),
    ("save_id", "I"),
    ("score", "Q"),
    ("rank", "I"),
    ("timestamp", "Q"),
])
