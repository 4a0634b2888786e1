"""Persisted data model and its msgpack wire form.

Each class converts to plain msgpack-friendly values with to_wire() and back
with from_wire(). Maps are emitted with sorted keys so re-running the
converter on unchanged input produces byte-identical artifacts.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from stats_converter.constants import ENTRIES_PER_PAGE
from stats_converter.errors import IntegrityCheckError, InvalidFormatError

MAX_U64 = 2 ** 64 - 1


def legacy_int(value):
    """Coerce a legacy JSON scalar to an int in the u64 range; anything else is 0.

    Old dumps mix ints, floats, numeric strings, the marker "CSV" and nulls.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, float):
        value = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        text = value.strip()
        value = int(text) if text.isascii() and text.isdigit() else 0
    if isinstance(value, int) and 0 <= value <= MAX_U64:
        return value
    return 0


def _sorted_map(mapping):
    return {k: mapping[k] for k in sorted(mapping)}


# ─── Id Map ─────────────────────────────────────────────────────

@dataclass
class IdMap:
    boards: Dict[int, str] = field(default_factory=dict)
    games: Dict[int, str] = field(default_factory=dict)
    stats: Dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, raw):
        """Build from upstream map.json, whose object keys are decimal strings."""
        if not isinstance(raw, dict):
            raise InvalidFormatError("map.json must be an object")
        sections = {}
        for section in ("boards", "games", "stats"):
            entries = raw.get(section) or {}
            if not isinstance(entries, dict):
                raise InvalidFormatError(f"map.json '{section}' must be an object")
            try:
                sections[section] = {int(k): str(v) for k, v in entries.items()}
            except ValueError as e:
                raise InvalidFormatError(f"map.json '{section}' has a non-numeric id: {e}") from e
        return cls(**sections)

    def to_wire(self):
        return {
            "boards": _sorted_map(self.boards),
            "games": _sorted_map(self.games),
            "stats": _sorted_map(self.stats),
        }

    @classmethod
    def from_wire(cls, value):
        return cls(
            boards={int(k): v for k, v in value["boards"].items()},
            games={int(k): v for k, v in value["games"].items()},
            stats={int(k): v for k, v in value["stats"].items()},
        )


# ─── Leaderboards ───────────────────────────────────────────────

@dataclass
class LeaderboardPage:
    """Columnar page: four parallel arrays of equal length, at most 1000 rows."""

    ranks: List[int] = field(default_factory=list)
    uuids: List[str] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    scores: List[int] = field(default_factory=list)

    def __len__(self):
        return len(self.ranks)

    def append(self, rank, uuid, name, score):
        self.ranks.append(rank)
        self.uuids.append(uuid)
        self.names.append(name)
        self.scores.append(score)

    def is_full(self):
        return len(self.ranks) >= ENTRIES_PER_PAGE

    def to_wire(self):
        return {
            "ranks": self.ranks,
            "uuids": self.uuids,
            "names": self.names,
            "scores": self.scores,
        }

    @classmethod
    def from_wire(cls, value):
        page = cls(
            ranks=list(value["ranks"]),
            uuids=list(value["uuids"]),
            names=list(value["names"]),
            scores=list(value["scores"]),
        )
        lengths = {len(page.ranks), len(page.uuids), len(page.names), len(page.scores)}
        if len(lengths) != 1:
            raise IntegrityCheckError(f"page columns differ in length: {sorted(lengths)}")
        if len(page) > ENTRIES_PER_PAGE:
            raise IntegrityCheckError(f"page has {len(page)} rows, max {ENTRIES_PER_PAGE}")
        return page


@dataclass
class LeaderboardMeta:
    """Authoritative counts for one latest view or one snapshot."""

    total_entries: int = 0
    total_pages: int = 0

    def apply_to(self, meta):
        """Return upstream _meta.json content with the counts replaced."""
        updated = dict(meta or {})
        updated["total_entries"] = self.total_entries
        updated["total_pages"] = self.total_pages
        return updated


@dataclass
class HistoricalSnapshot:
    snapshot_id: str
    timestamp: int = 0
    total_pages: int = 0
    total_entries: int = 0

    @classmethod
    def from_meta(cls, snapshot_id, meta):
        meta = meta if isinstance(meta, dict) else {}
        return cls(
            snapshot_id=snapshot_id,
            timestamp=legacy_int(meta.get("save_time_unix")),
            total_pages=legacy_int(meta.get("total_pages")),
            total_entries=legacy_int(meta.get("total_entries")),
        )

    def sort_key(self):
        return (self.timestamp, self.snapshot_id)

    def to_wire(self):
        return {
            "snapshot_id": self.snapshot_id,
            "timestamp": self.timestamp,
            "total_pages": self.total_pages,
            "total_entries": self.total_entries,
        }

    @classmethod
    def from_wire(cls, value):
        return cls(**{k: value[k] for k in ("snapshot_id", "timestamp", "total_pages", "total_entries")})


# ─── Players ────────────────────────────────────────────────────

@dataclass
class StatRecord:
    board_id: int
    game_id: int
    stat_id: int
    score: int
    rank: int
    save_time: int

    @classmethod
    def from_stride(cls, values):
        """One 7-value stride: (board, game, stat, padding, score, rank, save_time)."""
        board_id, game_id, stat_id, _padding, score, rank, save_time = values
        return cls(
            board_id=legacy_int(board_id),
            game_id=legacy_int(game_id),
            stat_id=legacy_int(stat_id),
            score=legacy_int(score),
            rank=legacy_int(rank),
            save_time=legacy_int(save_time),
        )

    def to_wire(self):
        return [self.board_id, self.game_id, self.stat_id, self.score, self.rank, self.save_time]

    @classmethod
    def from_wire(cls, value):
        return cls(*value)


@dataclass
class PlayerProfile:
    """Wire form is [name_or_nil, [stat, ...]]; the uuid is the shard key."""

    uuid: str
    name: Optional[str] = None
    stats: List[StatRecord] = field(default_factory=list)

    def to_wire(self):
        return [self.name, [s.to_wire() for s in self.stats]]

    @classmethod
    def from_wire(cls, value, uuid=""):
        name, stats = value
        return cls(uuid=uuid, name=name, stats=[StatRecord.from_wire(s) for s in stats])


@dataclass
class PlayerShard:
    """All profiles whose uuid shares one 3-character prefix."""

    profiles: Dict[str, PlayerProfile] = field(default_factory=dict)

    def to_wire(self):
        return {uuid: self.profiles[uuid].to_wire() for uuid in sorted(self.profiles)}

    @classmethod
    def from_wire(cls, value):
        return cls(profiles={
            uuid: PlayerProfile.from_wire(profile, uuid=uuid) for uuid, profile in value.items()
        })


# ─── Games ──────────────────────────────────────────────────────

@dataclass
class LatestSummary:
    total_entries: int = 0
    total_pages: int = 0
    timestamp: int = 0

    @classmethod
    def from_meta(cls, meta):
        meta = meta if isinstance(meta, dict) else {}
        return cls(
            total_entries=legacy_int(meta.get("total_entries")),
            total_pages=legacy_int(meta.get("total_pages")),
            timestamp=legacy_int(meta.get("save_time_unix")),
        )

    def to_wire(self):
        return {
            "total_entries": self.total_entries,
            "total_pages": self.total_pages,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_wire(cls, value):
        return cls(**{k: value[k] for k in ("total_entries", "total_pages", "timestamp")})


@dataclass
class BoardSummary:
    latest: Optional[LatestSummary] = None
    history: List[HistoricalSnapshot] = field(default_factory=list)

    def to_wire(self):
        return {
            "latest": self.latest.to_wire() if self.latest else None,
            "history": [s.to_wire() for s in self.history],
        }

    @classmethod
    def from_wire(cls, value):
        latest = value.get("latest")
        return cls(
            latest=LatestSummary.from_wire(latest) if latest else None,
            history=[HistoricalSnapshot.from_wire(s) for s in value.get("history", [])],
        )


@dataclass
class GameLeaderboardData:
    """stats[stat_name][board_name] -> BoardSummary"""

    game_id: str
    game_name: str
    stats: Dict[str, Dict[str, BoardSummary]] = field(default_factory=dict)

    def to_wire(self):
        return {
            "game_id": self.game_id,
            "game_name": self.game_name,
            "stats": {
                stat: {board: boards[board].to_wire() for board in sorted(boards)}
                for stat, boards in sorted(self.stats.items())
            },
        }

    @classmethod
    def from_wire(cls, value):
        return cls(
            game_id=value["game_id"],
            game_name=value["game_name"],
            stats={
                stat: {board: BoardSummary.from_wire(summary) for board, summary in boards.items()}
                for stat, boards in value["stats"].items()
            },
        )
