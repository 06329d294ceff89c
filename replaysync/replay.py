"""Read the header of an osu! replay (.osr) and derive its upload name.

Only the fixed header is decoded; the compressed cursor data after the
timestamp is never touched. Layout (little endian): byte mode, int version,
string beatmap MD5, string player name, string replay MD5, six shorts
(300/100/50/geki/katu/miss), int score, short max combo, byte perfect,
int mods, string life bar, long timestamp (.NET ticks, UTC).
"""

import struct
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple

from replaysync.errors import ReplayParseError

# .NET DateTime ticks are 100 ns intervals since 0001-01-01
_TICKS_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)

_STRING_ABSENT = 0x00
_STRING_PRESENT = 0x0B


@dataclass(frozen=True)
class ReplayInfo:
    """Header fields of one replay."""

    mode: int
    version: int
    beatmap_hash: str
    player_name: str
    replay_hash: str
    count_300: int
    count_100: int
    count_50: int
    count_geki: int
    count_katu: int
    count_miss: int
    score: int
    max_combo: int
    perfect_combo: bool
    mods: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class _Reader:
    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def unpack(self, fmt: str) -> Tuple[Any, ...]:
        size = struct.calcsize(fmt)
        if self._pos + size > len(self._data):
            raise ReplayParseError(f"Truncated replay at offset {self._pos}")
        values = struct.unpack_from(fmt, self._data, self._pos)
        self._pos += size
        return values

    def uleb128(self) -> int:
        result = 0
        shift = 0
        while True:
            (byte,) = self.unpack("<B")
            result |= (byte & 0x7F) << shift
            if not byte & 0x80:
                return result
            shift += 7

    def string(self) -> str:
        (marker,) = self.unpack("<B")
        if marker == _STRING_ABSENT:
            return ""
        if marker != _STRING_PRESENT:
            raise ReplayParseError(f"Bad string marker 0x{marker:02x} at offset {self._pos - 1}")
        length = self.uleb128()
        if self._pos + length > len(self._data):
            raise ReplayParseError(f"Truncated string at offset {self._pos}")
        raw = self._data[self._pos:self._pos + length]
        self._pos += length
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ReplayParseError(f"Invalid UTF-8 string: {e}") from e


def ticks_to_datetime(ticks: int) -> datetime:
    try:
        return _TICKS_EPOCH + timedelta(microseconds=ticks // 10)
    except OverflowError as e:
        raise ReplayParseError(f"Timestamp out of range: {ticks}") from e


def parse_replay(data: bytes) -> ReplayInfo:
    """Decode the replay header from raw file bytes. Raises ReplayParseError."""
    r = _Reader(data)
    (mode,) = r.unpack("<B")
    (version,) = r.unpack("<i")
    beatmap_hash = r.string()
    player_name = r.string()
    replay_hash = r.string()
    count_300, count_100, count_50, count_geki, count_katu, count_miss = r.unpack("<6H")
    (score,) = r.unpack("<i")
    (max_combo,) = r.unpack("<H")
    (perfect,) = r.unpack("<B")
    (mods,) = r.unpack("<i")
    r.string()  # life bar graph
    (ticks,) = r.unpack("<q")
    return ReplayInfo(
        mode=mode,
        version=version,
        beatmap_hash=beatmap_hash,
        player_name=player_name,
        replay_hash=replay_hash,
        count_300=count_300,
        count_100=count_100,
        count_50=count_50,
        count_geki=count_geki,
        count_katu=count_katu,
        count_miss=count_miss,
        score=score,
        max_combo=max_combo,
        perfect_combo=bool(perfect),
        mods=mods,
        timestamp=ticks_to_datetime(ticks),
    )


def display_name(info: ReplayInfo) -> str:
    """Upload file name: '<UTC timestamp> - <player>.osr'."""
    return f"{info.timestamp.isoformat()} - {info.player_name}.osr"


def object_key(info: ReplayInfo) -> str:
    """Object store key: replays are grouped by beatmap hash."""
    return f"{info.beatmap_hash}/{display_name(info)}"
