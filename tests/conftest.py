"""Shared fixtures: build .osr replay bytes and write replay directories."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable

import pytest

_TICKS_EPOCH = datetime(1, 1, 1, tzinfo=timezone.utc)
DEFAULT_TIME = datetime(2021, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

_CONFIG_ENV = (
    "S3_KEY_ID", "S3_KEY", "S3_ENDPOINT", "S3_BUCKET_NAME", "S3_REGION", "S3_TIMEOUT",
    "DATABASE_URL", "REPLAYSYNC_ALLOWED_PLAYERS", "REPLAYSYNC_CACHE_PATH",
    "REPLAYSYNC_MAX_WORKERS", "REPLAYSYNC_LOG_LEVEL", "REPLAYSYNC_LOG_FILE",
)


def _uleb128(n: int) -> bytes:
    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _osu_string(s: str) -> bytes:
    if not s:
        return b"\x00"
    raw = s.encode("utf-8")
    return b"\x0b" + _uleb128(len(raw)) + raw


def build_replay(
    player: str = "Akane Butterfly",
    beatmap_hash: str = "0123456789abcdef0123456789abcdef",
    replay_hash: str = "fedcba9876543210fedcba9876543210",
    score: int = 727727,
    timestamp: datetime = DEFAULT_TIME,
    mods: int = 72,
) -> bytes:
    """Header of a standard-mode replay followed by a few bytes of fake frame data."""
    ticks = (timestamp - _TICKS_EPOCH) // timedelta(microseconds=1) * 10
    return b"".join([
        (0).to_bytes(1, "little"),                  # mode
        (20210304).to_bytes(4, "little", signed=True),  # version
        _osu_string(beatmap_hash),
        _osu_string(player),
        _osu_string(replay_hash),
        b"".join(c.to_bytes(2, "little") for c in (300, 20, 1, 40, 5, 2)),
        score.to_bytes(4, "little", signed=True),
        (512).to_bytes(2, "little"),                # max combo
        (0).to_bytes(1, "little"),                  # perfect
        mods.to_bytes(4, "little", signed=True),
        _osu_string("0|1,1000|0.9,"),               # life bar
        ticks.to_bytes(8, "little", signed=True),
        (4).to_bytes(4, "little", signed=True),
        b"\x5d\x00\x00\x80",
    ])


@pytest.fixture
def make_replay() -> Callable[..., bytes]:
    return build_replay


@pytest.fixture
def replay_dir(tmp_path: Path) -> Path:
    d = tmp_path / "replays"
    d.mkdir()
    return d


@pytest.fixture
def clean_env(monkeypatch, tmp_path: Path):
    """No config in the environment and no .env in the working directory."""
    for name in _CONFIG_ENV:
        monkeypatch.delenv(name, raising=False)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    return workdir
