"""Tests for settings: required variables, allow-list parsing, .env loading."""

import os
from pathlib import Path

import pytest

from replaysync.config import Settings, get_settings
from replaysync.errors import ConfigError

REQUIRED = {
    "S3_KEY_ID": "key-id",
    "S3_KEY": "secret",
    "S3_ENDPOINT": "https://s3.example.test",
    "S3_BUCKET_NAME": "replays",
    "DATABASE_URL": "sqlite:///replays.db",
}


def test_missing_required_config_raises(clean_env) -> None:
    """Every missing required variable is named in the error."""
    with pytest.raises(ConfigError) as exc:
        get_settings()
    for name in REQUIRED:
        assert name in str(exc.value)


def test_partially_missing_config_names_only_missing(clean_env, monkeypatch) -> None:
    for name, value in REQUIRED.items():
        if name != "DATABASE_URL":
            monkeypatch.setenv(name, value)
    with pytest.raises(ConfigError) as exc:
        get_settings()
    assert "DATABASE_URL" in str(exc.value)
    assert "S3_KEY_ID" not in str(exc.value)


def test_settings_from_environment(clean_env, monkeypatch) -> None:
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setenv("REPLAYSYNC_ALLOWED_PLAYERS", "Akane Butterfly, minhducsun2002,,61ph3r ")
    monkeypatch.setenv("REPLAYSYNC_MAX_WORKERS", "3")
    monkeypatch.setenv("REPLAYSYNC_CACHE_PATH", "/tmp/replaysync.cache")
    settings = get_settings()
    assert settings.s3_key_id == "key-id"
    assert settings.s3_bucket_name == "replays"
    assert settings.database_url == "sqlite:///replays.db"
    assert settings.allowed_players_set == frozenset({"Akane Butterfly", "minhducsun2002", "61ph3r"})
    assert settings.worker_count == 3
    assert settings.cache_path == Path("/tmp/replaysync.cache")


def test_defaults(clean_env, monkeypatch) -> None:
    for name, value in REQUIRED.items():
        monkeypatch.setenv(name, value)
    settings = get_settings()
    assert settings.s3_region == "us-east-1"
    assert settings.cache_path == Path(".cache")
    assert settings.allowed_players_set == frozenset()
    assert settings.worker_count == (os.cpu_count() or 1)
    assert settings.log_level == "INFO"


def test_settings_read_dotenv_file(clean_env: Path) -> None:
    """A .env file in the working directory supplies configuration."""
    lines = [f"{k}={v}" for k, v in REQUIRED.items()] + ["REPLAYSYNC_ALLOWED_PLAYERS=61ph3r"]
    (clean_env / ".env").write_text("\n".join(lines), encoding="utf-8")
    settings = get_settings()
    assert settings.s3_endpoint == "https://s3.example.test"
    assert settings.allowed_players_set == frozenset({"61ph3r"})


def test_settings_accept_field_names(clean_env) -> None:
    settings = Settings(
        s3_key_id="k", s3_key="s", s3_endpoint="https://e", s3_bucket_name="b",
        database_url="sqlite://", allowed_players="a,b", max_workers=2,
    )
    assert settings.allowed_players_set == frozenset({"a", "b"})
    assert settings.worker_count == 2
