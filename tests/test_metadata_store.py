"""Tests for MetadataStore against SQLite."""

from pathlib import Path

import pytest

from replaysync.db.store import MetadataStore
from replaysync.errors import ConfigError, MetadataStoreError
from replaysync.replay import parse_replay

FP_A = "a" * 64
FP_B = "b" * 64


@pytest.fixture
def store():
    s = MetadataStore("sqlite:///:memory:")
    s.init_db()
    yield s
    s.dispose()


def test_empty_store_lists_nothing(store: MetadataStore) -> None:
    assert store.list_all_fingerprints() == []


def test_upsert_inserts_new_record(store: MetadataStore, make_replay) -> None:
    info = parse_replay(make_replay(player="Akane Butterfly"))
    store.upsert_by_fingerprint(FP_A, info)
    assert store.list_all_fingerprints() == [FP_A]
    row = store.get(FP_A)
    assert row is not None
    assert row.player_name == "Akane Butterfly"
    assert row.beatmap_hash == info.beatmap_hash
    assert row.score == info.score
    assert row.timestamp.replace(tzinfo=None) == info.timestamp.replace(tzinfo=None)


def test_upsert_replaces_existing_record(store: MetadataStore, make_replay) -> None:
    """Same fingerprint twice: one record, fields from the second write."""
    store.upsert_by_fingerprint(FP_A, parse_replay(make_replay(score=1)))
    store.upsert_by_fingerprint(FP_A, parse_replay(make_replay(score=2)))
    assert store.list_all_fingerprints() == [FP_A]
    assert store.get(FP_A).score == 2


def test_list_all_fingerprints(store: MetadataStore, make_replay) -> None:
    info = parse_replay(make_replay())
    store.upsert_by_fingerprint(FP_A, info)
    store.upsert_by_fingerprint(FP_B, info)
    assert sorted(store.list_all_fingerprints()) == [FP_A, FP_B]


def test_missing_table_raises_metadata_store_error(tmp_path: Path, make_replay) -> None:
    """Database errors surface as MetadataStoreError (no init_db, so no table)."""
    s = MetadataStore(f"sqlite:///{tmp_path / 'empty.db'}")
    try:
        with pytest.raises(MetadataStoreError):
            s.list_all_fingerprints()
        with pytest.raises(MetadataStoreError):
            s.upsert_by_fingerprint(FP_A, parse_replay(make_replay()))
        with pytest.raises(MetadataStoreError):
            s.get(FP_A)
    finally:
        s.dispose()


def test_init_db_is_idempotent(tmp_path: Path, make_replay) -> None:
    url = f"sqlite:///{tmp_path / 'replays.db'}"
    s = MetadataStore(url)
    s.init_db()
    s.upsert_by_fingerprint(FP_A, parse_replay(make_replay()))
    s.init_db()
    assert s.list_all_fingerprints() == [FP_A]
    s.dispose()


@pytest.mark.parametrize("url", ["not a url", "nosuchdialect://user@host/db", ""])
def test_malformed_database_url_is_config_error(url: str) -> None:
    with pytest.raises(ConfigError):
        MetadataStore(url)


def test_get_missing_fingerprint_is_none(store: MetadataStore) -> None:
    assert store.get(FP_A) is None
