"""Smoke tests: package and main modules import without error."""


def test_replaysync_package_imports() -> None:
    """Package can be imported."""
    import replaysync  # noqa: F401

    assert replaysync.__file__ is not None
    assert replaysync.__version__


def test_core_modules_import() -> None:
    from replaysync.sync.dedup_index import DedupIndex  # noqa: F401
    from replaysync.sync.engine import SyncEngine, sync_run  # noqa: F401
    from replaysync.sync.fingerprint import fingerprint_files  # noqa: F401
    from replaysync.sync.hash_cache import HashCache  # noqa: F401
