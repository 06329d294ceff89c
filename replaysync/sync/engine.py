"""Sync logic: hash local replays, skip those already recorded, upload and record the rest.

One run:
  1. load the hash cache (cold start if missing or corrupt);
  2. snapshot every fingerprint already in the metadata database;
  3. list the replay directory;
  4. hash uncached files on a thread pool;
  5. one file at a time, in listing order: classify, filter by player,
     upload the body, then record the metadata;
  6. save the hash cache (also on abort).

Robustness principles:
- The metadata record is only written after the upload succeeded. A failed
  upload or record is logged and the file is retried by the next run, because
  the database snapshot still does not contain its fingerprint.
- Object keys are derived from the replay header, so a re-upload overwrites
  the same object instead of creating a new one.
- Unreadable local files abort the run; remote failures never do.
"""

import enum
import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional

from replaysync.db.store import MetadataStore
from replaysync.errors import LocalFileError, MetadataStoreError, ObjectStoreError, ReplayParseError
from replaysync.replay import ReplayInfo, object_key, parse_replay
from replaysync.storage.object_store import S3ObjectStore
from replaysync.sync.dedup_index import DedupIndex
from replaysync.sync.fingerprint import fingerprint_files
from replaysync.sync.hash_cache import HashCache

# Progress callback: (phase, current_index, total_count). Phase: "listing"|"hashing"|"uploading"|"done". total=0 when unknown.
ProgressCallback = Callable[[str, int, int], None]
ReplayParser = Callable[[bytes], ReplayInfo]

log = logging.getLogger(__name__)

# System / file-manager metadata files that can appear next to replays. Never hashed or uploaded.
SYNC_IGNORE_BASENAMES: frozenset[str] = frozenset({
    ".directory",   # KDE Dolphin view settings
    "Thumbs.db",    # Windows thumbnail cache
    "Desktop.ini",  # Windows folder customisation
    ".DS_Store",    # macOS Finder metadata
})


class FileOutcome(str, enum.Enum):
    """Where a file ended up after the sync pass."""

    ALREADY_KNOWN = "already_known"
    SKIPPED_NOT_ALLOWED = "skipped_not_allowed"
    SKIPPED_UNPARSEABLE = "skipped_unparseable"
    WOULD_UPLOAD = "would_upload"  # dry run only
    UPLOADED = "uploaded"
    UPLOAD_FAILED = "upload_failed"
    RECORD_FAILED = "record_failed"


@dataclass
class SyncReport:
    """Per-file outcomes in listing order, keyed by path identity."""

    outcomes: Dict[str, FileOutcome] = field(default_factory=dict)
    hashed: int = 0
    known_remote: int = 0

    def counts(self) -> Dict[str, int]:
        return dict(Counter(o.value for o in self.outcomes.values()))

    def paths_with(self, outcome: FileOutcome) -> List[str]:
        return [p for p, o in self.outcomes.items() if o == outcome]


def _is_ignored(path: Path, extra: Iterable[Path] = ()) -> bool:
    """True if the file should be excluded from sync (ignore list, or one of extra, e.g. the cache file)."""
    if path.name in SYNC_IGNORE_BASENAMES:
        return True
    try:
        resolved = path.resolve()
        return any(resolved == p.resolve() for p in extra)
    except OSError:
        return False


def list_replay_files(root: Path, ignore: Iterable[Path] = ()) -> List[Path]:
    """
    Regular files directly under root (no recursion), sorted by name. This
    order is the processing order of the sync pass. Raises NotADirectoryError
    if root is not a directory.
    """
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: {root}")
    extra = list(ignore)
    out = [f for f in root.iterdir() if f.is_file() and not _is_ignored(f, extra)]
    return sorted(out, key=lambda p: p.name)


def _read_body(path: Path) -> bytes:
    try:
        return path.read_bytes()
    except OSError as e:
        raise LocalFileError(str(path), e) from e


def _sync_one(
    path: Path,
    fingerprint: str,
    index: DedupIndex,
    object_store: S3ObjectStore,
    metadata_store: MetadataStore,
    bucket: str,
    allowed_players: FrozenSet[str],
    parser: ReplayParser,
    dry_run: bool,
) -> FileOutcome:
    """Classify one file and, if new and allowed, upload it and record it."""
    if index.contains(fingerprint):
        return FileOutcome.ALREADY_KNOWN

    log.info("=> New replay found: %s", path)
    body = _read_body(path)
    try:
        info = parser(body)
    except ReplayParseError as e:
        log.warning("   Skipping %s: not a readable replay (%s)", path, e)
        return FileOutcome.SKIPPED_UNPARSEABLE

    if not info.player_name or info.player_name not in allowed_players:
        log.info("   Skipping %s: player %r is not on the allow-list", path, info.player_name)
        return FileOutcome.SKIPPED_NOT_ALLOWED

    key = object_key(info)
    if dry_run:
        log.info("   Would upload as %s", key)
        return FileOutcome.WOULD_UPLOAD

    log.info("   Uploading as %s", key)
    try:
        object_store.put(bucket, key, body)
    except ObjectStoreError as e:
        log.error("Upload %s: %s", path, e)
        return FileOutcome.UPLOAD_FAILED

    try:
        metadata_store.upsert_by_fingerprint(fingerprint, info)
    except MetadataStoreError as e:
        log.error("Record %s (uploaded as %s): %s", path, key, e)
        return FileOutcome.RECORD_FAILED

    log.info("   Done.")
    return FileOutcome.UPLOADED


def _persist_cache(cache: HashCache, cache_path: Path) -> None:
    try:
        cache.persist(cache_path)
    except OSError as e:
        log.error("Could not save hash cache %s: %s", cache_path, e)
        raise LocalFileError(str(cache_path), e) from e


def sync_run(
    local_root: Path,
    object_store: S3ObjectStore,
    metadata_store: MetadataStore,
    bucket: str,
    allowed_players: Iterable[str],
    cache_path: Path,
    parser: ReplayParser = parse_replay,
    max_workers: Optional[int] = None,
    dry_run: bool = False,
    on_progress: Optional[ProgressCallback] = None,
) -> SyncReport:
    """
    Run one sync cycle over local_root and return the per-file outcomes.

    Upload and record failures are logged and reported per file; the run goes
    on with the next file. Config, listing and local read errors propagate
    (MetadataStoreError from the initial listing, LocalFileError, NotADirectoryError).
    The hash cache is written back to cache_path in every case, so fingerprints
    computed before an abort are kept. A failure to write it raises
    LocalFileError, unless the run is already aborting with another error.
    """
    def progress(phase: str, current: int, total: int) -> None:
        if on_progress:
            on_progress(phase, current, total)

    allowed = frozenset(allowed_players)
    report = SyncReport()
    log.info("Sync cycle started (local_root=%s, dry_run=%s)", local_root, dry_run)

    # --- Phase 1: cache and remote snapshot ---
    cache = HashCache.from_file(cache_path)
    try:
        progress("listing", 0, 0)
        log.info("Downloading replay list...")
        index = DedupIndex(metadata_store.list_all_fingerprints())
        report.known_remote = len(index)
        log.info("%d replays found", len(index))

        log.info("Scanning for files in %s", local_root)
        files = list_replay_files(local_root, ignore=[cache_path])

        # --- Phase 2: fingerprint (parallel) ---
        hashed_count = 0
        done_lock = threading.Lock()

        def _on_hashed(_identity: str) -> None:
            nonlocal hashed_count
            with done_lock:
                hashed_count += 1
                progress("hashing", hashed_count, len(files))

        report.hashed = fingerprint_files(files, cache, max_workers=max_workers, on_hashed=_on_hashed)
        fingerprints = cache.snapshot()

        # --- Phase 3: classify and sync (sequential) ---
        log.info("Scanning for new files...")
        for i, path in enumerate(files, start=1):
            identity = str(path)
            outcome = _sync_one(
                path,
                fingerprints[identity],
                index,
                object_store,
                metadata_store,
                bucket,
                allowed,
                parser,
                dry_run,
            )
            report.outcomes[identity] = outcome
            progress("uploading", i, len(files))
    except BaseException:
        try:
            _persist_cache(cache, cache_path)
        except LocalFileError:
            # already logged; the error that aborted the run is the one to report
            pass
        raise
    _persist_cache(cache, cache_path)

    progress("done", len(report.outcomes), len(report.outcomes))
    log.info("Sync cycle completed: %s", report.counts() or "no files")
    return report


class SyncEngine:
    """
    Binds the remote collaborators and settings so a run only needs the directory.
    """

    def __init__(
        self,
        object_store: S3ObjectStore,
        metadata_store: MetadataStore,
        bucket: str,
        allowed_players: Iterable[str],
        cache_path: Path,
        parser: ReplayParser = parse_replay,
        max_workers: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self._object_store = object_store
        self._metadata_store = metadata_store
        self._bucket = bucket
        self._allowed_players = frozenset(allowed_players)
        self._cache_path = cache_path
        self._parser = parser
        self._max_workers = max_workers
        self._on_progress = on_progress

    def run(self, local_root: Path, dry_run: bool = False) -> SyncReport:
        """Run one sync cycle over local_root."""
        return sync_run(
            local_root,
            self._object_store,
            self._metadata_store,
            self._bucket,
            self._allowed_players,
            self._cache_path,
            parser=self._parser,
            max_workers=self._max_workers,
            dry_run=dry_run,
            on_progress=self._on_progress,
        )

    def close(self) -> None:
        """Release database connections."""
        self._metadata_store.dispose()
