"""Entry point: parse arguments, load settings, run one sync over a replay directory."""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from replaysync.config import Settings, get_settings
from replaysync.db.store import MetadataStore
from replaysync.errors import ConfigError, LocalFileError, MetadataStoreError
from replaysync.storage.object_store import S3ObjectStore
from replaysync.sync.engine import FileOutcome, SyncEngine

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FATAL = 1


def _setup_logging(level_name: str = "INFO", log_file: str = "") -> None:
    """Configure logging (stderr always; optional file)."""
    level = getattr(logging, level_name.upper(), logging.INFO)
    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root = logging.getLogger("replaysync")
    root.setLevel(level)
    root.handlers.clear()
    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root.addHandler(sh)
    if log_file and log_file.strip():
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
            fh.setLevel(level)
            fh.setFormatter(fmt)
            root.addHandler(fh)
            root.info("Logging to file %s", log_file)
        except OSError as e:
            root.warning("Could not open log file %s: %s", log_file, e)
    else:
        root.debug("Logging to stderr only (no log_file set)")
    # boto3 logs every request at DEBUG; keep it quiet unless it has something to say
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="replaysync",
        description="Upload new osu! replays to object storage and record them in the metadata database.",
    )
    parser.add_argument("directory", type=Path, help="directory containing .osr replay files")
    parser.add_argument("--cache", type=Path, default=None, help="hash cache file (default: REPLAYSYNC_CACHE_PATH or .cache)")
    parser.add_argument("--workers", type=int, default=None, help="hashing threads (default: one per CPU core)")
    parser.add_argument("--dry-run", action="store_true", help="classify files without uploading or recording anything")
    return parser.parse_args(argv)


def build_engine(settings: Settings, cache_path: Path, workers: int) -> SyncEngine:
    """Wire the S3 object store and SQL metadata store from settings."""
    object_store = S3ObjectStore(
        endpoint_url=settings.s3_endpoint,
        key_id=settings.s3_key_id,
        key=settings.s3_key,
        region=settings.s3_region,
        timeout=settings.s3_timeout,
    )
    metadata_store = MetadataStore(settings.database_url)
    metadata_store.init_db()
    allowed = settings.allowed_players_set
    if not allowed:
        log.warning("REPLAYSYNC_ALLOWED_PLAYERS is empty: no replay will be uploaded")
    return SyncEngine(
        object_store,
        metadata_store,
        bucket=settings.s3_bucket_name,
        allowed_players=allowed,
        cache_path=cache_path,
        max_workers=workers,
    )


def main(argv: Optional[List[str]] = None) -> int:
    """Run one sync. Returns the process exit status."""
    args = _parse_args(argv)
    try:
        settings = get_settings()
    except ConfigError as e:
        _setup_logging()
        log.error("%s", e)
        return EXIT_FATAL
    _setup_logging(settings.log_level, settings.log_file)

    cache_path = args.cache or settings.cache_path
    workers = args.workers if args.workers and args.workers > 0 else settings.worker_count
    try:
        engine = build_engine(settings, cache_path, workers)
    except (ConfigError, MetadataStoreError) as e:
        log.error("Sync aborted: %s", e)
        return EXIT_FATAL
    try:
        report = engine.run(args.directory, dry_run=args.dry_run)
    except (LocalFileError, MetadataStoreError, NotADirectoryError) as e:
        log.error("Sync aborted: %s", e)
        return EXIT_FATAL
    finally:
        engine.close()

    for outcome in (FileOutcome.UPLOAD_FAILED, FileOutcome.RECORD_FAILED):
        paths = report.paths_with(outcome)
        if paths:
            log.warning("%d file(s) %s, will retry next run: %s", len(paths), outcome.value, paths[:5])
    log.info(
        "Finished: %d hashed, %d known remotely, outcomes %s",
        report.hashed, report.known_remote, report.counts(),
    )
    return EXIT_OK


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
