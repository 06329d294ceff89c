"""Content fingerprints (SHA-256 of the full file body), computed in parallel.

Files whose path is already in the hash cache are skipped without being read.
"""

import hashlib
import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional, Sequence

from replaysync.errors import LocalFileError
from replaysync.sync.hash_cache import HashCache

log = logging.getLogger(__name__)

# Called with the path identity after each file is hashed (not for cached files)
HashedCallback = Callable[[str], None]


def compute_hash(body: bytes) -> str:
    """SHA-256 hex digest of file body."""
    return hashlib.sha256(body).hexdigest()


def fingerprint_file(path: Path) -> str:
    """Read the whole file and return its fingerprint. Raises OSError if unreadable."""
    return compute_hash(path.read_bytes())


def fingerprint_files(
    paths: Sequence[Path],
    cache: HashCache,
    max_workers: Optional[int] = None,
    on_hashed: Optional[HashedCallback] = None,
) -> int:
    """
    Ensure every path has a fingerprint in cache. Hashing runs on a thread pool
    (default one worker per CPU core); the cache lock is held only for the
    presence check and the insert, never while reading or hashing.

    Two workers racing on the same path both write the same digest, so the
    result does not depend on scheduling. Returns the number of files hashed.

    Raises LocalFileError for the first file that cannot be read; files not
    yet started are cancelled, fingerprints already stored stay in cache.
    """
    workers = max_workers or os.cpu_count() or 1

    def _hash_one(path: Path) -> bool:
        identity = str(path)
        if cache.get(identity) is not None:
            return False
        try:
            fingerprint = fingerprint_file(path)
        except OSError as e:
            raise LocalFileError(identity, e) from e
        cache.put(identity, fingerprint)
        log.info("Computed hash for file %s", identity)
        if on_hashed:
            on_hashed(identity)
        return True

    hashed = 0
    log.info("Computing SHA256 hashes for %d files (%d workers)", len(paths), workers)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_hash_one, p): p for p in paths}
        try:
            for fut in as_completed(futures):
                if fut.result():
                    hashed += 1
        except LocalFileError as e:
            for f in futures:
                f.cancel()
            log.error("Hashing aborted: %s", e)
            raise
    log.info("Hashed %d files, %d served from cache", hashed, len(paths) - hashed)
    return hashed
