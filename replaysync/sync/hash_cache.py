"""Persistent path -> SHA-256 cache so unchanged files are not re-hashed across runs.

On-disk format is plain text, one entry per line: ``<path> = <sha256>``. No
header and no versioning; a format change means a cold cache. Lines are split
on "\n" only and parsed from the right, so a path may itself contain " = "
or other Unicode line separators; only paths containing "\n" cannot be stored.

Entries are trusted by path: a file rewritten in place keeps its old hash until
its cache line is removed.
"""

import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

from replaysync.errors import HashCacheCorruptError

log = logging.getLogger(__name__)

SEPARATOR = " = "
_FINGERPRINT = re.compile(r"[0-9a-fA-F]+")


def _parse_line(line_number: int, line: str) -> Tuple[str, str]:
    # fingerprints are hex, so the last separator is the real one
    parts = line.rsplit(SEPARATOR, 1)
    if len(parts) != 2 or not parts[0] or not _FINGERPRINT.fullmatch(parts[1]):
        raise HashCacheCorruptError(line_number, line)
    return parts[0], parts[1]


def load_hash_cache(path: Path) -> Dict[str, str]:
    """
    Read the cache file into a dict. Missing file returns {}.
    Raises HashCacheCorruptError on the first malformed line; nothing is returned
    in that case (no partial repair). Blank lines are ignored.
    """
    if not path.exists():
        log.debug("No hash cache at %s", path)
        return {}
    out: Dict[str, str] = {}
    text = path.read_bytes().decode("utf-8", errors="surrogateescape")
    for i, line in enumerate(text.split("\n"), start=1):
        if line.endswith("\r"):
            line = line[:-1]
        if not line.strip():
            continue
        identity, fingerprint = _parse_line(i, line)
        out[identity] = fingerprint
    return out


def load_or_cold_start(path: Path) -> Dict[str, str]:
    """Load the cache; on corruption or read error discard it and start cold."""
    try:
        entries = load_hash_cache(path)
    except HashCacheCorruptError as e:
        log.warning("Discarding hash cache %s: %s (all files will be re-hashed)", path, e)
        return {}
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Could not read hash cache %s: %s (all files will be re-hashed)", path, e)
        return {}
    log.info("Populated %d entries from hash cache %s", len(entries), path)
    return entries


def _representable(identity: str) -> bool:
    return "\n" not in identity


def persist_hash_cache(path: Path, entries: Dict[str, str]) -> None:
    """
    Write all entries, replacing the previous file. Writes to a temp file in the
    same directory and renames it over the target, so a crash mid-write leaves
    the previous cache intact. Paths that contain "\n" are left out (they would
    not load back) and get re-hashed next run. Undecodable filename bytes are
    written back as-is (surrogateescape).
    """
    lines = []
    dropped = 0
    for identity in sorted(entries):
        if not _representable(identity):
            dropped += 1
            continue
        lines.append(f"{identity}{SEPARATOR}{entries[identity]}")
    if dropped:
        log.warning("Not caching %d path(s) containing a newline", dropped)

    directory = path.parent
    directory.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
            f.write("\n".join(lines))
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    log.info("Saved %d hash cache entries to %s", len(lines), path)


class HashCache:
    """
    Thread-safe path -> fingerprint map shared by the hashing workers.
    Every get/put holds the lock only for the dict access itself.
    """

    def __init__(self, entries: Optional[Dict[str, str]] = None) -> None:
        self._entries: Dict[str, str] = dict(entries or {})
        self._lock = threading.Lock()

    @classmethod
    def from_file(cls, path: Path) -> "HashCache":
        return cls(load_or_cold_start(path))

    def get(self, identity: str) -> Optional[str]:
        with self._lock:
            return self._entries.get(identity)

    def put(self, identity: str, fingerprint: str) -> None:
        """Insert or overwrite the fingerprint for identity."""
        with self._lock:
            self._entries[identity] = fingerprint

    def snapshot(self) -> Dict[str, str]:
        """Copy of all entries (safe to read without the lock)."""
        with self._lock:
            return dict(self._entries)

    def persist(self, path: Path) -> None:
        persist_hash_cache(path, self.snapshot())

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
