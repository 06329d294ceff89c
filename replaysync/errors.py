"""Exceptions raised by the sync core and its collaborators."""

from typing import Optional


class ReplaySyncError(Exception):
    """Base class for all replaysync errors."""


class ConfigError(ReplaySyncError):
    """Required connection or credential configuration is missing or invalid."""


class HashCacheCorruptError(ReplaySyncError):
    """A hash cache line could not be split into identity and fingerprint."""

    def __init__(self, line_number: int, line: str) -> None:
        super().__init__(f"Malformed hash cache line {line_number}: {line!r}")
        self.line_number = line_number
        self.line = line


class LocalFileError(ReplaySyncError):
    """A local replay file could not be read. Aborts the run."""

    def __init__(self, path: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"Cannot read {path}: {cause}")
        self.path = path
        self.cause = cause


class ReplayParseError(ReplaySyncError):
    """Replay bytes are truncated or not in the .osr layout."""


class ObjectStoreError(ReplaySyncError):
    """Upload to the object store failed."""


class MetadataStoreError(ReplaySyncError):
    """Reading from or writing to the metadata database failed."""
