"""Replay metadata storage: list known fingerprints, upsert one record per fingerprint."""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import ArgumentError, SQLAlchemyError

from replaysync.db.models import ReplayRecord
from replaysync.db.session import Base, make_engine, make_session_factory, session_scope
from replaysync.errors import ConfigError, MetadataStoreError
from replaysync.replay import ReplayInfo

log = logging.getLogger(__name__)


class MetadataStore:
    """Replay records in any SQLAlchemy-supported database."""

    def __init__(self, database_url: str) -> None:
        """Raises ConfigError if database_url is malformed or its driver is not installed."""
        try:
            self._engine = make_engine(database_url)
        except (ArgumentError, ValueError, ImportError) as e:
            raise ConfigError(f"Invalid DATABASE_URL: {e}") from e
        self._sessions = make_session_factory(self._engine)

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            raise MetadataStoreError(f"Could not initialize database: {e}") from e

    def list_all_fingerprints(self) -> List[str]:
        """SHA-256 of every recorded replay."""
        try:
            with session_scope(self._sessions) as session:
                fingerprints = list(session.scalars(select(ReplayRecord.sha256)))
        except SQLAlchemyError as e:
            raise MetadataStoreError(f"Could not list replays: {e}") from e
        log.debug("list_all_fingerprints returned %d items", len(fingerprints))
        return fingerprints

    def upsert_by_fingerprint(self, fingerprint: str, info: ReplayInfo) -> None:
        """Insert the record for fingerprint, or replace its fields if it exists."""
        fields = info.to_dict()
        try:
            with session_scope(self._sessions) as session:
                row = session.get(ReplayRecord, fingerprint)
                if row:
                    for name, value in fields.items():
                        setattr(row, name, value)
                else:
                    session.add(ReplayRecord(sha256=fingerprint, **fields))
        except SQLAlchemyError as e:
            raise MetadataStoreError(f"Could not record replay {fingerprint}: {e}") from e

    def get(self, fingerprint: str) -> Optional[ReplayRecord]:
        """Record for fingerprint, or None."""
        try:
            with session_scope(self._sessions) as session:
                return session.get(ReplayRecord, fingerprint)
        except SQLAlchemyError as e:
            raise MetadataStoreError(f"Could not read replay {fingerprint}: {e}") from e

    def dispose(self) -> None:
        """Close pooled connections."""
        self._engine.dispose()
