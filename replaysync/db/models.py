"""SQLAlchemy model for one uploaded replay, keyed by content fingerprint."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from replaysync.db.session import Base


class ReplayRecord(Base):
    """Replay header fields plus the SHA-256 of the file body (primary key)."""

    __tablename__ = "replays"

    sha256: Mapped[str] = mapped_column(String(64), primary_key=True)  # SHA-256 hex
    mode: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    beatmap_hash: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    player_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    replay_hash: Mapped[str] = mapped_column(String(32), nullable=False)
    count_300: Mapped[int] = mapped_column(Integer, nullable=False)
    count_100: Mapped[int] = mapped_column(Integer, nullable=False)
    count_50: Mapped[int] = mapped_column(Integer, nullable=False)
    count_geki: Mapped[int] = mapped_column(Integer, nullable=False)
    count_katu: Mapped[int] = mapped_column(Integer, nullable=False)
    count_miss: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    max_combo: Mapped[int] = mapped_column(Integer, nullable=False)
    perfect_combo: Mapped[bool] = mapped_column(Boolean, nullable=False)
    mods: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
