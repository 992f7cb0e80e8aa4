"""SQLAlchemy ORM models for fetcharr's own bookkeeping tables.

Targets, profiles and history live in the external library; we only persist
what the engine itself owns: the blocklist, search cooldowns and pending
(delayed) releases.
"""

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! Datetimes come back
# naive. ALWAYS run them through this before comparing with datetime.now(UTC),
# otherwise "can't compare offset-naive and offset-aware datetimes".
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class BlocklistModel(Base):
    """One blocked (title, indexer, target) triple. Rows are never updated."""

    __tablename__ = "blocklist"
    __table_args__ = (
        UniqueConstraint("title", "indexer", "target_key", name="uq_blocklist_release_target"),
        Index("ix_blocklist_target_key", "target_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    indexer: Mapped[str] = mapped_column(String(255), nullable=False)
    target_key: Mapped[str] = mapped_column(String(255), nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    protocol: Mapped[str | None] = mapped_column(String(16), nullable=True)
    blocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class SearchCooldownModel(Base):
    """Last search per target, upserted on every search."""

    __tablename__ = "search_cooldowns"

    target_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    last_search_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_eligible_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class PendingReleaseModel(Base):
    """A delayed candidate, stored as JSON so a restart doesn't lose it."""

    __tablename__ = "pending_releases"
    __table_args__ = (
        UniqueConstraint("target_key", "title", "indexer", name="uq_pending_target_release"),
        Index("ix_pending_release_at", "release_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    target_key: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    indexer: Mapped[str] = mapped_column(String(255), nullable=False)
    candidate: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    release_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
