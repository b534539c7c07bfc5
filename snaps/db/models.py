"""SQLAlchemy database models."""

from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class PendingSubmission(Base):
    """Submission waiting for email verification."""

    __tablename__ = "pending_submissions"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    raw_url: Mapped[str] = mapped_column(Text, nullable=False)
    canonical_url: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    weight: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    verification_token: Mapped[str] = mapped_column(String(128), nullable=False)

    __table_args__ = (
        CheckConstraint("weight >= 1 AND weight <= 50", name="ck_pending_weight_range"),
    )


class MigrationIntent(Base):
    """Removed submission whose aggregate writes have not committed yet."""

    __tablename__ = "migration_intents"

    submission_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    canonical_url: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    weight: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class AggregateCount(Base):
    """Cumulative snaps for a canonical URL."""

    __tablename__ = "aggregate_counts"

    canonical_url: Mapped[str] = mapped_column(Text, primary_key=True)
    total_snaps: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )


class UserHistory(Base):
    """Per-user record of migrated snaps."""

    __tablename__ = "user_histories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    entries: Mapped[list["UserHistoryEntry"]] = relationship(
        "UserHistoryEntry",
        back_populates="history",
        cascade="all, delete-orphan",
        order_by="UserHistoryEntry.id",
    )


class UserHistoryEntry(Base):
    """One migrated submission in a user's history (append-only)."""

    __tablename__ = "user_history_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    history_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("user_histories.id"), nullable=False, index=True
    )
    submission_id: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    canonical_url: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    weight: Mapped[int] = mapped_column(Integer, nullable=False)
    migrated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    # Relationships
    history: Mapped["UserHistory"] = relationship("UserHistory", back_populates="entries")
