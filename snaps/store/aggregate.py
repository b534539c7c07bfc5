"""Aggregate counts and per-user history."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snaps.db.models import (
    AggregateCount,
    MigrationIntent,
    UserHistory,
    UserHistoryEntry,
    utcnow,
)
from snaps.errors import StorageUnavailable

logger = logging.getLogger(__name__)

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(session: AsyncSession):
    """Dialect-specific INSERT supporting ON CONFLICT."""
    dialect = session.bind.dialect.name
    try:
        return _INSERTS[dialect]
    except KeyError:
        raise NotImplementedError(f"Upserts are not supported on {dialect}") from None


class AggregateStore:
    """
    Holds cumulative snap counts per canonical URL and per-user history.

    Both are only ever written through ``apply_intent``, which increments by
    amount and appends, never sets absolute values.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def apply_intent(self, intent: MigrationIntent) -> bool:
        """
        Apply a migration intent to the aggregates and retire it.

        The intent row is deleted in the same transaction as the writes, so an
        intent that was already applied (by a concurrent replay, say) is
        skipped rather than counted twice.

        Args:
            intent: Intent produced by the pending store

        Returns:
            True if the writes were applied, False if the intent was already gone

        Raises:
            StorageUnavailable: If the transaction failed; the intent remains
        """
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    claimed = (
                        await session.execute(
                            delete(MigrationIntent)
                            .where(MigrationIntent.submission_id == intent.submission_id)
                            .returning(MigrationIntent.submission_id)
                            .execution_options(synchronize_session=False)
                        )
                    ).one_or_none()
                    if claimed is None:
                        return False

                    await self._increment(session, intent.canonical_url, intent.weight)
                    history_id = await self._history_id(session, intent.email)
                    session.add(
                        UserHistoryEntry(
                            history_id=history_id,
                            submission_id=intent.submission_id,
                            canonical_url=intent.canonical_url,
                            weight=intent.weight,
                        )
                    )
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to apply migration for submission {intent.submission_id}: {e}"
            )
            raise StorageUnavailable("Could not update aggregates") from e
        return True

    async def _increment(self, session: AsyncSession, canonical_url: str, weight: int) -> None:
        insert = _insert_for(session)
        now = utcnow()
        stmt = insert(AggregateCount).values(
            canonical_url=canonical_url,
            total_snaps=weight,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[AggregateCount.canonical_url],
            set_={
                "total_snaps": AggregateCount.total_snaps + weight,
                "updated_at": now,
            },
        )
        await session.execute(stmt)

    async def _history_id(self, session: AsyncSession, email: str) -> int:
        insert = _insert_for(session)
        await session.execute(
            insert(UserHistory)
            .values(email=email, created_at=utcnow())
            .on_conflict_do_nothing(index_elements=[UserHistory.email])
        )
        result = await session.execute(
            select(UserHistory.id).where(UserHistory.email == email)
        )
        return result.scalar_one()

    async def get_total(self, canonical_url: str) -> int:
        """Total snaps for a canonical URL, 0 if none were ever counted."""
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(AggregateCount.total_snaps).where(
                        AggregateCount.canonical_url == canonical_url
                    )
                )
                return result.scalar_one_or_none() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to read aggregate count: {e}")
            raise StorageUnavailable("Could not read snaps") from e

    async def has_migrated(self, submission_id: str) -> bool:
        """Whether a submission was already removed for migration (applied or not)."""
        try:
            async with self.session_factory() as session:
                if await session.get(MigrationIntent, submission_id) is not None:
                    return True
                result = await session.execute(
                    select(UserHistoryEntry.id)
                    .where(UserHistoryEntry.submission_id == submission_id)
                    .limit(1)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            logger.error(f"Failed to check migration state: {e}")
            raise StorageUnavailable("Could not check submission") from e

    async def get_history(self, email: str) -> list[UserHistoryEntry]:
        """Migrated entries for a user, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(UserHistoryEntry)
                .join(UserHistory, UserHistoryEntry.history_id == UserHistory.id)
                .where(UserHistory.email == email)
                .order_by(UserHistoryEntry.id.asc())
            )
            return list(result.scalars().all())

    async def list_intents(self, limit: int = 100) -> list[MigrationIntent]:
        """Outstanding intents, oldest first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(MigrationIntent)
                .order_by(MigrationIntent.created_at.asc())
                .limit(limit)
            )
            return list(result.scalars().all())
