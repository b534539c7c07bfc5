"""Pending submission store."""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from snaps.db.models import MigrationIntent, PendingSubmission
from snaps.errors import StorageUnavailable

logger = logging.getLogger(__name__)


class PendingStore:
    """
    Holds unverified submissions keyed by submission id.

    Every method runs in its own short transaction so that no session is
    held open while a request waits on other I/O.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add(self, submission: PendingSubmission) -> PendingSubmission:
        """Persist a new pending submission."""
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    session.add(submission)
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist pending submission: {e}")
            raise StorageUnavailable("Could not store submission") from e
        return submission

    async def get(self, submission_id: str) -> PendingSubmission | None:
        """Read a pending submission without consuming it."""
        try:
            async with self.session_factory() as session:
                return await session.get(PendingSubmission, submission_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load pending submission: {e}")
            raise StorageUnavailable("Could not load submission") from e

    async def take_for_migration(self, submission_id: str) -> MigrationIntent | None:
        """
        Atomically remove a pending submission and record a migration intent.

        The conditional ``DELETE ... RETURNING`` is the only place a pending
        row leaves the store, so at most one caller ever receives it. The
        intent is inserted in the same transaction, so a committed removal is
        always durably followed by its aggregate writes or a replay.

        Args:
            submission_id: Id of the submission to remove

        Returns:
            The intent describing the removed submission, or None if no
            pending row existed

        Raises:
            StorageUnavailable: If the transaction failed; the row stays pending
        """
        stmt = (
            delete(PendingSubmission)
            .where(PendingSubmission.id == submission_id)
            .returning(
                PendingSubmission.canonical_url,
                PendingSubmission.email,
                PendingSubmission.weight,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    row = (await session.execute(stmt)).one_or_none()
                    if row is None:
                        return None
                    intent = MigrationIntent(
                        submission_id=submission_id,
                        canonical_url=row.canonical_url,
                        email=row.email,
                        weight=row.weight,
                    )
                    session.add(intent)
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove pending submission for migration: {e}")
            raise StorageUnavailable("Could not migrate submission") from e
        return intent

    async def expire_older_than(self, cutoff: datetime) -> int:
        """Delete pending submissions created before the cutoff."""
        stmt = (
            delete(PendingSubmission)
            .where(PendingSubmission.created_at < cutoff)
            .returning(PendingSubmission.id)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    expired = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to expire pending submissions: {e}")
            raise StorageUnavailable("Could not expire submissions") from e
        return len(expired)

    async def count(self) -> int:
        """Number of submissions waiting for verification."""
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(PendingSubmission))
            return result.scalar_one()
