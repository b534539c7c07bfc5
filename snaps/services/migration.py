"""Exactly-once migration of verified submissions into the aggregates."""

import logging
from enum import Enum

from snaps import metrics
from snaps.errors import StorageUnavailable
from snaps.store.aggregate import AggregateStore
from snaps.store.pending import PendingStore

logger = logging.getLogger(__name__)


class MigrationResult(Enum):
    """Terminal outcomes of a migration."""
    MIGRATED = "migrated"
    ALREADY_MIGRATED_OR_UNKNOWN = "already_migrated_or_unknown"


class MigrationEngine:
    """
    Moves one pending submission into the aggregate store exactly once.

    Step 1 removes the pending row with a conditional delete and records an
    intent in the same transaction. Step 2 applies the increment and the
    history append and retires the intent in a second transaction. A crash
    between the two leaves the intent behind for ``replay_pending_intents``;
    the submission itself can never be removed twice.
    """

    def __init__(self, pending: PendingStore, aggregates: AggregateStore):
        self.pending = pending
        self.aggregates = aggregates

    async def migrate(self, submission_id: str) -> MigrationResult:
        """
        Migrate a submission.

        Args:
            submission_id: Id of the pending submission

        Returns:
            MIGRATED if this call won the removal and the writes committed,
            ALREADY_MIGRATED_OR_UNKNOWN if there was nothing to remove

        Raises:
            StorageUnavailable: On storage failure. If raised before removal the
                submission is still pending; if raised after, the intent is
                replayed later.
        """
        intent = await self.pending.take_for_migration(submission_id)
        if intent is None:
            metrics.migrations_total.labels(result="already_migrated_or_unknown").inc()
            logger.info(f"Nothing to migrate for submission {submission_id}")
            return MigrationResult.ALREADY_MIGRATED_OR_UNKNOWN

        try:
            applied = await self.aggregates.apply_intent(intent)
        except StorageUnavailable:
            metrics.migrations_total.labels(result="deferred").inc()
            logger.warning(
                f"Submission {submission_id} removed but aggregate writes failed; "
                "left for replay"
            )
            raise

        metrics.migrations_total.labels(result="migrated").inc()
        # A concurrent replay may have applied the intent first and counted it
        if applied:
            metrics.snaps_counted_total.inc(intent.weight)
        logger.info(
            f"Migrated submission {submission_id}: +{intent.weight} for {intent.canonical_url}"
        )
        return MigrationResult.MIGRATED

    async def replay_pending_intents(self, limit: int = 100) -> int:
        """
        Re-apply intents whose aggregate writes never committed.

        Returns:
            Number of intents applied by this call
        """
        intents = await self.aggregates.list_intents(limit=limit)
        applied = 0
        for intent in intents:
            try:
                if await self.aggregates.apply_intent(intent):
                    applied += 1
                    metrics.replayed_intents_total.inc()
                    metrics.snaps_counted_total.inc(intent.weight)
            except StorageUnavailable:
                logger.warning(f"Replay of submission {intent.submission_id} failed; will retry")
                break

        if applied:
            logger.info(f"Replayed {applied} interrupted migrations")
        return applied
