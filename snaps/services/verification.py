"""Verification service: authenticate a link and trigger migration."""

import logging
from enum import Enum

from snaps import metrics
from snaps.services.migration import MigrationEngine, MigrationResult
from snaps.store.aggregate import AggregateStore
from snaps.store.pending import PendingStore
from snaps.verification.tokens import tokens_match

logger = logging.getLogger(__name__)


class VerifyResult(Enum):
    """Outcomes of a verification request."""
    SUCCESS = "success"
    INVALID_ID = "invalid_id"
    INVALID_TOKEN = "invalid_token"
    ALREADY_USED_OR_UNKNOWN = "already_used_or_unknown"


class VerificationService:
    """
    Checks a presented token against a pending submission.

    The lookup and comparison are read-only; the only state change goes
    through ``MigrationEngine.migrate``, so with any number of concurrent
    valid requests exactly one reports SUCCESS.
    """

    def __init__(
        self,
        pending: PendingStore,
        aggregates: AggregateStore,
        engine: MigrationEngine,
    ):
        self.pending = pending
        self.aggregates = aggregates
        self.engine = engine

    async def verify(self, submission_id: str | None, presented_token: str | None) -> VerifyResult:
        """
        Verify a submission and migrate it on success.

        Args:
            submission_id: Id from the verification link
            presented_token: Key from the verification link

        Returns:
            VerifyResult outcome; only SUCCESS changes the aggregates

        Raises:
            StorageUnavailable: On storage failure; the request may be retried
        """
        result = await self._verify(submission_id, presented_token)
        metrics.verifications_total.labels(result=result.value).inc()
        return result

    async def _verify(self, submission_id: str | None, presented_token: str | None) -> VerifyResult:
        if not submission_id:
            return VerifyResult.INVALID_ID

        submission = await self.pending.get(submission_id)
        if submission is None:
            if await self.aggregates.has_migrated(submission_id):
                logger.info(f"Verification for already migrated submission {submission_id}")
                return VerifyResult.ALREADY_USED_OR_UNKNOWN
            logger.info(f"Verification for unknown submission {submission_id}")
            return VerifyResult.INVALID_ID

        if not tokens_match(presented_token, submission.verification_token):
            logger.warning(f"Verification token mismatch for submission {submission_id}")
            return VerifyResult.INVALID_TOKEN

        outcome = await self.engine.migrate(submission_id)
        if outcome is MigrationResult.ALREADY_MIGRATED_OR_UNKNOWN:
            return VerifyResult.ALREADY_USED_OR_UNKNOWN
        return VerifyResult.SUCCESS
