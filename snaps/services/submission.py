"""Submission service: validate, enqueue, and notify."""

import asyncio
import logging
import re
from typing import Any
from uuid import uuid4

from snaps import metrics
from snaps.db.models import PendingSubmission, utcnow
from snaps.errors import InvalidWeight, MissingEmail, SubmissionError
from snaps.normalize.url import canonicalize
from snaps.notify.formatters import (
    VERIFY_SUBJECT,
    build_verification_link,
    format_verification_email,
)
from snaps.notify.mailer import Mailer
from snaps.store.pending import PendingStore
from snaps.verification import tokens

logger = logging.getLogger(__name__)

MIN_WEIGHT = 1
MAX_WEIGHT = 50

_INTEGER_RE = re.compile(r"[+-]?\d+")


def parse_weight(value: Any) -> int:
    """
    Parse a snap weight from a request value.

    Accepts ints and integer strings in [1, 50]. Bools, floats and
    anything non-numeric are rejected.

    Raises:
        InvalidWeight: If the value is not an integer in range
    """
    if isinstance(value, bool):
        raise InvalidWeight()
    if isinstance(value, int):
        weight = value
    elif isinstance(value, str) and _INTEGER_RE.fullmatch(value.strip()):
        weight = int(value.strip())
    else:
        raise InvalidWeight()

    if not MIN_WEIGHT <= weight <= MAX_WEIGHT:
        raise InvalidWeight()
    return weight


class SubmissionService:
    """Accepts new submissions and sends their verification links."""

    def __init__(
        self,
        pending: PendingStore,
        mailer: Mailer,
        secret: bytes,
        public_base_url: str,
    ):
        self.pending = pending
        self.mailer = mailer
        self._secret = secret
        self.public_base_url = public_base_url
        self._notify_tasks: set[asyncio.Task] = set()

    async def submit(self, raw_url: Any, weight: Any, email: Any) -> PendingSubmission:
        """
        Validate and enqueue a submission.

        Validation order is email, weight, then URL. The record is persisted
        before this returns; the verification email is sent in the background.

        Args:
            raw_url: URL being snapped
            weight: Number of snaps, 1 to 50
            email: Submitter email address

        Returns:
            The persisted pending submission

        Raises:
            MissingEmail, InvalidWeight, InvalidUrl: On validation failure
            StorageUnavailable: If the submission could not be stored
        """
        try:
            if not isinstance(email, str) or not email.strip():
                raise MissingEmail()
            weight = parse_weight(weight)
            canonical_url = canonicalize(raw_url)
        except SubmissionError as e:
            metrics.submissions_total.labels(outcome=type(e).__name__).inc()
            logger.debug(f"Rejected submission: {e.message}")
            raise
        email = email.strip()

        created_at = utcnow()
        submission = PendingSubmission(
            id=uuid4().hex,
            raw_url=raw_url.strip(),
            canonical_url=canonical_url,
            email=email,
            weight=weight,
            created_at=created_at,
            verification_token=tokens.generate(email, created_at, self._secret),
        )
        await self.pending.add(submission)

        metrics.submissions_total.labels(outcome="accepted").inc()
        logger.info(f"Accepted submission {submission.id}: {weight} snaps for {canonical_url}")

        self._schedule_notification(submission)
        return submission

    def _schedule_notification(self, submission: PendingSubmission) -> None:
        task = asyncio.create_task(self._notify(submission))
        self._notify_tasks.add(task)
        task.add_done_callback(self._notify_tasks.discard)

    async def _notify(self, submission: PendingSubmission) -> None:
        link = build_verification_link(
            self.public_base_url, submission.id, submission.verification_token
        )
        html = format_verification_email(submission.raw_url, submission.weight, link)
        try:
            await self.mailer.send(submission.email, VERIFY_SUBJECT, html)
        except Exception as e:
            # Never surfaced to the client; the submission stays pending
            metrics.notifications_total.labels(status="failed").inc()
            logger.error(f"Failed to send verification email for {submission.id}: {e}")
            return

        metrics.notifications_total.labels(status="sent").inc()
        logger.debug(f"Sent verification email for {submission.id} to {submission.email}")

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._notify_tasks:
            await asyncio.gather(*list(self._notify_tasks), return_exceptions=True)
