"""APScheduler maintenance jobs."""

import logging
from datetime import timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from snaps import metrics
from snaps.config import Settings
from snaps.db.models import utcnow
from snaps.errors import StorageUnavailable
from snaps.services.migration import MigrationEngine
from snaps.store.pending import PendingStore

logger = logging.getLogger(__name__)


async def expire_pending(pending: PendingStore, ttl_hours: int) -> int:
    """
    Delete pending submissions older than the TTL.

    Args:
        pending: Pending submission store
        ttl_hours: Maximum age in hours; <= 0 disables expiry

    Returns:
        Number of submissions removed
    """
    if ttl_hours <= 0:
        return 0

    cutoff = utcnow() - timedelta(hours=ttl_hours)
    try:
        expired = await pending.expire_older_than(cutoff)
    except StorageUnavailable:
        logger.warning("Pending expiry skipped, storage unavailable")
        return 0

    if expired:
        metrics.expired_submissions_total.inc(expired)
        logger.info(f"Expired {expired} unverified submissions older than {ttl_hours}h")
    return expired


async def replay_intents(engine: MigrationEngine) -> int:
    """Finish migrations interrupted after removal."""
    try:
        return await engine.replay_pending_intents()
    except StorageUnavailable:
        logger.warning("Intent replay skipped, storage unavailable")
        return 0


def setup_scheduler(
    settings: Settings,
    pending: PendingStore,
    engine: MigrationEngine,
) -> AsyncIOScheduler:
    """
    Setup and configure APScheduler.

    Jobs:
    - expire_pending every settings.expiry_interval_minutes
    - replay_intents every settings.replay_interval_minutes

    Returns:
        Configured scheduler instance (not started)
    """
    scheduler = AsyncIOScheduler()

    if settings.pending_ttl_hours > 0:
        scheduler.add_job(
            expire_pending,
            IntervalTrigger(minutes=max(1, settings.expiry_interval_minutes)),
            args=[pending, settings.pending_ttl_hours],
            id="expire_pending",
            name="Expire unverified submissions",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )

    scheduler.add_job(
        replay_intents,
        IntervalTrigger(minutes=max(1, settings.replay_interval_minutes)),
        args=[engine],
        id="replay_intents",
        name="Replay interrupted migrations",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )

    logger.info(f"Scheduled {len(scheduler.get_jobs())} maintenance jobs")
    return scheduler
