"""Tests for the migration engine and aggregate store."""

import asyncio
from uuid import uuid4
from unittest.mock import AsyncMock, MagicMock

import pytest
from prometheus_client import REGISTRY

from snaps.db.models import PendingSubmission, utcnow
from snaps.errors import StorageUnavailable
from snaps.services.migration import MigrationEngine, MigrationResult
from snaps.verification import tokens


async def _pending(pending_store, url="blog.com/post", email="a@x.com", weight=5, sid=None):
    created_at = utcnow()
    submission = PendingSubmission(
        id=sid or uuid4().hex,
        raw_url=f"http://{url}",
        canonical_url=url,
        email=email,
        weight=weight,
        created_at=created_at,
        verification_token=tokens.generate(email, created_at, b"s"),
    )
    return await pending_store.add(submission)


@pytest.mark.asyncio
async def test_migrate_moves_submission_into_aggregates(
    migration_engine, pending_store, aggregate_store
):
    submission = await _pending(pending_store, weight=5)

    result = await migration_engine.migrate(submission.id)

    assert result is MigrationResult.MIGRATED
    assert await pending_store.get(submission.id) is None
    assert await aggregate_store.get_total("blog.com/post") == 5
    history = await aggregate_store.get_history("a@x.com")
    assert [(h.canonical_url, h.weight) for h in history] == [("blog.com/post", 5)]
    assert await aggregate_store.list_intents() == []


@pytest.mark.asyncio
async def test_migrate_twice_counts_once(migration_engine, pending_store, aggregate_store):
    submission = await _pending(pending_store, weight=7)

    assert await migration_engine.migrate(submission.id) is MigrationResult.MIGRATED
    assert (
        await migration_engine.migrate(submission.id)
        is MigrationResult.ALREADY_MIGRATED_OR_UNKNOWN
    )
    assert await aggregate_store.get_total("blog.com/post") == 7


@pytest.mark.asyncio
async def test_unknown_id_is_not_an_error(migration_engine):
    assert await migration_engine.migrate("nope") is MigrationResult.ALREADY_MIGRATED_OR_UNKNOWN


@pytest.mark.asyncio
async def test_concurrent_migrations_have_one_winner(
    migration_engine, pending_store, aggregate_store
):
    submission = await _pending(pending_store, weight=9)

    results = await asyncio.gather(
        *[migration_engine.migrate(submission.id) for _ in range(5)]
    )

    assert results.count(MigrationResult.MIGRATED) == 1
    assert results.count(MigrationResult.ALREADY_MIGRATED_OR_UNKNOWN) == 4
    assert await aggregate_store.get_total("blog.com/post") == 9
    assert len(await aggregate_store.get_history("a@x.com")) == 1


@pytest.mark.asyncio
async def test_aggregate_matches_history_across_users(
    migration_engine, pending_store, aggregate_store
):
    submissions = [
        await _pending(pending_store, email="a@x.com", weight=5, sid="s1"),
        await _pending(pending_store, email="b@x.com", weight=11, sid="s2"),
        await _pending(pending_store, email="a@x.com", weight=2, sid="s3"),
        await _pending(pending_store, url="other.com", email="a@x.com", weight=4, sid="s4"),
    ]
    for submission in submissions:
        await migration_engine.migrate(submission.id)

    assert await aggregate_store.get_total("blog.com/post") == 18
    assert await aggregate_store.get_total("other.com") == 4

    history_a = await aggregate_store.get_history("a@x.com")
    history_b = await aggregate_store.get_history("b@x.com")
    # Migration order is preserved
    assert [(h.canonical_url, h.weight) for h in history_a] == [
        ("blog.com/post", 5),
        ("blog.com/post", 2),
        ("other.com", 4),
    ]
    per_url = sum(
        h.weight for h in history_a + history_b if h.canonical_url == "blog.com/post"
    )
    assert per_url == 18


@pytest.mark.asyncio
async def test_interrupted_migration_is_replayed_once(
    migration_engine, pending_store, aggregate_store
):
    submission = await _pending(pending_store, weight=6)

    # Removal committed, then the process died before the aggregate writes
    intent = await pending_store.take_for_migration(submission.id)
    assert intent is not None
    assert await aggregate_store.get_total("blog.com/post") == 0

    # The submission cannot be migrated again
    assert (
        await migration_engine.migrate(submission.id)
        is MigrationResult.ALREADY_MIGRATED_OR_UNKNOWN
    )

    assert await migration_engine.replay_pending_intents() == 1
    assert await migration_engine.replay_pending_intents() == 0
    assert await aggregate_store.get_total("blog.com/post") == 6


@pytest.mark.asyncio
async def test_applying_a_retired_intent_is_a_no_op(pending_store, aggregate_store):
    submission = await _pending(pending_store, weight=3)
    intent = await pending_store.take_for_migration(submission.id)

    assert await aggregate_store.apply_intent(intent) is True
    assert await aggregate_store.apply_intent(intent) is False
    assert await aggregate_store.get_total("blog.com/post") == 3


@pytest.mark.asyncio
async def test_failed_writes_leave_intent_for_replay(pending_store, aggregate_store):
    submission = await _pending(pending_store, weight=4)
    flaky = MagicMock(wraps=aggregate_store)
    flaky.apply_intent = AsyncMock(side_effect=StorageUnavailable("db went away"))
    engine = MigrationEngine(pending_store, flaky)

    with pytest.raises(StorageUnavailable):
        await engine.migrate(submission.id)

    assert await pending_store.get(submission.id) is None
    assert len(await aggregate_store.list_intents()) == 1

    recovered = MigrationEngine(pending_store, aggregate_store)
    assert await recovered.replay_pending_intents() == 1
    assert await aggregate_store.get_total("blog.com/post") == 4


@pytest.mark.asyncio
async def test_failed_removal_keeps_submission_pending(pending_store, aggregate_store):
    submission = await _pending(pending_store, weight=4)
    broken = MagicMock(wraps=pending_store)
    broken.take_for_migration = AsyncMock(side_effect=StorageUnavailable("timeout"))
    engine = MigrationEngine(broken, aggregate_store)

    with pytest.raises(StorageUnavailable):
        await engine.migrate(submission.id)

    assert await pending_store.get(submission.id) is not None
    assert await aggregate_store.get_total("blog.com/post") == 0

    # A later retry succeeds
    retry = MigrationEngine(pending_store, aggregate_store)
    assert await retry.migrate(submission.id) is MigrationResult.MIGRATED


def _counted() -> float:
    return REGISTRY.get_sample_value("snaps_counted_total") or 0.0


@pytest.mark.asyncio
async def test_weight_counted_once_when_replay_applies_intent_first(
    pending_store, aggregate_store
):
    submission = await _pending(pending_store, weight=8)
    replayer = MigrationEngine(pending_store, aggregate_store)

    async def replay_then_apply(intent):
        # The scheduled replay claims the intent between removal and writes
        assert await replayer.replay_pending_intents() == 1
        return await aggregate_store.apply_intent(intent)

    racing = MagicMock(wraps=aggregate_store)
    racing.apply_intent = AsyncMock(side_effect=replay_then_apply)
    engine = MigrationEngine(pending_store, racing)
    before = _counted()

    assert await engine.migrate(submission.id) is MigrationResult.MIGRATED

    assert _counted() - before == 8
    assert await aggregate_store.get_total("blog.com/post") == 8
