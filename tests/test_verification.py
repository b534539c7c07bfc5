"""Tests for the verification service."""

import asyncio

import pytest

from snaps.services.submission import SubmissionService
from snaps.services.verification import VerificationService, VerifyResult

SECRET = b"test-secret"


@pytest.fixture
def submissions(pending_store, mailer) -> SubmissionService:
    return SubmissionService(
        pending_store, mailer, secret=SECRET, public_base_url="http://localhost"
    )


@pytest.fixture
def verifier(pending_store, aggregate_store, migration_engine) -> VerificationService:
    return VerificationService(pending_store, aggregate_store, migration_engine)


@pytest.mark.asyncio
async def test_correct_token_succeeds(submissions, verifier, aggregate_store):
    submission = await submissions.submit("http://blog.com/post/", 5, "a@x.com")

    result = await verifier.verify(submission.id, submission.verification_token)

    assert result is VerifyResult.SUCCESS
    assert await aggregate_store.get_total("blog.com/post") == 5


@pytest.mark.asyncio
async def test_wrong_token_changes_nothing(submissions, verifier, pending_store, aggregate_store):
    submission = await submissions.submit("http://blog.com/post/", 5, "a@x.com")

    result = await verifier.verify(submission.id, "wrong")

    assert result is VerifyResult.INVALID_TOKEN
    assert await pending_store.get(submission.id) is not None
    assert await aggregate_store.get_total("blog.com/post") == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("token", [None, ""])
async def test_missing_token_is_invalid(submissions, verifier, token):
    submission = await submissions.submit("http://blog.com/post/", 5, "a@x.com")
    assert await verifier.verify(submission.id, token) is VerifyResult.INVALID_TOKEN


@pytest.mark.asyncio
@pytest.mark.parametrize("submission_id", [None, "", "does-not-exist"])
async def test_unknown_id_is_invalid(verifier, submission_id):
    assert await verifier.verify(submission_id, "anything") is VerifyResult.INVALID_ID


@pytest.mark.asyncio
async def test_token_of_another_submission_is_rejected(submissions, verifier):
    first = await submissions.submit("http://a.com/x", 5, "a@x.com")
    second = await submissions.submit("http://a.com/x", 5, "b@x.com")

    result = await verifier.verify(first.id, second.verification_token)

    assert result is VerifyResult.INVALID_TOKEN


@pytest.mark.asyncio
async def test_reverification_after_success(submissions, verifier, aggregate_store):
    submission = await submissions.submit("http://blog.com/post", 8, "a@x.com")

    assert await verifier.verify(submission.id, submission.verification_token) is VerifyResult.SUCCESS
    second = await verifier.verify(submission.id, submission.verification_token)

    assert second is VerifyResult.ALREADY_USED_OR_UNKNOWN
    assert await aggregate_store.get_total("blog.com/post") == 8


@pytest.mark.asyncio
async def test_concurrent_verification_counts_once(submissions, verifier, aggregate_store):
    submission = await submissions.submit("http://blog.com/post", 12, "a@x.com")

    results = await asyncio.gather(
        *[verifier.verify(submission.id, submission.verification_token) for _ in range(4)]
    )

    assert results.count(VerifyResult.SUCCESS) == 1
    assert results.count(VerifyResult.ALREADY_USED_OR_UNKNOWN) == 3
    assert await aggregate_store.get_total("blog.com/post") == 12


@pytest.mark.asyncio
async def test_lost_race_reports_already_used(submissions, pending_store, aggregate_store, migration_engine):
    """A request that passed the lookup but lost the removal reports ALREADY_USED_OR_UNKNOWN."""
    submission = await submissions.submit("http://blog.com/post", 2, "a@x.com")

    class RacingEngine:
        async def migrate(self, submission_id):
            # Another request consumes the submission between lookup and migration
            await migration_engine.migrate(submission_id)
            return await migration_engine.migrate(submission_id)

    verifier = VerificationService(pending_store, aggregate_store, RacingEngine())
    result = await verifier.verify(submission.id, submission.verification_token)

    assert result is VerifyResult.ALREADY_USED_OR_UNKNOWN
    assert await aggregate_store.get_total("blog.com/post") == 2
