"""FastAPI dependencies."""

from fastapi import Depends, HTTPException, Request, status

from snaps import metrics
from snaps.api.rate_limit import RateLimiter
from snaps.services.submission import SubmissionService
from snaps.services.verification import VerificationService
from snaps.store.aggregate import AggregateStore


def get_submission_service(request: Request) -> SubmissionService:
    """Submission service built by the app lifespan."""
    return request.app.state.submission_service


def get_verification_service(request: Request) -> VerificationService:
    """Verification service built by the app lifespan."""
    return request.app.state.verification_service


def get_aggregate_store(request: Request) -> AggregateStore:
    """Aggregate store built by the app lifespan."""
    return request.app.state.aggregate_store


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


async def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> None:
    """
    Dependency rejecting clients over the submission rate limit.

    Raises:
        HTTPException: 429 if the client is over its limit
    """
    client_key = request.client.host if request.client else "unknown"
    if not await limiter.hit(client_key):
        metrics.rate_limited_total.inc()
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many requests, try again later",
        )
