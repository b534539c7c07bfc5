"""Snap submission and count routes."""

from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, StrictInt

from snaps.api.deps import enforce_rate_limit, get_aggregate_store, get_submission_service
from snaps.errors import InvalidUrl
from snaps.normalize.url import canonicalize
from snaps.services.submission import SubmissionService
from snaps.store.aggregate import AggregateStore

router = APIRouter(prefix="/snap", tags=["snaps"])


class SnapCreate(BaseModel):
    """Request body for a new submission. Field checks happen in the service."""
    url: Optional[str] = None
    snaps: Optional[Union[StrictInt, str]] = None
    email: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class SnapSubmissionResponse(BaseModel):
    id: str
    url: str
    canonical_url: str
    email: str
    snaps: int
    created_at: datetime


class SnapCountResponse(BaseModel):
    url: str
    snaps: int


@router.post(
    "",
    response_model=SnapSubmissionResponse,
    status_code=201,
    dependencies=[Depends(enforce_rate_limit)],
)
async def create_snap(
    body: SnapCreate,
    service: SubmissionService = Depends(get_submission_service),
):
    """Queue a submission and email its verification link."""
    submission = await service.submit(body.url, body.snaps, body.email)
    return SnapSubmissionResponse(
        id=submission.id,
        url=submission.raw_url,
        canonical_url=submission.canonical_url,
        email=submission.email,
        snaps=submission.weight,
        created_at=submission.created_at,
    )


@router.get("", response_model=SnapCountResponse)
async def get_snaps(
    url: Optional[str] = None,
    aggregates: AggregateStore = Depends(get_aggregate_store),
):
    """Verified snap total for a URL."""
    if not url:
        raise InvalidUrl("A url query parameter is required")
    canonical_url = canonicalize(url)
    total = await aggregates.get_total(canonical_url)
    return SnapCountResponse(url=canonical_url, snaps=total)
