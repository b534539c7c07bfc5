"""Verification link route."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from snaps.api.deps import get_verification_service
from snaps.services.verification import VerificationService, VerifyResult

router = APIRouter(prefix="/verify", tags=["verify"])

# One message for every failure so the response does not reveal queue contents
INVALID_LINK_MESSAGE = "This verification link is invalid or has already been used"


@router.get("")
async def verify_snap(
    submission_id: Optional[str] = Query(None, alias="id"),
    key: Optional[str] = None,
    service: VerificationService = Depends(get_verification_service),
):
    """Confirm a pending submission; it is counted exactly once."""
    result = await service.verify(submission_id, key)
    if result is not VerifyResult.SUCCESS:
        raise HTTPException(status_code=400, detail=INVALID_LINK_MESSAGE)
    return {"status": "verified"}
