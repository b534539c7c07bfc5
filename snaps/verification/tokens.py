"""Keyed verification tokens for pending submissions."""

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timezone

from pydantic import SecretStr

logger = logging.getLogger(__name__)

TOKEN_LENGTH = hashlib.sha512().digest_size * 2


def _timestamp_key(created_at: datetime) -> str:
    """Stable string form of a timestamp (naive values are taken as UTC)."""
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(timezone.utc).isoformat()


def generate(email: str, created_at: datetime, secret: bytes) -> str:
    """
    Derive the verification token for a submission.

    HMAC-SHA512 over the email and creation time, keyed by the
    process-wide secret. Same inputs always give the same token.

    Args:
        email: Submitter email address
        created_at: Acceptance timestamp of the submission
        secret: Verification secret

    Returns:
        128 character lowercase hex string
    """
    message = f"{email}|{_timestamp_key(created_at)}".encode("utf-8")
    return hmac.new(secret, message, hashlib.sha512).hexdigest()


def tokens_match(presented: str | None, expected: str) -> bool:
    """Constant-time comparison of a presented token against the expected one."""
    if not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def get_signing_key(configured: SecretStr | None) -> bytes:
    """
    Get the key used to sign verification tokens.

    Tokens are stored with their pending submission, so a key generated for
    one process still verifies every link that process issued.

    Args:
        configured: VERIFICATION_SECRET from settings, if any

    Returns:
        Signing key as bytes
    """
    value = configured.get_secret_value() if configured is not None else ""
    if not value:
        logger.warning(
            "VERIFICATION_SECRET not set, generating temporary key "
            "(links will not survive a restart)"
        )
        return secrets.token_bytes(hashlib.sha512().block_size)
    return value.encode("utf-8")
