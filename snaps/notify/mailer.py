"""Outbound mail transports for verification links."""

import logging
from typing import Protocol

import httpx

from snaps.config import Settings
from snaps.errors import NotificationError

logger = logging.getLogger(__name__)


class Mailer(Protocol):
    """Anything that can deliver an HTML email."""

    async def send(self, to: str, subject: str, html: str) -> None:
        ...

    async def close(self) -> None:
        ...


class HttpMailer:
    """Mail client for a transactional email HTTP API."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        timeout: float = 10.0,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            headers = {}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._http_client = httpx.AsyncClient(timeout=self.timeout, headers=headers)
        return self._http_client

    async def close(self):
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def send(self, to: str, subject: str, html: str) -> None:
        """
        Send one email.

        Raises:
            NotificationError: If the API could not be reached or rejected the message
        """
        client = await self._get_client()
        payload = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
        }
        try:
            response = await client.post(self.api_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise NotificationError(f"Mail API request failed: {e}") from e

        logger.debug(f"Mail API accepted message to {to}")


class LogMailer:
    """Development transport that only logs what would have been sent."""

    async def send(self, to: str, subject: str, html: str) -> None:
        logger.info(f"Mail API not configured; skipping delivery of '{subject}'")

    async def close(self) -> None:
        pass


def build_mailer(settings: Settings) -> Mailer:
    """Pick the mail transport for the configured settings."""
    if not settings.mail_api_url:
        logger.warning("MAIL_API_URL not set, verification emails will not be delivered")
        return LogMailer()
    return HttpMailer(
        api_url=settings.mail_api_url,
        api_key=settings.mail_api_key.get_secret_value(),
        sender=settings.mail_from,
        timeout=settings.mail_timeout_seconds,
    )
