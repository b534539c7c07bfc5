"""Verification email formatting."""

from html import escape
from urllib.parse import urlencode

VERIFY_SUBJECT = "Confirm your snaps"


def build_verification_link(base_url: str, submission_id: str, token: str) -> str:
    """Absolute link to GET /verify for a submission."""
    query = urlencode({"id": submission_id, "key": token})
    return f"{base_url.rstrip('/')}/verify?{query}"


def format_verification_email(raw_url: str, weight: int, link: str) -> str:
    """
    Render the HTML body of a verification email.

    Args:
        raw_url: URL as submitted
        weight: Number of snaps submitted
        link: Verification link

    Returns:
        HTML string
    """
    noun = "snap" if weight == 1 else "snaps"
    return (
        "<p>Someone (hopefully you) gave "
        f"<strong>{weight} {noun}</strong> to "
        f'<a href="{escape(raw_url, quote=True)}">{escape(raw_url)}</a>.</p>'
        f'<p><a href="{escape(link, quote=True)}">Confirm your {noun}</a></p>'
        "<p>If this wasn't you, ignore this email and nothing will be counted.</p>"
    )
