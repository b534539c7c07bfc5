"""Snaps: email-verified weighted votes for URLs."""

__version__ = "0.1.0"
