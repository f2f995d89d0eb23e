"""Small shared helpers."""

from datetime import datetime, timezone


def utc_today() -> str:
    """Current UTC calendar day as ``YYYY-MM-DD``."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")
