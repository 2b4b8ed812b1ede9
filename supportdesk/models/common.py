"""Helpers shared by every model module."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Timezone-aware UTC now, used for every stored timestamp."""
    return datetime.now(timezone.utc)
