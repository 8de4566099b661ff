"""Helpers shared by the domain models."""

from __future__ import annotations

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Timezone-aware current time used for every server-stamped field."""
    return datetime.now(UTC)
