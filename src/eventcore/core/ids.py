"""Canonical ID and timestamp factories.

Work items, subscriptions and events all get UUID v4 string ids.
Timestamps are timezone-aware UTC, never naive.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


def new_id() -> str:
    """Generate a new UUID v4 string."""
    return str(uuid.uuid4())


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(timezone.utc)
