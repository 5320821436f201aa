"""ID generation helpers."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import datetime, timezone


def generate_run_id() -> str:
    """Generate a unique run ID.

    Format: YYYYMMDD_HHMMSS_<short_uuid>
    """
    now = datetime.now(timezone.utc)
    short_uuid = uuid.uuid4().hex[:8]
    return f"{now.strftime('%Y%m%d_%H%M%S')}_{short_uuid}"


def unique_ids(ids: Iterable[str]) -> list[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for raw in ids:
        value = (raw or "").strip()
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result
