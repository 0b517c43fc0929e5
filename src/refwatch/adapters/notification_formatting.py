"""Shared notice rendering helpers.

Keeping rendering here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

from typing import Optional

from refwatch.core.models import Notice


def format_subject(notice: Notice, prefix: Optional[str]) -> str:
    """Return the subject with the configured "[prefix]" marker, if any."""

    if not prefix:
        return notice.subject
    return f"[{prefix}] {notice.subject}"

