"""Append-only progress note ledger.

Notes are stored as JSON objects in ``progress_notes``::

    {"note": "Lit review done", "author": "Dr. Rao", "at": "2026-10-01T09:30:00+00:00", "value": 40}

List order is append order, which is chronological.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from nephra.review.progress import MAX_PERCENT, round_half_up

__all__ = ["append_note", "recent_notes", "latest_note_value"]


def append_note(
    notes: Optional[Iterable[dict]],
    note_text: Optional[str],
    author: str,
    percent: float,
    *,
    at: Optional[datetime] = None,
) -> list[dict]:
    """Return a new list with one note appended; ``notes`` is left untouched."""
    stamp = at or datetime.now(timezone.utc)
    value = round_half_up(max(0.0, min(float(MAX_PERCENT), float(percent))))
    text = note_text.strip() if isinstance(note_text, str) else None
    entry = {
        "note": text or None,
        "author": author,
        "at": stamp.isoformat(),
        "value": value,
    }
    return [*(notes or []), entry]


def recent_notes(notes: Optional[Iterable[dict]], n: int) -> list[dict]:
    """Last ``n`` notes, most recent first."""
    if n <= 0 or not notes:
        return []
    ordered = list(notes)
    return list(reversed(ordered[-n:]))


def latest_note_value(notes: Optional[Iterable[dict]]) -> Optional[int]:
    latest = recent_notes(notes, 1)
    if not latest:
        return None
    value: Any = latest[0].get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)
