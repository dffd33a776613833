"""Progress value codec.

Admins enter progress as an integer percentage; the request tables persist
it as a fraction in ``progress_project``.  Older writers stored whole
percentages (``45``) in the same column and the untouched column default is
``1``, so decoding has to disambiguate.
"""

import math
from typing import Any, Optional

from nephra.review.errors import ReviewValidationError

__all__ = [
    "MIN_DISPLAY_PERCENT",
    "MAX_PERCENT",
    "decode_progress",
    "encode_progress",
    "coerce_percent",
    "round_half_up",
]

MIN_DISPLAY_PERCENT = 1
MAX_PERCENT = 100


def round_half_up(value: float) -> int:
    """Round like ``Math.round`` for the non-negative values seen here."""
    return int(math.floor(value + 0.5))


def _as_number(raw: Any) -> Optional[float]:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        number = float(raw)
    elif isinstance(raw, str):
        try:
            number = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def decode_progress(raw: Any, has_notes: bool) -> int:
    """Return the display percentage (1..100) for a stored progress value.

    Rules, in order:

    * absent value -> 1 (legacy default, not a real 0%)
    * exactly ``1`` with no progress notes -> 1 (the never-updated sentinel)
    * greater than 1 -> already a percentage, rounded
    * otherwise a fraction, multiplied by 100 and rounded

    The result is clamped to ``[1, 100]``.
    """
    number = _as_number(raw)
    if number is None:
        percent = MIN_DISPLAY_PERCENT
    elif number == 1 and not has_notes:
        percent = MIN_DISPLAY_PERCENT
    elif number > 1:
        percent = round_half_up(number)
    else:
        percent = round_half_up(number * 100)
    return max(MIN_DISPLAY_PERCENT, min(MAX_PERCENT, percent))


def encode_progress(percent: float) -> float:
    """Convert a percentage to the stored fraction, clamping to ``[0, 100]``."""
    clamped = max(0.0, min(float(MAX_PERCENT), float(percent)))
    return clamped / MAX_PERCENT


def coerce_percent(value: Any) -> float:
    """Validate a caller-supplied percentage.

    Accepts ints, floats and numeric strings.  Range is not checked here;
    :func:`encode_progress` clamps.

    Raises:
        ReviewValidationError: If the value is missing or not a finite number.
    """
    if value is None or isinstance(value, bool):
        raise ReviewValidationError("percent", "Progress percent is required")
    number = _as_number(value)
    if number is None:
        raise ReviewValidationError(
            "percent", f"Progress percent must be a number, got {value!r}"
        )
    return number
