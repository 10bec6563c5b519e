"""Epoch-millisecond helpers shared by tokens, access windows and referrals."""
from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def hours_to_ms(hours: float) -> int:
    return int(hours * HOUR_MS)


def format_remaining(remaining_ms: int | None) -> str:
    """Render a remaining duration as '{h}h {m}m'; None and negatives render as '0h 0m'."""
    if not remaining_ms or remaining_ms < 0:
        return "0h 0m"
    hours, rest = divmod(remaining_ms, HOUR_MS)
    return f"{hours}h {rest // MINUTE_MS}m"
