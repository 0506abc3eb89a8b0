"""
Time source for screening bookkeeping.

All persisted timestamps are naive UTC, matching the Column defaults.
Anything that schedules work takes a clock callable so tests can pin time.
"""
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
