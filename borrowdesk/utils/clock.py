"""Injectable calendar clock.

Every availability computation reads "today" from a ``Clock`` instead of the
operating system so that a test (or an operator replaying a scenario) can pin
and advance the date deterministically.
"""

from __future__ import annotations

from datetime import date, timedelta
from functools import lru_cache
from typing import Optional

from borrowdesk.utils.config import get_settings


class Clock:
    """Mutable "today" shared by the stocks of one process."""

    def __init__(self, today: Optional[date] = None) -> None:
        self._pinned = today

    @property
    def is_pinned(self) -> bool:
        return self._pinned is not None

    def today(self) -> date:
        if self._pinned is not None:
            return self._pinned
        return date.today()

    def set_today(self, value: Optional[date]) -> None:
        """Pin the clock to ``value``; ``None`` follows the system date again."""
        self._pinned = value

    def advance(self, days: int = 1) -> date:
        self._pinned = self.today() + timedelta(days=days)
        return self._pinned


@lru_cache(maxsize=1)
def get_clock() -> Clock:
    return Clock(get_settings().fixed_today)
