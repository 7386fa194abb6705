"""Monthly call budget with automatic reset when the calendar month rolls over."""
import threading
from datetime import datetime
from typing import Callable

from newsletterbot.core.logging import get_logger
from newsletterbot.core.time import get_current_utc_time, month_key

logger = get_logger(__name__)


class MonthlyRateLimiter:
    """Tracks calls against a fixed monthly budget (UTC months)."""

    def __init__(self, monthly_budget: int, name: str = "api", clock: Callable[[], datetime] = get_current_utc_time):
        if monthly_budget < 0:
            raise ValueError("monthly_budget cannot be negative")
        self.monthly_budget = monthly_budget
        self.name = name
        self._clock = clock
        self._lock = threading.Lock()
        self._calls_this_month = 0
        self._current_month = month_key(clock())

    def _reset_if_new_month(self) -> None:
        current = month_key(self._clock())
        if current != self._current_month:
            self._calls_this_month = 0
            self._current_month = current
            logger.info(f"Rate limiter '{self.name}' reset for new month {current}")

    def can_make_request(self) -> bool:
        with self._lock:
            self._reset_if_new_month()
            return self._calls_this_month < self.monthly_budget

    def record_request(self) -> None:
        with self._lock:
            self._reset_if_new_month()
            self._calls_this_month += 1
            logger.info(f"{self.name} calls this month: {self._calls_this_month}/{self.monthly_budget}")

    def remaining_calls(self) -> int:
        with self._lock:
            self._reset_if_new_month()
            return max(0, self.monthly_budget - self._calls_this_month)
