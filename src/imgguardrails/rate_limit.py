"""Fixed-window per-user rate limiting for the check endpoint."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict

from imgguardrails.config import settings

log = logging.getLogger(__name__)


@dataclass
class RateLimitRecord:
    count: int
    reset_time: float


class RateLimiter:
    """
    Grants ``max_requests`` calls per ``window_seconds`` to each user key.

    Windows are fixed: the first call after ``reset_time`` opens a new window
    and resets the counter to 1. Callers without a user id share one bucket
    keyed by ``anonymous_user_id``.
    """

    def __init__(
        self,
        max_requests: int = settings.rate_limit_max_requests,
        window_seconds: float = settings.rate_limit_window_seconds,
        *,
        anonymous_user_id: str = settings.anonymous_user_id,
        sweep_threshold: int = settings.rate_limit_sweep_threshold,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.anonymous_user_id = anonymous_user_id
        self._sweep_threshold = sweep_threshold
        self._clock = clock
        self._records: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def key_for(self, user_id: str | None) -> str:
        return user_id or self.anonymous_user_id

    def allow(self, user_id: str | None) -> bool:
        key = self.key_for(user_id)
        with self._lock:
            now = self._clock()
            record = self._records.get(key)

            if record is None or now > record.reset_time:
                if record is None and len(self._records) >= self._sweep_threshold:
                    self._sweep_locked(now)
                self._records[key] = RateLimitRecord(count=1, reset_time=now + self.window_seconds)
                return True

            if record.count >= self.max_requests:
                log.warning("rate limit exceeded | user=%s count=%d", key, record.count)
                return False

            record.count += 1
            return True

    def get(self, user_id: str | None) -> RateLimitRecord | None:
        with self._lock:
            record = self._records.get(self.key_for(user_id))
            if record is None:
                return None
            return RateLimitRecord(count=record.count, reset_time=record.reset_time)

    def sweep(self) -> int:
        """Drop records whose window has already closed."""
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, record in self._records.items() if now > record.reset_time]
        for key in expired:
            del self._records[key]
        if expired:
            log.debug("rate limit sweep | removed=%d remaining=%d", len(expired), len(self._records))
        return len(expired)

    def reset(self) -> None:
        with self._lock:
            self._records.clear()
