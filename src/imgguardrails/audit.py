"""Bounded in-memory audit trail of detection decisions."""

from __future__ import annotations

import logging
import threading
from collections import deque
from datetime import datetime, timezone
from itertools import islice
from typing import Callable, List

from imgguardrails.config import settings
from imgguardrails.schemas import AuditLogEntry, AuditStats

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog:
    """
    Append-only ring buffer of :class:`AuditLogEntry` records.

    Once ``capacity`` is reached every append drops the oldest entry, so the
    store always holds the most recent ``capacity`` decisions in insertion
    order. Nothing is persisted; a restart starts from an empty log.
    """

    def __init__(
        self,
        capacity: int = settings.audit_log_capacity,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if capacity <= 0:
            raise ValueError("Audit log capacity must be positive.")
        self._entries: deque[AuditLogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self._clock = clock
        self._last_timestamp: datetime | None = None

    @property
    def capacity(self) -> int:
        return self._entries.maxlen or 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def append(self, entry: AuditLogEntry) -> AuditLogEntry:
        """Stamp ``entry`` with the current time and store it."""
        with self._lock:
            now = self._clock()
            # Timestamps never go backwards, even if the wall clock does.
            if self._last_timestamp is not None and now < self._last_timestamp:
                now = self._last_timestamp
            stamped = entry.model_copy(update={"timestamp": now})
            self._entries.append(stamped)
            self._last_timestamp = now

        log.info(
            "audit | user=%s file=%s nsfw=%s confidence=%.2f error=%s",
            stamped.user_id or "unknown",
            stamped.file_name,
            stamped.is_nsfw,
            stamped.confidence,
            stamped.error,
        )
        return stamped

    def query(self, limit: int = settings.audit_log_default_limit) -> List[AuditLogEntry]:
        """Return up to ``limit`` most recent entries, newest first."""
        if limit <= 0:
            return []
        with self._lock:
            return list(islice(reversed(self._entries), limit))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        log.info("audit log cleared")

    def stats(self) -> AuditStats:
        with self._lock:
            total = len(self._entries)
            blocked = sum(1 for entry in self._entries if entry.is_nsfw)

        return AuditStats(
            total_checks=total,
            blocked_count=blocked,
            allowed_count=total - blocked,
            block_rate=(blocked / total) * 100 if total > 0 else 0.0,
        )
