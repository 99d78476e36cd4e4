"""Transient user notifications (severity + message only, no rendering)."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

Severity = Literal["info", "success", "warning", "error"]

AUTO_DISMISS_SECONDS = 2.0
HISTORY_LIMIT = 50
_AUTO_DISMISS_SEVERITIES = {"info", "success"}


@dataclass(frozen=True)
class Notification:
    severity: Severity
    message: str
    created_at: float = 0.0

    @property
    def auto_dismiss_seconds(self) -> float | None:
        """Seconds until auto-dismiss, ``None`` when it waits for acknowledgement."""
        if self.severity in _AUTO_DISMISS_SEVERITIES:
            return AUTO_DISMISS_SECONDS
        return None

    def expired(self, now: float) -> bool:
        timeout = self.auto_dismiss_seconds
        return timeout is not None and (now - self.created_at) >= timeout


class NotificationCenter:
    """Holds the single notification currently shown to the user."""

    def __init__(self, monotonic: Callable[[], float] = time.monotonic, history_limit: int = HISTORY_LIMIT) -> None:
        self._monotonic = monotonic
        self._current: Notification | None = None
        # Most recent last; older entries fall off once the limit is reached.
        self.history: deque[Notification] = deque(maxlen=history_limit)

    @property
    def current(self) -> Notification | None:
        return self._current

    def push(self, severity: Severity, message: str) -> Notification:
        notification = Notification(severity=severity, message=message, created_at=self._monotonic())
        self._current = notification
        self.history.append(notification)
        return notification

    def dismiss(self) -> None:
        self._current = None

    def expire(self, now: float | None = None) -> bool:
        """Drop the current notification if its auto-dismiss time passed."""
        if self._current is None:
            return False
        if self._current.expired(self._monotonic() if now is None else now):
            self._current = None
            return True
        return False


__all__ = ["Severity", "Notification", "NotificationCenter", "AUTO_DISMISS_SECONDS", "HISTORY_LIMIT"]
