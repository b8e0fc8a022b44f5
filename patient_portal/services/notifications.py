from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    message: str
    kind: str  # success | error
    expires_at: float


class NotificationCenter:
    """Holds the single transient toast a view shows; it expires on its own."""

    def __init__(self, timeout: float = 5.0, *, clock: Callable[[], float] | None = None) -> None:
        self._timeout = timeout
        self._clock = clock or time.monotonic
        self._current: Optional[Notification] = None

    def success(self, message: str) -> Notification:
        return self._push(message, "success")

    def error(self, message: str) -> Notification:
        return self._push(message, "error")

    def _push(self, message: str, kind: str) -> Notification:
        notification = Notification(message=message, kind=kind, expires_at=self._clock() + self._timeout)
        log = logger.warning if kind == "error" else logger.info
        log("Notification (%s): %s", kind, message)
        self._current = notification
        return notification

    @property
    def current(self) -> Optional[Notification]:
        if self._current is not None and self._clock() >= self._current.expires_at:
            self._current = None
        return self._current

    def dismiss(self) -> None:
        self._current = None
