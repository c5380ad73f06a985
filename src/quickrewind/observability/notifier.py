"""
Notifiers
=========

Sinks for user-facing notifications.

The capture core reports progress and outcomes through the Notifier
protocol and never renders anything itself. Front-ends (tray icon, toast
helper, the WebSocket feed) decide how to display them.

Implementations:
    - LoggingNotifier: writes each notification to the log
    - NotificationFeed: bounded in-memory history that front-ends poll,
      optionally forwarding to another notifier
"""

import itertools
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, List, Optional, Protocol

from quickrewind.models.notification import Notification, Severity


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """
    Protocol for notification sinks.

    This interface is implemented by:
        - LoggingNotifier (always on)
        - NotificationFeed (API / WebSocket front-ends)
        - Tray front-ends (outside this package)
    """

    def notify(
        self,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> None:
        """
        Deliver one notification.

        Args:
            title: Short headline
            message: Detail text
            severity: info / warning / error
        """
        ...


_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Write notifications to the `quickrewind.notifications` logger."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logging.getLogger("quickrewind.notifications")

    def notify(
        self,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> None:
        self._log.log(_LOG_LEVELS[severity], f"{title}: {message}")


class NotificationFeed:
    """
    Thread-safe bounded notification history.

    Notifications are raised from capture and export threads and read from
    the API's event loop, so every access goes through a lock.

    Attributes:
        history: Maximum notifications retained

    Example:
        feed = NotificationFeed(forward_to=LoggingNotifier())
        feed.notify("GIF Saved!", "Saved: quickrewind-buffer-....gif")

        for note in feed.recent(after=last_seen_id):
            send(note.model_dump(mode="json"))
    """

    def __init__(
        self,
        history: int = 100,
        forward_to: Optional[Notifier] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if history < 1:
            raise ValueError("history must be >= 1")

        self.history = history
        self._forward_to = forward_to
        self._clock = clock
        self._items: Deque[Notification] = deque(maxlen=history)
        self._ids = itertools.count()
        self._lock = threading.Lock()

    def notify(
        self,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> Notification:
        with self._lock:
            note = Notification(
                id=next(self._ids),
                timestamp=self._clock(),
                title=title,
                message=message,
                severity=severity,
            )
            self._items.append(note)

        if self._forward_to is not None:
            self._forward_to.notify(title, message, severity)

        return note

    def recent(self, after: int = -1, limit: Optional[int] = None) -> List[Notification]:
        """
        Notifications with id greater than `after`, oldest first.

        Args:
            after: Last id the caller has already seen (-1 for all)
            limit: Return at most this many of the newest matches
        """
        with self._lock:
            items = [n for n in self._items if n.id > after]
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    @property
    def last_id(self) -> int:
        """Id of the newest notification, -1 when empty."""
        with self._lock:
            return self._items[-1].id if self._items else -1
