"""
Observability Module
====================

User-facing notification sinks.

Components:
    - Notifier: Protocol every sink implements
    - LoggingNotifier: Log-backed sink
    - NotificationFeed: Bounded history polled by the API and WebSocket

Notifications are PURELY DESCRIPTIVE. Nothing in capture or encoding
depends on whether a notification was displayed.
"""

from quickrewind.observability.notifier import (
    LoggingNotifier,
    NotificationFeed,
    Notifier,
)

__all__ = [
    "Notifier",
    "LoggingNotifier",
    "NotificationFeed",
]
