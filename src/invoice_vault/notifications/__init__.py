"""
Notification channel.

Provides:
- Notifier: injectable interface used by the batch driver
- DesktopNotifier: macOS / Linux desktop notifications
- NullNotifier, RecordingNotifier: no-op and in-memory implementations
"""

from .notifier import (
    DesktopNotifier,
    NotificationKind,
    Notifier,
    NullNotifier,
    RecordingNotifier,
    SentNotification,
)

__all__ = [
    "DesktopNotifier",
    "NotificationKind",
    "Notifier",
    "NullNotifier",
    "RecordingNotifier",
    "SentNotification",
]
