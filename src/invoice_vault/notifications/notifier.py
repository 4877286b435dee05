"""
Side-channel notifications.

Notifications are fire-and-forget: nothing here may raise into the
pipeline, and a missing notification tool simply means no notification.
"""

import logging
import shutil
import subprocess
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """What a notification reports; maps to a sound/urgency."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    SUMMARY = "SUMMARY"


# macOS system sounds per kind
_MACOS_SOUNDS = {
    NotificationKind.SUCCESS: "Glass",
    NotificationKind.FAILURE: "Basso",
    NotificationKind.SUMMARY: "Hero",
}


class Notifier(ABC):
    """Narrow notification capability injected into the batch driver."""

    @abstractmethod
    def notify(self, title: str, message: str, kind: NotificationKind) -> None:
        """Deliver a notification. Must never raise."""
        pass


class NullNotifier(Notifier):
    """Discards every notification."""

    def notify(self, title: str, message: str, kind: NotificationKind) -> None:
        logger.debug("Notification suppressed: %s - %s", title, message)


@dataclass
class SentNotification:
    title: str
    message: str
    kind: NotificationKind


@dataclass
class RecordingNotifier(Notifier):
    """Keeps notifications in memory (tests, dry runs)."""

    sent: list[SentNotification] = field(default_factory=list)

    def notify(self, title: str, message: str, kind: NotificationKind) -> None:
        self.sent.append(SentNotification(title=title, message=message, kind=kind))

    def of_kind(self, kind: NotificationKind) -> list[SentNotification]:
        return [n for n in self.sent if n.kind == kind]


def _applescript_string(value: str) -> str:
    """Quote a value as an AppleScript string literal."""
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


class DesktopNotifier(Notifier):
    """
    Native desktop notifications.

    - macOS: osascript "display notification"
    - Linux: notify-send, when installed
    - Anything else: logged at DEBUG only
    """

    def __init__(self, platform: str | None = None):
        self.platform = platform or sys.platform

    def build_command(self, title: str, message: str, kind: NotificationKind) -> list[str] | None:
        """Command line for the current platform, or None if unsupported."""
        if self.platform == "darwin":
            script = (
                f"display notification {_applescript_string(message)} "
                f"with title {_applescript_string(title)} "
                f"sound name {_applescript_string(_MACOS_SOUNDS[kind])}"
            )
            return ["osascript", "-e", script]

        if self.platform.startswith("linux") and shutil.which("notify-send"):
            urgency = "critical" if kind == NotificationKind.FAILURE else "normal"
            return ["notify-send", "--urgency", urgency, title, message]

        return None

    def notify(self, title: str, message: str, kind: NotificationKind) -> None:
        command = self.build_command(title, message, kind)
        if command is None:
            logger.debug("No notification facility on %s: %s - %s", self.platform, title, message)
            return

        try:
            # Not waited on; the pipeline never depends on delivery
            subprocess.Popen(
                command,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("Notification failed (%s): %s", command[0], e)
