"""
Notification Collaborator

Fire-and-forget messages to users. A failed notification never fails the
operation that triggered it.
"""

import abc
import enum
from dataclasses import dataclass
from typing import List, Optional

from campus.common.logger import app_logger

logger = app_logger.getChild("collaborators.notifications")


class NotificationKind(enum.Enum):
    """Events that produce a notification."""
    PUBLISHED = "published"
    SUBMITTED = "submitted"
    GRADED = "graded"


class Notifier(abc.ABC):
    """Abstract notification contract."""

    @abc.abstractmethod
    async def notify(self, user_id: str, kind: NotificationKind, message: str) -> None:
        """Deliver a message to a user."""
        pass


class LoggingNotifier(Notifier):
    """Writes notifications to the application log."""

    async def notify(self, user_id: str, kind: NotificationKind, message: str) -> None:
        logger.info(f"Notify {user_id} [{kind.value}]: {message}")


@dataclass
class SentNotification:
    user_id: str
    kind: NotificationKind
    message: str


class RecordingNotifier(Notifier):
    """Keeps every notification in memory; used by tests."""

    def __init__(self):
        self.sent: List[SentNotification] = []

    async def notify(self, user_id: str, kind: NotificationKind, message: str) -> None:
        self.sent.append(SentNotification(user_id, kind, message))

    def for_user(self, user_id: str) -> List[SentNotification]:
        return [n for n in self.sent if n.user_id == user_id]


async def notify_safely(
    notifier: Optional[Notifier],
    user_id: str,
    kind: NotificationKind,
    message: str
) -> bool:
    """
    Send a notification, logging and swallowing any failure.

    Returns:
        True if the notifier accepted the message
    """
    if notifier is None:
        return False
    try:
        await notifier.notify(user_id, kind, message)
        return True
    except Exception as e:
        logger.warning(f"Notification {kind.value} to {user_id} failed: {e}")
        return False
