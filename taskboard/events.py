"""
Notification channel: routes user-visible notifications to subscribers.

The core never queues or persists notifications; whatever the presentation
layer subscribes decides how they are shown.
"""
import logging
from typing import Callable, List

from .schema import Notification, Severity

logger = logging.getLogger(__name__)


def log_notification(notification: Notification) -> None:
    """Default sink: write the notification to the log."""
    message = notification.title
    if notification.description:
        message = f"{notification.title}: {notification.description}"
    if notification.severity == Severity.ERROR:
        logger.error(message)
    else:
        logger.info(message)


class NotificationChannel:
    """Fans notifications out to registered callbacks."""

    def __init__(self):
        self.subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> Callable[[], None]:
        """Register a callback. Returns a function that removes it again."""
        self.subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self.subscribers:
                self.subscribers.remove(callback)

        return unsubscribe

    def notify(self, notification: Notification) -> None:
        """Deliver to every subscriber; a failing callback does not stop the rest."""
        for callback in list(self.subscribers):
            try:
                callback(notification)
            except Exception as e:
                logger.error(f"Error in notification callback: {e}")

    def __call__(self, notification: Notification) -> None:
        self.notify(notification)

    def success(self, title: str, description: str = "") -> None:
        self.notify(Notification(title, description, Severity.NORMAL))

    def error(self, title: str, description: str = "") -> None:
        self.notify(Notification(title, description, Severity.ERROR))
