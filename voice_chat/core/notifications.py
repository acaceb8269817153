"""User-facing notifications: error toasts and dismissible banners."""

from dataclasses import dataclass
from typing import Callable, List, Optional
import structlog


logger = structlog.get_logger()


@dataclass
class Notification:
    kind: str  # "error", "unexpected_error" or "banner"
    message: str
    title: Optional[str] = None


class NotificationService:
    """Collects notifications and forwards them to the hosting UI."""

    def __init__(self):
        self.notifications: List[Notification] = []
        self.banner: Optional[str] = None
        self._listeners: List[Callable[[Notification], None]] = []

    def add_listener(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def _publish(self, notification: Notification) -> None:
        self.notifications.append(notification)
        for listener in self._listeners:
            try:
                listener(notification)
            except Exception as e:
                logger.error("Notification listener failed", error=str(e))

    def handle_unexpected_error(self, error: BaseException, message: str) -> None:
        """Report a failure that has no classified, user-readable reason."""
        logger.error(
            "Unexpected error",
            error=str(error),
            error_type=type(error).__name__,
            user_message=message,
        )
        self._publish(Notification("unexpected_error", message))

    def handle_error(self, message: str, title: Optional[str] = None) -> None:
        logger.warning("Error notification", message=message, title=title)
        self._publish(Notification("error", message, title))

    def show_banner(self, message: str) -> None:
        """Show a persistent inline banner until dismissed."""
        self.banner = message
        self._publish(Notification("banner", message))

    def dismiss_banner(self) -> None:
        self.banner = None
