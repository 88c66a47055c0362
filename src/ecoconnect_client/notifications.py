import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass
class Notification:
    level: str
    message: str
    created_at: datetime


class Notifier:
    """User-facing outcome messages, kept for the presentation layer to show."""

    def __init__(self, max_items: int = 100) -> None:
        self._items: deque[Notification] = deque(maxlen=max_items)

    def _push(self, level: str, message: str) -> Notification:
        notification = Notification(
            level=level,
            message=message,
            created_at=datetime.now(timezone.utc),
        )
        self._items.append(notification)
        logger.log(_LEVELS[level], "[%s] %s", level, message)
        return notification

    def success(self, message: str) -> Notification:
        return self._push("success", message)

    def error(self, message: str) -> Notification:
        return self._push("error", message)

    def info(self, message: str) -> Notification:
        return self._push("info", message)

    def warning(self, message: str) -> Notification:
        return self._push("warning", message)

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    def messages(self, level: str | None = None) -> list[str]:
        return [
            item.message
            for item in self._items
            if level is None or item.level == level
        ]

    def clear(self) -> None:
        self._items.clear()
