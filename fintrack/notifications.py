"""
Transient user notifications.

The ledger reports every outcome twice: as a typed LedgerResult to the caller
and as a short human-readable notification the UI can show and forget.
"""

from collections import deque
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog
from pydantic import BaseModel, Field


class NotificationLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    level: NotificationLevel
    title: str
    message: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationCenter:
    """
    Bounded queue of recent notifications.

    Views call drain() to take everything posted since their last look.
    """

    def __init__(self, history: int = 50):
        self._items: deque[Notification] = deque(maxlen=history)
        self._logger = structlog.get_logger(__name__)

    def post(
        self,
        level: NotificationLevel,
        title: str,
        message: Optional[str] = None,
    ) -> Notification:
        notification = Notification(level=level, title=title, message=message or title)
        self._items.append(notification)
        self._logger.debug("notification_posted", level=level.value, title=title)
        return notification

    def success(self, title: str, message: Optional[str] = None) -> Notification:
        return self.post(NotificationLevel.SUCCESS, title, message)

    def warning(self, title: str, message: Optional[str] = None) -> Notification:
        return self.post(NotificationLevel.WARNING, title, message)

    def error(self, title: str, message: Optional[str] = None) -> Notification:
        return self.post(NotificationLevel.ERROR, title, message)

    def peek(self) -> list[Notification]:
        return list(self._items)

    def drain(self) -> list[Notification]:
        items = list(self._items)
        self._items.clear()
        return items
