"""
Notification Feed

The assistant's notification collaborator.  Notices are logged and queued
until the host application drains them into its toast surface.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Protocol

from app.models.schemas import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, description: str = "", variant: str = "default") -> None:
        ...


class NotificationFeed:
    """Bounded in-memory queue of pending notifications."""

    def __init__(self, maxlen: int = 50) -> None:
        self._pending: deque[Notification] = deque(maxlen=maxlen)

    def notify(self, title: str, description: str = "", variant: str = "default") -> None:
        """Queue a notification for the UI."""
        if variant == "destructive":
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        self._pending.append(
            Notification(title=title, description=description, variant=variant)
        )

    def peek(self) -> list[Notification]:
        """Return pending notifications without consuming them."""
        return list(self._pending)

    def drain(self) -> list[Notification]:
        """Return and clear every pending notification."""
        notices = list(self._pending)
        self._pending.clear()
        return notices

    def __len__(self) -> int:
        return len(self._pending)
