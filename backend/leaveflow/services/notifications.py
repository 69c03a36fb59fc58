# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from typing import Protocol, runtime_checkable

from pydantic import BaseModel

from leaveflow.models.enums import NotificationType

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    """A message addressed to a single user."""

    user_id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    related_entity_id: uuid.UUID | None = None


@runtime_checkable
class NotificationSink(Protocol):
    """Interface for the notification delivery service."""

    async def send(self, notification: Notification) -> None:
        """Deliver a notification. May raise on delivery failure."""
        ...


class InMemoryNotificationSink:
    """In-memory stub that records every notification it is given."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    async def send(self, notification: Notification) -> None:
        logger.debug("Notification %s -> %s", notification.type, notification.user_id)
        self.sent.append(notification)

    def for_user(self, user_id: uuid.UUID) -> list[Notification]:
        return [n for n in self.sent if n.user_id == user_id]


_notification_sink: NotificationSink = InMemoryNotificationSink()


def get_notification_sink() -> NotificationSink:
    """FastAPI dependency for the notification sink."""
    return _notification_sink


def set_notification_sink(sink: NotificationSink) -> None:
    """Override the sink (for testing or production wiring)."""
    global _notification_sink
    _notification_sink = sink
