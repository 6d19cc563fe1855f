"""Fire-and-forget notifications posted by the dealer for the host application."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class DealerNotification(StrEnum):
    CURRENT_LOCATION = "current_location"
    LOCATION_UPDATES = "location_updates"
    ERROR = "error"
    AUTHORIZATION_CHANGED = "authorization_changed"
    AUTHORIZATION_REQUESTED = "authorization_requested"


class NotificationSink(ABC):
    """Write-only destination for dealer notifications."""

    @abstractmethod
    def post(self, name: DealerNotification, payload: dict[str, Any]) -> None:
        ...


class LoggingNotificationSink(NotificationSink):
    """Post every notification to the ``location_dealer.notifications`` logger."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    def post(self, name: DealerNotification, payload: dict[str, Any]) -> None:
        logger.log(self.level, "%s %s", name, payload)
