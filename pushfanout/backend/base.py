"""Collaborator abstractions consumed by the core."""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pushfanout.models import DeviceTarget, NotificationRecord


class Directory(ABC):
    """User directory: find users whose timestamp attribute is after a threshold."""

    @abstractmethod
    def find_user_ids(self, attribute: str, threshold: datetime) -> set[str]:
        """Return ids of users with ``attribute`` > ``threshold``; raise DirectoryError."""
        ...


class Inventory(ABC):
    """Device target inventory."""

    @abstractmethod
    def list_targets(self) -> list[DeviceTarget]:
        """Return every registered target.

        Implementations must wrap transport and API failures in InventoryError;
        anything else reaches the service as an unexpected error.
        """
        ...


class PushDelivery(ABC):
    """Push transport: one submission addressed to explicit target ids."""

    @abstractmethod
    def submit(
        self,
        message_id: str,
        title: str,
        body: str,
        target_ids: list[str],
        payload: dict[str, Any],
    ) -> str:
        """Send and return the delivery id; raise DeliveryError."""
        ...


class AuditStore(ABC):
    """Document store for notification history."""

    @abstractmethod
    def write(self, record: NotificationRecord) -> str:
        """Persist record and return its stored id; raise AuditError."""
        ...
