"""In-memory collaborators, used by tests and dry-run mode."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from pushfanout.backend.base import AuditStore, Directory, Inventory, PushDelivery
from pushfanout.errors import AuditError, DeliveryError, DirectoryError, InventoryError
from pushfanout.models import DeviceTarget, NotificationRecord

logger = logging.getLogger(__name__)


class InMemoryDirectory(Directory):
    """Users keyed by id, each a dict of attribute -> datetime."""

    def __init__(self, users: dict[str, dict[str, datetime]] | None = None) -> None:
        self.users = dict(users or {})
        self.fail_with: Exception | None = None
        self.calls: list[tuple[str, datetime]] = []

    def find_user_ids(self, attribute: str, threshold: datetime) -> set[str]:
        self.calls.append((attribute, threshold))
        if self.fail_with is not None:
            raise DirectoryError(str(self.fail_with)) from self.fail_with
        return {
            uid
            for uid, attrs in self.users.items()
            if attrs.get(attribute) is not None and attrs[attribute] > threshold
        }


class InMemoryInventory(Inventory):
    def __init__(self, targets: list[DeviceTarget] | None = None) -> None:
        self.targets = list(targets or [])
        self.fail_with: Exception | None = None
        self.calls = 0

    def list_targets(self) -> list[DeviceTarget]:
        self.calls += 1
        if self.fail_with is not None:
            raise InventoryError(str(self.fail_with)) from self.fail_with
        return list(self.targets)


class InMemoryPushDelivery(PushDelivery):
    """Captures submissions; the delivery id is the message id."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail_with: Exception | None = None

    def submit(
        self,
        message_id: str,
        title: str,
        body: str,
        target_ids: list[str],
        payload: dict[str, Any],
    ) -> str:
        if self.fail_with is not None:
            raise DeliveryError(str(self.fail_with)) from self.fail_with
        self.sent.append(
            {
                "message_id": message_id,
                "title": title,
                "body": body,
                "target_ids": list(target_ids),
                "payload": dict(payload),
            }
        )
        logger.info("In-memory push %s to %s target(s): %r", message_id, len(target_ids), title)
        return message_id

    @property
    def count(self) -> int:
        return len(self.sent)


class InMemoryAuditStore(AuditStore):
    def __init__(self) -> None:
        self.records: dict[str, NotificationRecord] = {}
        self.fail_with: Exception | None = None

    def write(self, record: NotificationRecord) -> str:
        if self.fail_with is not None:
            raise AuditError(str(self.fail_with)) from self.fail_with
        self.records[record.id] = record
        return record.id
