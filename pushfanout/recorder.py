"""Notification recorder: best-effort audit write after a successful dispatch."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from pushfanout.backend.base import AuditStore
from pushfanout.models import NotificationRecord, NotificationRequest
from pushfanout.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)


def new_record_id() -> str:
    return uuid.uuid4().hex


class NotificationRecorder:
    """Stores one history row per delivery; never raises."""

    def __init__(
        self,
        store: AuditStore,
        sent_by: str = "Admin",
        sent_by_id: str = "admin",
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        self.store = store
        self.sent_by = sent_by
        self.sent_by_id = sent_by_id
        self.clock = clock
        self.id_factory = id_factory

    def build(self, request: NotificationRequest, delivery_id: str, target_count: int) -> NotificationRecord:
        return NotificationRecord(
            id=self.id_factory(),
            title=request.title,
            body=request.body,
            type=request.type,
            sent_by=self.sent_by,
            sent_by_id=self.sent_by_id,
            is_global=request.audience.kind == "all",
            sent_at=isoformat(self.clock()),
            target_count=target_count,
            message_id=delivery_id,
            audience=request.audience.tag,
        )

    def record(self, request: NotificationRequest, delivery_id: str, target_count: int) -> str | None:
        """Return the stored record id, or None if the write failed."""
        try:
            record = self.build(request, delivery_id, target_count)
            stored_id = self.store.write(record)
        except Exception as e:
            logger.warning("Failed to store notification in database: %s", e)
            return None
        logger.info("Notification stored in database: %s", stored_id)
        return stored_id
