"""Delivery dispatcher: build one delivery request and submit it once."""
from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from pushfanout.backend.base import PushDelivery
from pushfanout.errors import DeliveryFailed
from pushfanout.models import DeliveryRequest, NotificationRequest
from pushfanout.timeutil import isoformat, utcnow

logger = logging.getLogger(__name__)

RESERVED_KEYS = ("type", "timestamp", "audience")


def new_message_id(now: datetime | None = None) -> str:
    """Return ``push-<epoch ms>-<16 hex>``; at most 36 chars, a valid Appwrite id."""
    now = now or utcnow()
    return f"push-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:16]}"


def build_payload(request: NotificationRequest, timestamp: str) -> dict[str, Any]:
    """Custom data overlaid by the reserved keys; reserved keys always win."""
    payload: dict[str, Any] = {k: v for k, v in request.custom_data.items() if k not in RESERVED_KEYS}
    payload.update(
        {
            "type": request.type,
            "timestamp": timestamp,
            "audience": request.audience.tag,
        }
    )
    return payload


class DeliveryDispatcher:
    def __init__(
        self,
        delivery: PushDelivery,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[datetime], str] = new_message_id,
    ) -> None:
        self.delivery = delivery
        self.clock = clock
        self.id_factory = id_factory

    def build(self, request: NotificationRequest, target_ids: Sequence[str]) -> DeliveryRequest:
        now = self.clock()
        return DeliveryRequest(
            message_id=self.id_factory(now),
            title=request.title,
            body=request.body,
            target_ids=tuple(dict.fromkeys(target_ids)),
            payload=build_payload(request, isoformat(now)),
        )

    def dispatch(self, delivery_request: DeliveryRequest) -> str:
        """Submit exactly once; return the delivery id or raise DeliveryFailed."""
        logger.info(
            "Sending push notification with messageId: %s to %s target(s)",
            delivery_request.message_id,
            len(delivery_request.target_ids),
        )
        logger.debug("Target ids: %s payload: %s", delivery_request.target_ids, delivery_request.payload)
        try:
            delivery_id = self.delivery.submit(
                delivery_request.message_id,
                delivery_request.title,
                delivery_request.body,
                list(delivery_request.target_ids),
                delivery_request.payload,
            )
        except Exception as e:
            raise DeliveryFailed(str(e)) from e
        logger.info("Push notification sent successfully: %s", delivery_id)
        return delivery_id
