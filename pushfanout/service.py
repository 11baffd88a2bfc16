"""Notification service: validate -> resolve -> select -> dispatch -> record -> respond.

``handle`` never raises. Every path ends in an OperationResult:

- validation errors short-circuit before any collaborator is called;
- an empty target set is the NoTargets outcome (success=False, targetCount=0);
- a failed dispatch is terminal and leaves no audit record;
- a failed audit write is logged and does not change the result.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from pushfanout.audience import AudienceResolver
from pushfanout.backend import Backend
from pushfanout.config import AppConfig
from pushfanout.dispatcher import DeliveryDispatcher
from pushfanout.errors import DeliveryFailed, InventoryError, ValidationError
from pushfanout.models import OperationResult
from pushfanout.recorder import NotificationRecorder
from pushfanout.selector import push_targets, select_targets
from pushfanout.timeutil import utcnow
from pushfanout.validator import parse_request

logger = logging.getLogger(__name__)

NO_TARGETS = "NoTargets"
NO_PUSH_TARGETS = "No push targets found"
NO_MATCHING_TARGETS = "No matching targets found for audience"


class NotificationService:
    def __init__(
        self,
        config: AppConfig,
        backend: Backend,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.backend = backend
        self.resolver = AudienceResolver(backend.directory, config.audiences, clock)
        self.dispatcher = DeliveryDispatcher(backend.delivery, clock)
        self.recorder = NotificationRecorder(
            backend.audit,
            sent_by=config.sent_by,
            sent_by_id=config.sent_by_id,
            clock=clock,
        )

    def handle(self, raw: Any) -> OperationResult:
        """Run one notification trigger end to end."""
        try:
            return self._handle(raw)
        except Exception as e:
            logger.exception("Failed to send push notification: %s", e)
            return OperationResult.failure(str(e), "Unexpected")

    def _handle(self, raw: Any) -> OperationResult:
        try:
            request = parse_request(raw, self.resolver)
        except ValidationError as e:
            logger.error("%s", e)
            return OperationResult.failure(str(e), e.kind)

        logger.info("Sending notification: %s (audience=%s)", request.title, request.audience.tag)

        try:
            inventory = self.backend.inventory.list_targets()
        except InventoryError as e:
            logger.error("Failed to list push targets: %s", e)
            return OperationResult.failure(str(e), e.kind)

        candidates = push_targets(inventory)
        logger.info("Found %s push targets", len(candidates))
        if not candidates:
            return OperationResult.failure(NO_PUSH_TARGETS, NO_TARGETS)

        resolved = None
        if request.audience.kind == "dynamic":
            resolved = self.resolver.resolve(request.audience.tag)

        target_ids = select_targets(candidates, request.audience, resolved)
        logger.info("Selected %s targets for audience: %s", len(target_ids), request.audience.tag)
        if not target_ids:
            return OperationResult.failure(NO_MATCHING_TARGETS, NO_TARGETS)

        delivery_request = self.dispatcher.build(request, target_ids)
        try:
            delivery_id = self.dispatcher.dispatch(delivery_request)
        except DeliveryFailed as e:
            logger.error("Failed to send push notification: %s", e)
            return OperationResult.failure(str(e), e.kind)

        self.recorder.record(request, delivery_id, len(target_ids))
        return OperationResult.ok(delivery_id, list(delivery_request.target_ids))
