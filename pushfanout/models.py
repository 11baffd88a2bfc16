"""Core data models: requests, targets, deliveries, audit records, results."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

PUSH_PROVIDER = "push"
DEFAULT_TYPE = "general"


@dataclass(frozen=True)
class Audience:
    """Closed audience variant: all, specific(user_ids) or dynamic(tag)."""

    kind: Literal["all", "specific", "dynamic"]
    tag: str
    user_ids: tuple[str, ...] = ()

    @classmethod
    def all(cls) -> Audience:
        return cls(kind="all", tag="all")

    @classmethod
    def specific(cls, user_ids: list[str] | tuple[str, ...]) -> Audience:
        return cls(kind="specific", tag="specific", user_ids=tuple(dict.fromkeys(user_ids)))

    @classmethod
    def dynamic(cls, tag: str) -> Audience:
        return cls(kind="dynamic", tag=tag)


@dataclass
class NotificationRequest:
    """Validated incoming notification request."""

    title: str
    body: str
    audience: Audience
    type: str = DEFAULT_TYPE
    custom_data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DeviceTarget:
    """An addressable device endpoint owned by zero or one user."""

    id: str
    provider_type: str
    user_id: str | None = None


@dataclass
class DeliveryRequest:
    """One push submission: unique message id, content, targets, payload."""

    message_id: str
    title: str
    body: str
    target_ids: tuple[str, ...]
    payload: dict[str, Any]


@dataclass
class NotificationRecord:
    """Audit row describing a delivery, for the user notification page."""

    id: str
    title: str
    body: str
    type: str
    sent_by: str
    sent_by_id: str
    is_global: bool
    sent_at: str
    target_count: int
    message_id: str
    audience: str

    def to_document(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "type": self.type,
            "sentBy": self.sent_by,
            "sentById": self.sent_by_id,
            "isGlobal": self.is_global,
            "sentAt": self.sent_at,
            "targetCount": self.target_count,
            "messageId": self.message_id,
            "audience": self.audience,
        }


@dataclass
class OperationResult:
    """Outcome of one notification trigger; always produced, even on failure.

    ``error_kind`` is not part of the wire shape; it lets callers tell
    validation failures, NoTargets and fatal collaborator errors apart.
    """

    success: bool
    target_count: int = 0
    message_id: str | None = None
    targets: list[str] | None = None
    error: str | None = None
    message: str | None = None
    error_kind: str | None = None

    @classmethod
    def ok(cls, message_id: str, targets: list[str]) -> OperationResult:
        return cls(
            success=True,
            target_count=len(targets),
            message_id=message_id,
            targets=list(targets),
            message=f"Notification sent to {len(targets)} devices",
        )

    @classmethod
    def failure(cls, error: str, kind: str) -> OperationResult:
        return cls(success=False, target_count=0, error=error, error_kind=kind)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "targetCount": self.target_count}
        if self.success:
            out["messageId"] = self.message_id
            out["targets"] = list(self.targets or [])
            out["message"] = self.message
        else:
            out["error"] = self.error
        return out
