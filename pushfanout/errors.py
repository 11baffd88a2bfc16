"""Error taxonomy. Every exception carries a ``kind`` reported in results."""
from __future__ import annotations


class PushFanoutError(Exception):
    """Base class for all push fan-out errors."""

    kind = "Error"


class ConfigError(PushFanoutError, ValueError):
    """Invalid configuration file or environment."""

    kind = "ConfigError"


# Validation: raised before any collaborator is contacted.


class ValidationError(PushFanoutError):
    kind = "ValidationError"


class MalformedInput(ValidationError):
    kind = "MalformedInput"


class MissingField(ValidationError):
    kind = "MissingField"


class UnsupportedAudience(MalformedInput):
    """Audience tag that is neither a shortcut nor a configured rule."""

    kind = "MalformedInput"

    def __init__(self, tag: str) -> None:
        super().__init__(f"Unsupported audience: {tag}")
        self.tag = tag


# Collaborators: raised by backend implementations.


class CollaboratorError(PushFanoutError):
    kind = "CollaboratorError"


class DirectoryError(CollaboratorError):
    kind = "DirectoryError"


class InventoryError(CollaboratorError):
    kind = "InventoryError"


class DeliveryError(CollaboratorError):
    kind = "DeliveryError"


class AuditError(CollaboratorError):
    kind = "AuditError"


class DeliveryFailed(PushFanoutError):
    """Dispatcher wrapper around any push-delivery collaborator failure."""

    kind = "DeliveryError"
