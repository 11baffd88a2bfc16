"""Backend layer: collaborator interfaces + Appwrite and in-memory sets; factories for each."""
from __future__ import annotations

from dataclasses import dataclass

from pushfanout.backend.appwrite import (
    AppwriteAuditStore,
    AppwriteClient,
    AppwriteDirectory,
    AppwriteInventory,
    AppwritePushDelivery,
)
from pushfanout.backend.base import AuditStore, Directory, Inventory, PushDelivery
from pushfanout.backend.memory import (
    InMemoryAuditStore,
    InMemoryDirectory,
    InMemoryInventory,
    InMemoryPushDelivery,
)
from pushfanout.config import AppConfig


@dataclass
class Backend:
    """The four collaborators one service instance talks to."""

    directory: Directory
    inventory: Inventory
    delivery: PushDelivery
    audit: AuditStore


def appwrite_backend(config: AppConfig) -> Backend:
    client = AppwriteClient(config)
    database_id = config.effective_database_id
    return Backend(
        directory=AppwriteDirectory(client, database_id, config.users_collection_id),
        inventory=AppwriteInventory(client),
        delivery=AppwritePushDelivery(client),
        audit=AppwriteAuditStore(client, database_id, config.notifications_collection_id),
    )


def memory_backend(config: AppConfig) -> Backend:
    return Backend(
        directory=InMemoryDirectory(),
        inventory=InMemoryInventory(),
        delivery=InMemoryPushDelivery(),
        audit=InMemoryAuditStore(),
    )


__all__ = [
    "AuditStore",
    "Backend",
    "Directory",
    "Inventory",
    "PushDelivery",
    "appwrite_backend",
    "memory_backend",
]
