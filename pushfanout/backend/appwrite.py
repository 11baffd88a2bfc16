"""Appwrite REST implementations of the collaborators."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any

import requests

from pushfanout.backend.base import AuditStore, Directory, Inventory, PushDelivery
from pushfanout.config import AppConfig
from pushfanout.errors import (
    AuditError,
    CollaboratorError,
    DeliveryError,
    DirectoryError,
    InventoryError,
)
from pushfanout.models import DeviceTarget, NotificationRecord
from pushfanout.timeutil import isoformat

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class AppwriteError(CollaboratorError):
    """Transport or API error from Appwrite; ``code`` is the HTTP status if any."""

    kind = "AppwriteError"

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


def query(method: str, attribute: str | None = None, values: list[Any] | None = None) -> str:
    """Encode one Appwrite query (JSON syntax)."""
    q: dict[str, Any] = {"method": method}
    if attribute is not None:
        q["attribute"] = attribute
    if values is not None:
        q["values"] = values
    return json.dumps(q, separators=(",", ":"))


class AppwriteClient:
    """Thin JSON client over requests.Session with the server-key headers."""

    def __init__(self, config: AppConfig, session: requests.Session | None = None) -> None:
        self.endpoint = config.endpoint.rstrip("/")
        self.timeout = config.timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "X-Appwrite-Project": config.project_id,
                "X-Appwrite-Key": config.api_key,
                "Content-Type": "application/json",
            }
        )

    def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.endpoint}{path}"
        try:
            resp = self.session.request(method, url, params=params, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise AppwriteError(f"Appwrite request failed: {e}") from e
        if resp.status_code >= 400:
            message = resp.text[:500]
            try:
                data = resp.json()
                if isinstance(data, dict) and data.get("message"):
                    message = str(data["message"])
            except ValueError:
                pass
            logger.error("Appwrite %s %s failed: status=%s message=%s", method, path, resp.status_code, message)
            raise AppwriteError(message, code=resp.status_code)
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as e:
            raise AppwriteError(f"Appwrite returned invalid JSON for {path}") from e
        if not isinstance(data, dict):
            raise AppwriteError(f"Appwrite returned unexpected payload for {path}")
        return data

    def paginate(self, path: str, key: str, queries: list[str] | None = None) -> list[dict[str, Any]]:
        """Collect every item under ``key`` using limit + cursorAfter pages."""
        items: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            page_queries = list(queries or []) + [query("limit", values=[PAGE_SIZE])]
            if cursor:
                page_queries.append(query("cursorAfter", values=[cursor]))
            data = self.request("GET", path, params={"queries[]": page_queries})
            page = data.get(key) or []
            items.extend(page)
            if len(page) < PAGE_SIZE:
                return items
            cursor = page[-1].get("$id")
            if not cursor:
                return items


class AppwriteDirectory(Directory):
    """Users collection documents with timestamp attributes such as lastLoginAt."""

    def __init__(self, client: AppwriteClient, database_id: str, collection_id: str) -> None:
        self.client = client
        self.path = f"/databases/{database_id}/collections/{collection_id}/documents"

    def find_user_ids(self, attribute: str, threshold: datetime) -> set[str]:
        try:
            docs = self.client.paginate(
                self.path,
                "documents",
                [query("greaterThan", attribute, [isoformat(threshold)])],
            )
        except AppwriteError as e:
            raise DirectoryError(str(e)) from e
        return {doc["$id"] for doc in docs if doc.get("$id")}


class AppwriteInventory(Inventory):
    """Every user's messaging targets, flattened."""

    def __init__(self, client: AppwriteClient) -> None:
        self.client = client

    def list_targets(self) -> list[DeviceTarget]:
        try:
            users = self.client.paginate("/users", "users")
        except AppwriteError as e:
            raise InventoryError(str(e)) from e
        targets = []
        for user in users:
            for t in user.get("targets") or []:
                if not t.get("$id"):
                    continue
                targets.append(
                    DeviceTarget(
                        id=t["$id"],
                        provider_type=t.get("providerType") or "",
                        user_id=t.get("userId") or user.get("$id"),
                    )
                )
        logger.info("Found %s targets for %s users", len(targets), len(users))
        return targets


class AppwritePushDelivery(PushDelivery):
    def __init__(self, client: AppwriteClient) -> None:
        self.client = client

    def submit(
        self,
        message_id: str,
        title: str,
        body: str,
        target_ids: list[str],
        payload: dict[str, Any],
    ) -> str:
        try:
            data = self.client.request(
                "POST",
                "/messaging/messages/push",
                body={
                    "messageId": message_id,
                    "title": title,
                    "body": body,
                    "topics": [],
                    "users": [],
                    "targets": list(target_ids),
                    "data": payload,
                    "draft": False,
                },
            )
        except AppwriteError as e:
            raise DeliveryError(str(e)) from e
        return data.get("$id") or message_id


class AppwriteAuditStore(AuditStore):
    def __init__(self, client: AppwriteClient, database_id: str, collection_id: str) -> None:
        self.client = client
        self.path = f"/databases/{database_id}/collections/{collection_id}/documents"

    def write(self, record: NotificationRecord) -> str:
        try:
            data = self.client.request(
                "POST",
                self.path,
                body={"documentId": record.id, "data": record.to_document()},
            )
        except AppwriteError as e:
            raise AuditError(str(e)) from e
        return data.get("$id") or record.id
