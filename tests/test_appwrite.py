"""Tests for pushfanout/backend/appwrite.py.

All HTTP calls go through a mocked requests.Session; no server needed.
"""
from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
import requests

from pushfanout.backend.appwrite import (
    PAGE_SIZE,
    AppwriteAuditStore,
    AppwriteClient,
    AppwriteDirectory,
    AppwriteError,
    AppwriteInventory,
    AppwritePushDelivery,
    query,
)
from pushfanout.config import AppConfig
from pushfanout.errors import AuditError, DeliveryError, DirectoryError, InventoryError
from pushfanout.models import NotificationRecord
from tests.conftest import NOW


def _response(status: int = 200, data=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.content = b"" if data is None else json.dumps(data).encode()
    resp.text = resp.content.decode()
    resp.json.return_value = data
    return resp


def _client(*responses) -> tuple[AppwriteClient, MagicMock]:
    session = MagicMock()
    session.headers = {}
    session.request.side_effect = list(responses)
    config = AppConfig(endpoint="https://aw.example.com/v1/", project_id="proj", api_key="key", timeout=3)
    return AppwriteClient(config, session=session), session


# ===========================================================================
# Client
# ===========================================================================

class TestClient:
    def test_headers_and_url(self):
        client, session = _client(_response(data={"ok": True}))

        assert client.request("GET", "/health") == {"ok": True}
        assert session.headers["X-Appwrite-Project"] == "proj"
        assert session.headers["X-Appwrite-Key"] == "key"
        args, kwargs = session.request.call_args
        assert args == ("GET", "https://aw.example.com/v1/health")
        assert kwargs["timeout"] == 3

    def test_error_message_from_body(self):
        client, _ = _client(_response(401, {"message": "Invalid API key", "code": 401}))

        with pytest.raises(AppwriteError) as exc:
            client.request("GET", "/users")
        assert str(exc.value) == "Invalid API key"
        assert exc.value.code == 401

    def test_transport_error(self):
        client, _ = _client(requests.ConnectionError("refused"))
        with pytest.raises(AppwriteError, match="refused"):
            client.request("GET", "/users")

    def test_paginate_follows_cursor(self):
        first = [{"$id": f"d{i}"} for i in range(PAGE_SIZE)]
        client, session = _client(
            _response(data={"documents": first}),
            _response(data={"documents": [{"$id": "last"}]}),
        )

        docs = client.paginate("/docs", "documents")

        assert len(docs) == PAGE_SIZE + 1
        second_queries = session.request.call_args_list[1].kwargs["params"]["queries[]"]
        assert query("cursorAfter", values=[f"d{PAGE_SIZE - 1}"]) in second_queries


def test_query_encoding():
    assert json.loads(query("greaterThan", "lastLoginAt", ["2025-05-25T12:00:00.000Z"])) == {
        "method": "greaterThan",
        "attribute": "lastLoginAt",
        "values": ["2025-05-25T12:00:00.000Z"],
    }


# ===========================================================================
# Collaborators
# ===========================================================================

class TestCollaborators:
    def test_directory(self):
        client, session = _client(_response(data={"documents": [{"$id": "u1"}, {"$id": "u2"}]}))
        directory = AppwriteDirectory(client, "db", "users")

        assert directory.find_user_ids("lastLoginAt", NOW) == {"u1", "u2"}
        args, kwargs = session.request.call_args
        assert args[1].endswith("/databases/db/collections/users/documents")
        assert query("greaterThan", "lastLoginAt", ["2025-06-01T12:00:00.000Z"]) in kwargs["params"]["queries[]"]

    def test_directory_error(self):
        client, _ = _client(_response(500, {"message": "down"}))
        with pytest.raises(DirectoryError):
            AppwriteDirectory(client, "db", "users").find_user_ids("lastLoginAt", NOW)

    def test_inventory_flattens_user_targets(self):
        users = [
            {"$id": "u1", "targets": [{"$id": "t1", "userId": "u1", "providerType": "push"}]},
            {"$id": "u2", "targets": [{"$id": "e2", "providerType": "email"}]},
            {"$id": "u3"},
        ]
        client, _ = _client(_response(data={"users": users}))

        targets = AppwriteInventory(client).list_targets()

        assert [(t.id, t.provider_type, t.user_id) for t in targets] == [
            ("t1", "push", "u1"),
            ("e2", "email", "u2"),
        ]

    def test_inventory_error(self):
        client, _ = _client(_response(503, {"message": "unavailable"}))
        with pytest.raises(InventoryError, match="unavailable"):
            AppwriteInventory(client).list_targets()

    def test_inventory_transport_error_is_wrapped(self):
        client, _ = _client(requests.ConnectionError("refused"))
        with pytest.raises(InventoryError, match="refused"):
            AppwriteInventory(client).list_targets()

    def test_push_submission(self):
        client, session = _client(_response(201, {"$id": "msg-1"}))

        delivery_id = AppwritePushDelivery(client).submit("msg-1", "T", "B", ["t1", "t2"], {"type": "general"})

        assert delivery_id == "msg-1"
        args, kwargs = session.request.call_args
        assert args == ("POST", "https://aw.example.com/v1/messaging/messages/push")
        assert kwargs["json"] == {
            "messageId": "msg-1",
            "title": "T",
            "body": "B",
            "topics": [],
            "users": [],
            "targets": ["t1", "t2"],
            "data": {"type": "general"},
            "draft": False,
        }

    def test_push_error(self):
        client, _ = _client(_response(400, {"message": "Invalid targets"}))
        with pytest.raises(DeliveryError, match="Invalid targets"):
            AppwritePushDelivery(client).submit("m", "T", "B", ["t1"], {})

    def test_audit_write(self):
        client, session = _client(_response(201, {"$id": "rec-1"}))
        record = NotificationRecord(
            id="rec-1",
            title="T",
            body="B",
            type="general",
            sent_by="Admin",
            sent_by_id="admin",
            is_global=True,
            sent_at="2025-06-01T12:00:00.000Z",
            target_count=2,
            message_id="msg-1",
            audience="all",
        )

        assert AppwriteAuditStore(client, "db", "notifications").write(record) == "rec-1"
        body = session.request.call_args.kwargs["json"]
        assert body["documentId"] == "rec-1"
        assert body["data"]["targetCount"] == 2

    def test_audit_error(self):
        client, _ = _client(_response(404, {"message": "Collection not found"}))
        record = MagicMock()
        record.id = "r"
        record.to_document.return_value = {}
        with pytest.raises(AuditError):
            AppwriteAuditStore(client, "db", "missing").write(record)
