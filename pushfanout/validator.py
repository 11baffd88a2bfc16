"""Request validator: raw trigger body -> NotificationRequest."""
from __future__ import annotations

import json
from collections.abc import Container, Mapping
from typing import Any

from pushfanout.errors import MalformedInput, MissingField, UnsupportedAudience
from pushfanout.models import DEFAULT_TYPE, Audience, NotificationRequest

INVALID_JSON = "Invalid JSON in request body"
MISSING_FIELDS = "Missing required fields: title and body"


def _decode(raw: Any) -> dict[str, Any]:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedInput(INVALID_JSON)
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise MalformedInput(INVALID_JSON)
    if not isinstance(raw, Mapping):
        raise MalformedInput(INVALID_JSON)
    return dict(raw)


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedInput(f"Field '{key}' must be a string")
    return value


def _parse_audience(data: dict[str, Any], known_audiences: Container[str]) -> Audience:
    tag = (_optional_str(data, "audience") or "").strip()
    if not tag or tag == "all":
        return Audience.all()
    if tag == "specific":
        user_ids = data.get("userIds")
        if user_ids is None:
            return Audience.specific([])
        if not isinstance(user_ids, list) or not all(isinstance(u, str) for u in user_ids):
            raise MalformedInput("Field 'userIds' must be a list of strings")
        return Audience.specific(user_ids)
    if tag in known_audiences:
        return Audience.dynamic(tag)
    raise UnsupportedAudience(tag)


def parse_request(raw: Any, known_audiences: Container[str] = ()) -> NotificationRequest:
    """Parse and validate a raw trigger body (str, bytes or mapping).

    Raises MalformedInput when the body is not a JSON object of the expected
    shape, MissingField when title or body is empty, and UnsupportedAudience
    (a MalformedInput) for audience tags that are neither shortcuts nor in ``known_audiences``.
    """
    data = _decode(raw)

    title = _optional_str(data, "title")
    body = _optional_str(data, "body")
    if not title or not title.strip() or not body or not body.strip():
        raise MissingField(MISSING_FIELDS)

    custom_data = data.get("data")
    if custom_data is None:
        custom_data = {}
    elif not isinstance(custom_data, Mapping):
        raise MalformedInput("Field 'data' must be an object")

    return NotificationRequest(
        title=title,
        body=body,
        audience=_parse_audience(data, known_audiences),
        type=(_optional_str(data, "type") or "").strip() or DEFAULT_TYPE,
        custom_data=dict(custom_data),
    )
