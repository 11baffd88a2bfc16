"""Configuration: YAML file with ${ENV_VAR} placeholders, plus environment fallbacks.

Built once at process start and passed to the service; nothing in the core
reads the environment on its own.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from pushfanout.audience import DEFAULT_AUDIENCES, AudienceRule
from pushfanout.errors import ConfigError

DEFAULT_ENDPOINT = "https://cloud.appwrite.io/v1"

# Match ${VAR_NAME} in string values
ENV_PLACEHOLDER_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def resolve_env(raw: Any) -> Any:
    """Replace ${ENV_VAR} in strings (recursively) with os.environ values.

    Unset variables resolve to an empty string.
    """
    if isinstance(raw, str):
        return ENV_PLACEHOLDER_RE.sub(lambda m: os.environ.get(m.group(1), ""), raw)
    if isinstance(raw, dict):
        return {k: resolve_env(v) for k, v in raw.items()}
    if isinstance(raw, list):
        return [resolve_env(v) for v in raw]
    return raw


@dataclass(frozen=True)
class AppConfig:
    endpoint: str = DEFAULT_ENDPOINT
    project_id: str = ""
    api_key: str = ""
    database_id: str = ""
    users_collection_id: str = "users"
    notifications_collection_id: str = "notifications"
    sent_by: str = "Admin"
    sent_by_id: str = "admin"
    timeout: float = 10.0
    audiences: dict[str, AudienceRule] = field(default_factory=lambda: dict(DEFAULT_AUDIENCES))
    schedules: list[dict[str, Any]] = field(default_factory=list)

    @property
    def effective_database_id(self) -> str:
        """The database id, defaulting to the project id."""
        return self.database_id or self.project_id


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, "").strip() or default


def config_from_env() -> AppConfig:
    """Build a config from Appwrite function runtime variables only."""
    return AppConfig(
        endpoint=_env("APPWRITE_FUNCTION_API_ENDPOINT", DEFAULT_ENDPOINT),
        project_id=_env("APPWRITE_FUNCTION_PROJECT_ID"),
        api_key=_env("APPWRITE_API_KEY"),
        database_id=_env("APPWRITE_DATABASE_ID"),
        users_collection_id=_env("APPWRITE_USERS_COLLECTION_ID", "users"),
        notifications_collection_id=_env("APPWRITE_NOTIFICATIONS_COLLECTION_ID", "notifications"),
    )


def _parse_audiences(raw: Any) -> dict[str, AudienceRule]:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("config: audiences must be a dict")
    rules = dict(DEFAULT_AUDIENCES)
    for tag, entry in raw.items():
        if tag in ("all", "specific"):
            raise ConfigError(f"config: audience '{tag}' is reserved")
        if not isinstance(entry, dict) or not entry.get("attribute"):
            raise ConfigError(f"config: audiences.{tag} missing 'attribute'")
        try:
            window = int(entry.get("window_days"))
        except (TypeError, ValueError):
            raise ConfigError(f"config: audiences.{tag}.window_days must be an integer")
        if window <= 0:
            raise ConfigError(f"config: audiences.{tag}.window_days must be positive")
        rules[str(tag)] = AudienceRule(attribute=str(entry["attribute"]), window_days=window)
    return rules


def _parse_schedules(raw: Any) -> list[dict[str, Any]]:
    schedules = raw or []
    if not isinstance(schedules, list):
        raise ConfigError("config: schedules must be a list")
    seen_ids = set()
    for i, sch in enumerate(schedules):
        if not isinstance(sch, dict):
            raise ConfigError(f"config: schedules[{i}] must be a dict")
        sid = sch.get("id")
        if not sid:
            raise ConfigError(f"config: schedules[{i}] missing 'id'")
        if sid in seen_ids:
            raise ConfigError(f"config: duplicate schedule id '{sid}'")
        seen_ids.add(sid)
        if not isinstance(sch.get("notification"), dict):
            raise ConfigError(f"config: schedules[{i}] missing 'notification'")
    return schedules


def parse_config(data: dict[str, Any] | None) -> AppConfig:
    """Validate a loaded config mapping; environment values fill gaps."""
    data = resolve_env(data or {})
    if not isinstance(data, dict):
        raise ConfigError("config: top level must be a dict")
    base = config_from_env()
    appwrite = data.get("appwrite") or {}
    sender = data.get("sender") or {}
    if not isinstance(appwrite, dict) or not isinstance(sender, dict):
        raise ConfigError("config: appwrite and sender must be dicts")
    try:
        timeout = float(appwrite.get("timeout") or base.timeout)
    except (TypeError, ValueError):
        raise ConfigError("config: appwrite.timeout must be a number")

    return AppConfig(
        endpoint=appwrite.get("endpoint") or base.endpoint,
        project_id=appwrite.get("project_id") or base.project_id,
        api_key=appwrite.get("api_key") or base.api_key,
        database_id=appwrite.get("database_id") or base.database_id,
        users_collection_id=appwrite.get("users_collection_id") or base.users_collection_id,
        notifications_collection_id=(
            appwrite.get("notifications_collection_id") or base.notifications_collection_id
        ),
        sent_by=sender.get("name") or base.sent_by,
        sent_by_id=sender.get("id") or base.sent_by_id,
        timeout=timeout,
        audiences=_parse_audiences(data.get("audiences")),
        schedules=_parse_schedules(data.get("schedules")),
    )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate YAML config from path."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"config not found: {path}")
    with open(path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"config: invalid YAML in {path}: {e}")
    return parse_config(data)
