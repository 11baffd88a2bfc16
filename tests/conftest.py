from __future__ import annotations

from datetime import datetime, timezone

import pytest

from pushfanout.backend import Backend, memory_backend
from pushfanout.config import AppConfig
from pushfanout.models import DeviceTarget
from pushfanout.service import NotificationService

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def push(target_id: str, user_id: str | None) -> DeviceTarget:
    return DeviceTarget(id=target_id, provider_type="push", user_id=user_id)


def email(target_id: str, user_id: str | None) -> DeviceTarget:
    return DeviceTarget(id=target_id, provider_type="email", user_id=user_id)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(project_id="proj", api_key="key")


@pytest.fixture
def backend(config: AppConfig) -> Backend:
    return memory_backend(config)


@pytest.fixture
def service(config: AppConfig, backend: Backend) -> NotificationService:
    return NotificationService(config, backend, clock=lambda: NOW)
