"""Appwrite function entry point: ``main(context)``.

The runtime passes a context with ``req`` (body, headers), ``res`` (json) and
``log`` / ``error`` callables. Config is loaded once per process.

Log records are forwarded only to the context of the invocation that emitted
them: the current context lives in a ContextVar, which is per thread and per
asyncio task.
"""
from __future__ import annotations

import dataclasses
import logging
import os
from contextvars import ContextVar
from functools import lru_cache
from typing import Any

from dotenv import load_dotenv

from pushfanout.backend import appwrite_backend
from pushfanout.config import AppConfig, config_from_env, load_config
from pushfanout.errors import ConfigError
from pushfanout.models import OperationResult
from pushfanout.service import NotificationService

logger = logging.getLogger(__name__)

CONFIG_ENV = "PUSHFANOUT_CONFIG"
API_KEY_HEADER = "x-appwrite-key"

current_context: ContextVar[Any] = ContextVar("appwrite_context", default=None)


class ContextLogHandler(logging.Handler):
    """Forward log records to the current invocation's context.log / context.error."""

    def __init__(self) -> None:
        super().__init__(level=logging.INFO)
        self.setFormatter(logging.Formatter("%(name)s %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        context = current_context.get()
        if context is None:
            return
        try:
            msg = self.format(record)
            if record.levelno >= logging.ERROR:
                context.error(msg)
            else:
                context.log(msg)
        except Exception:
            self.handleError(record)


_handler = ContextLogHandler()


def install_log_forwarding() -> None:
    """Attach the shared forwarding handler once; addHandler ignores repeats."""
    pkg_logger = logging.getLogger("pushfanout")
    pkg_logger.addHandler(_handler)
    if pkg_logger.level == logging.NOTSET:
        pkg_logger.setLevel(logging.INFO)


@lru_cache(maxsize=1)
def get_config() -> AppConfig:
    load_dotenv()
    path = os.environ.get(CONFIG_ENV)
    if path:
        return load_config(path)
    return config_from_env()


def _header(req: Any, name: str) -> str | None:
    headers = getattr(req, "headers", None) or {}
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def main(context: Any) -> Any:
    install_log_forwarding()
    token = current_context.set(context)
    try:
        try:
            config = get_config()
        except (ConfigError, FileNotFoundError) as e:
            logger.error("Invalid configuration: %s", e)
            return context.res.json(OperationResult.failure(str(e), ConfigError.kind).to_dict())
        key = _header(context.req, API_KEY_HEADER)
        if key:
            config = dataclasses.replace(config, api_key=key)
        service = NotificationService(config, appwrite_backend(config))
        result = service.handle(getattr(context.req, "body", None))
        return context.res.json(result.to_dict())
    finally:
        current_context.reset(token)
