"""Runner: load config, match schedules by cron or --schedule, send their notifications."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from croniter import croniter

from pushfanout.backend import Backend, appwrite_backend
from pushfanout.backend.memory import InMemoryAuditStore, InMemoryPushDelivery
from pushfanout.config import AppConfig, load_config
from pushfanout.models import OperationResult
from pushfanout.service import NotificationService

logger = logging.getLogger(__name__)


def schedules_to_run(config: AppConfig, now: datetime, schedule_id: str | None) -> list[dict[str, Any]]:
    """Return list of schedule dicts to run: either [schedule with id] or cron-matched."""
    schedules = config.schedules
    if schedule_id is not None:
        for sch in schedules:
            if sch.get("id") == schedule_id:
                return [sch]
        raise ValueError(f"schedule id '{schedule_id}' not found in config")

    now_utc = now.astimezone(timezone.utc)
    now_trunc = now_utc.replace(second=0, microsecond=0)
    base = now_trunc - timedelta(minutes=1)
    to_run = []
    for sch in schedules:
        cron_expr = sch.get("cron")
        if not cron_expr:
            continue
        try:
            it = croniter(cron_expr, base)
            next_run = it.get_next(datetime)
            next_trunc = next_run.replace(second=0, microsecond=0)
            if next_run.tzinfo is None:
                next_trunc = next_trunc.replace(tzinfo=timezone.utc)
            if next_trunc == now_trunc:
                to_run.append(sch)
        except (ValueError, KeyError) as e:
            logger.warning("cron parse/next failed for schedule %s: %s", sch.get("id"), e)
    return to_run


def build_backend(config: AppConfig, dry_run: bool = False) -> Backend:
    """Appwrite collaborators; dry-run keeps reads live but captures sends and writes in memory."""
    backend = appwrite_backend(config)
    if dry_run:
        backend.delivery = InMemoryPushDelivery()
        backend.audit = InMemoryAuditStore()
    return backend


def run(
    config_path: str | Path,
    schedule_id: str | None = None,
    dry_run: bool = False,
    now: datetime | None = None,
    backend: Backend | None = None,
) -> list[OperationResult]:
    """Load config, run matched schedules and send their notifications.

    If dry_run is True, audiences and targets are resolved against Appwrite,
    but the push and the history write are only captured and logged.
    """
    config = load_config(config_path)

    now = now or datetime.now(timezone.utc)
    schedules = schedules_to_run(config, now, schedule_id)
    if not schedules:
        logger.info("No schedules to run (current time does not match any cron). Use --schedule <id> to run a schedule anyway.")
        return []
    if dry_run:
        logger.info("Dry-run mode enabled: will resolve targets but not send any notifications.")
    logger.info("Running %s schedule(s): %s", len(schedules), [s.get("id") for s in schedules])

    service = NotificationService(config, backend or build_backend(config, dry_run))
    results = []
    for sch in schedules:
        result = service.handle(sch["notification"])
        if result.success:
            logger.info("schedule=%s sent %s to %s target(s)", sch.get("id"), result.message_id, result.target_count)
        else:
            logger.warning("schedule=%s not sent: %s", sch.get("id"), result.error)
        results.append(result)
    return results
