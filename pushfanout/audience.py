"""Audience resolver: dynamic audience tag -> set of user ids.

Each tag maps to one (attribute, window) rule. Resolution queries the
directory for users whose attribute is later than ``now - window`` and is
fail-open: a directory failure is logged and resolves to no users.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from pushfanout.errors import UnsupportedAudience
from pushfanout.timeutil import utcnow

if TYPE_CHECKING:
    from pushfanout.backend.base import Directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudienceRule:
    attribute: str
    window_days: int


DEFAULT_AUDIENCES: dict[str, AudienceRule] = {
    "active_users": AudienceRule(attribute="lastLoginAt", window_days=7),
    "recent_orders": AudienceRule(attribute="lastOrderAt", window_days=30),
}


class AudienceResolver:
    def __init__(
        self,
        directory: Directory,
        rules: Mapping[str, AudienceRule] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.directory = directory
        self.rules = dict(DEFAULT_AUDIENCES if rules is None else rules)
        self.clock = clock

    def __contains__(self, tag: object) -> bool:
        return tag in self.rules

    def threshold(self, tag: str) -> datetime:
        rule = self._rule(tag)
        return self.clock() - timedelta(days=rule.window_days)

    def resolve(self, tag: str) -> set[str]:
        """Return user ids for ``tag``; empty set if the directory lookup fails."""
        rule = self._rule(tag)
        threshold = self.threshold(tag)
        try:
            user_ids = set(self.directory.find_user_ids(rule.attribute, threshold))
        except Exception as e:
            logger.error("Error getting user ids for audience %s: %s", tag, e)
            return set()
        logger.info("Found %s users for audience: %s", len(user_ids), tag)
        return user_ids

    def _rule(self, tag: str) -> AudienceRule:
        if tag not in self.rules:
            raise UnsupportedAudience(tag)
        return self.rules[tag]
