"""Capacity ceilings checked before any expensive work.

Counts are read without locking, so two concurrent requests can both pass
a ceiling that only one of them should have.  That race is accepted.
"""

from __future__ import annotations

import logging
from typing import Protocol

from bloomworks.core.errors import CapacityError
from bloomworks.core.themes import ThemeConfig

logger = logging.getLogger(__name__)


class RecordCounter(Protocol):
    def count(self, table: str) -> int: ...

    def count_by_identity(self, table: str, identity: str) -> int: ...


def global_capacity_exceeded(count: int, ceiling: int | None) -> bool:
    if ceiling is None:
        return False
    return count >= ceiling


def per_identity_capacity_exceeded(identity_count: int, ceiling: int | None) -> bool:
    if ceiling is None:
        return False
    return identity_count >= ceiling


class RateLimiter:
    """Enforces a theme's global and per-identity ceilings."""

    def __init__(self, store: RecordCounter) -> None:
        self._store = store

    def check(self, theme: ThemeConfig, identity: str) -> None:
        """Raise :class:`CapacityError` if either ceiling has been reached.

        The global count is read first; the per-identity count is only read
        when the global check passes.  A ``None`` ceiling skips its query.
        """
        if theme.global_ceiling is not None:
            total = self._store.count(theme.table)
            if global_capacity_exceeded(total, theme.global_ceiling):
                logger.info(
                    "Theme '%s' is full (%d/%d records).", theme.name, total, theme.global_ceiling
                )
                raise CapacityError(theme.full_message, scope="global")

        if theme.per_identity_ceiling is None:
            return

        mine = self._store.count_by_identity(theme.table, identity)
        if per_identity_capacity_exceeded(mine, theme.per_identity_ceiling):
            logger.info(
                "Identity '%s' reached %d/%d records for theme '%s'.",
                identity,
                mine,
                theme.per_identity_ceiling,
                theme.name,
            )
            raise CapacityError(
                theme.capacity_message(theme.per_identity_ceiling), scope="identity"
            )
