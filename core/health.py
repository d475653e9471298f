"""Startup diagnostics for scheduled content external dependencies.

Updates:
    v0.1 - 2026-03-07 - Added runtime checks for Redis, the site timezone and
        cache purge availability.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config.settings import AppConfig
from core.exceptions import HealthCheckError
from core.ports import CachePurgerPort
from core.redis_support import connect

LOGGER = logging.getLogger("scb.health")


def run_startup_checks(
    config: AppConfig,
    purger: Optional[CachePurgerPort] = None,
) -> List[str]:
    """Validate external dependencies; return warnings when falling back."""

    _check_timezone(config)
    warnings: List[str] = []
    warnings.extend(_check_redis(config))
    warnings.extend(_check_purger(config, purger))
    return warnings


def _check_timezone(config: AppConfig) -> None:
    try:
        ZoneInfo(config.site.timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise HealthCheckError(
            f"Site timezone '{config.site.timezone}' cannot be loaded: {exc}"
        ) from exc


def _check_redis(config: AppConfig) -> List[str]:
    if config.store.backend != "redis":
        return []
    try:
        connect(config.store, socket_timeout=1)
    except Exception as exc:  # pragma: no cover - runtime dependent
        LOGGER.warning(
            "Redis connectivity check failed (%s); using in-memory fallback.", exc
        )
        return [
            "redis unavailable; schedules will not survive a restart.",
        ]
    return []


def _check_purger(config: AppConfig, purger: Optional[CachePurgerPort]) -> List[str]:
    if not config.cache_purge.enabled:
        return []
    if purger is None or not purger.is_available():
        return [
            "cache purge enabled but no purge capability is available; purges will be skipped.",
        ]
    return []
