"""Global cache purge capabilities.

Purges are site-wide and carry no subject payload. A purger reports whether
it can currently purge; callers skip the purge when it cannot.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from config.settings import StoreConfig
from core.exceptions import SchedulerUnavailable
from core.redis_support import RedisBacked

LOGGER = logging.getLogger("scb.purge")

PurgeCallback = Callable[[], None]


class CallbackCachePurger:
    """Purges by invoking registered cache-clearing callbacks.

    Primary callbacks clear the page cache; secondary ones (a reverse proxy,
    for example) only run alongside a primary and never make the purger
    available on their own.
    """

    def __init__(self) -> None:
        self._primary: Dict[str, PurgeCallback] = {}
        self._secondary: Dict[str, PurgeCallback] = {}

    def register(self, name: str, callback: PurgeCallback, *, secondary: bool = False) -> None:
        target = self._secondary if secondary else self._primary
        target[name] = callback

    def unregister(self, name: str) -> None:
        self._primary.pop(name, None)
        self._secondary.pop(name, None)

    def is_available(self) -> bool:
        return bool(self._primary)

    def purge_all(self) -> None:
        if not self._primary:
            raise SchedulerUnavailable("No primary cache purge callback registered")
        for name, callback in [*self._primary.items(), *self._secondary.items()]:
            LOGGER.debug("Running cache purge callback %s", name)
            callback()


class RedisPageCachePurger(RedisBacked):
    """Deletes every page-cache key matching a pattern."""

    def __init__(
        self,
        store_cfg: StoreConfig,
        pattern: str,
        client: Optional[Any] = None,
    ) -> None:
        super().__init__(store_cfg, client=client, logger_name="scb.purge.redis")
        self._pattern = pattern

    def is_available(self) -> bool:
        return self._ensure_client()

    def purge_all(self) -> None:
        if not self._ensure_client():
            raise SchedulerUnavailable("Redis page cache is unreachable")
        keys: List[Any] = list(self._client.scan_iter(match=self._pattern))
        if keys:
            self._client.delete(*keys)
        LOGGER.info("Purged %s page cache entries matching %s", len(keys), self._pattern)
