"""Shared Redis connection handling for the storage and queue adapters.

Updates:
    v0.1 - 2026-03-04 - Extracted resilient connect/reconnect logic shared by
        the Redis-backed adapters.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import redis

from config.settings import StoreConfig


def connect(store_cfg: StoreConfig, socket_timeout: float = 2) -> Any:
    """Open a Redis client and verify it with a ping."""
    client = redis.Redis(
        host=store_cfg.host,
        port=store_cfg.port,
        db=store_cfg.db,
        socket_timeout=socket_timeout,
    )
    client.ping()
    return client


class RedisBacked:
    """Base for adapters that prefer Redis and degrade to process memory.

    A failed call drops the client; the next call attempts to reconnect.
    Tests inject a client directly and skip the connection attempt.
    """

    def __init__(
        self,
        store_cfg: StoreConfig,
        client: Optional[Any] = None,
        logger_name: str = "scb.redis",
    ) -> None:
        self._store_cfg = store_cfg
        self._prefix = store_cfg.key_prefix
        self._logger = logging.getLogger(logger_name)
        self._injected = client is not None
        self._client: Optional[Any] = client
        if client is None:
            self._initialise_client()

    @property
    def using_fallback(self) -> bool:
        return self._client is None

    def _key(self, *parts: object) -> str:
        return ":".join([self._prefix, *(str(part) for part in parts)])

    def _initialise_client(self) -> None:
        try:
            self._client = connect(self._store_cfg)
        except Exception as exc:  # pragma: no cover - runtime environment dependent
            self._logger.error(
                "Redis connection failed during initialisation (%s); using in-memory fallback.",
                exc,
            )
            self._client = None

    def _ensure_client(self) -> bool:
        """Ensure a live Redis client is available, reconnecting if needed."""
        if self._client is None and not self._injected:
            try:
                self._client = connect(self._store_cfg)
            except Exception as exc:  # pragma: no cover - runtime dependent
                self._logger.debug("Redis reconnect attempt failed: %s", exc)
                self._client = None
                return False
        return self._client is not None

    def _drop_client(self, action: str, exc: Exception) -> None:
        self._logger.warning(
            "Redis %s failed (%s); switching to in-memory fallback.", action, exc
        )
        self._client = None
        self._injected = False
