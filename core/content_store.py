"""Raw serialized content per subject."""

from __future__ import annotations

from typing import Any, Dict, Optional

from config.settings import StoreConfig
from core.redis_support import RedisBacked


class InMemoryContentRepository:
    """Content kept in process memory."""

    def __init__(self) -> None:
        self._content: Dict[int, str] = {}

    def get_content(self, subject_id: int) -> Optional[str]:
        return self._content.get(subject_id)

    def set_content(self, subject_id: int, raw: str) -> None:
        self._content[subject_id] = raw

    def delete_content(self, subject_id: int) -> None:
        self._content.pop(subject_id, None)


class RedisContentRepository(RedisBacked):
    """Content persisted in Redis under ``<prefix>:content:<subject>``."""

    def __init__(self, store_cfg: StoreConfig, client: Optional[Any] = None) -> None:
        self._fallback = InMemoryContentRepository()
        super().__init__(store_cfg, client=client, logger_name="scb.content.redis")

    def get_content(self, subject_id: int) -> Optional[str]:
        if self._ensure_client():
            try:
                raw = self._client.get(self._key("content", subject_id))
                if isinstance(raw, bytes):
                    return raw.decode("utf-8")
                return raw
            except Exception as exc:  # pragma: no cover - client failure path
                self._drop_client("read", exc)

        return self._fallback.get_content(subject_id)

    def set_content(self, subject_id: int, raw: str) -> None:
        if self._ensure_client():
            try:
                self._client.set(self._key("content", subject_id), raw)
                return
            except Exception as exc:  # pragma: no cover
                self._drop_client("write", exc)

        self._fallback.set_content(subject_id, raw)

    def delete_content(self, subject_id: int) -> None:
        if self._ensure_client():
            try:
                self._client.delete(self._key("content", subject_id))
                return
            except Exception as exc:  # pragma: no cover
                self._drop_client("deletion", exc)

        self._fallback.delete_content(subject_id)
