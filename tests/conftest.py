"""Shared fixtures: configuration variants and an in-process Redis stand-in."""

from __future__ import annotations

import fnmatch
from typing import Dict, Iterator, List, Optional

import pytest

from config.settings import AppConfig, load_app_config
from core.telemetry import SCHEDULE_JOURNAL


class FakeRedisClient:
    """Implements the handful of Redis commands the adapters use."""

    def __init__(self) -> None:
        self.strings: Dict[str, bytes] = {}
        self.zsets: Dict[str, Dict[str, float]] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> Optional[bytes]:
        return self.strings.get(key)

    def set(self, key: str, value: object) -> bool:
        data = value if isinstance(value, bytes) else str(value).encode("utf-8")
        self.strings[key] = data
        return True

    def delete(self, *keys: object) -> int:
        removed = 0
        for key in keys:
            name = key.decode("utf-8") if isinstance(key, bytes) else str(key)
            if self.strings.pop(name, None) is not None:
                removed += 1
            if self.zsets.pop(name, None) is not None:
                removed += 1
        return removed

    def scan_iter(self, match: str = "*") -> Iterator[bytes]:
        for key in list(self.strings) + list(self.zsets):
            if fnmatch.fnmatchcase(key, match):
                yield key.encode("utf-8")

    def zadd(self, key: str, mapping: Dict[str, float], nx: bool = False) -> int:
        zset = self.zsets.setdefault(key, {})
        added = 0
        for member, score in mapping.items():
            if nx and member in zset:
                continue
            if member not in zset:
                added += 1
            zset[member] = float(score)
        return added

    def zrem(self, key: str, *members: str) -> int:
        zset = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    def zscore(self, key: str, member: str) -> Optional[float]:
        return self.zsets.get(key, {}).get(member)

    def zrangebyscore(self, key: str, low: object, high: object) -> List[bytes]:
        ceiling = float(high)
        floor = float("-inf") if low == "-inf" else float(low)
        ordered = sorted(self.zsets.get(key, {}).items(), key=lambda item: (item[1], item[0]))
        return [member.encode("utf-8") for member, score in ordered if floor <= score <= ceiling]


@pytest.fixture(autouse=True)
def _reset_journal() -> Iterator[None]:
    SCHEDULE_JOURNAL.clear()
    yield
    SCHEDULE_JOURNAL.clear()


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def app_config() -> AppConfig:
    """Packaged configuration switched to in-memory storage and UTC."""
    config = load_app_config()
    config.store.backend = "memory"
    config.site.timezone = "UTC"
    config.cache_purge.enabled = True
    config.deletion.enabled = True
    return config
