"""Ports (interfaces) consumed by the scheduling core.

Ports define the minimal contracts for storage, task scheduling and cache
purging so the core can run against Redis in production and in-memory
adapters in tests.
"""

from __future__ import annotations

from datetime import tzinfo
from typing import List, Optional, Protocol, Sequence

from models.events import Event, TaskIdentity


class ClockPort(Protocol):
    """Current time and site-timezone parsing, both in epoch seconds."""

    @property
    def tz(self) -> tzinfo:
        ...

    def now(self) -> int:
        ...

    def parse(self, value: str) -> int:
        ...

    def try_parse(self, value: Optional[str]) -> Optional[int]:
        ...


class EventStorePort(Protocol):
    """Per-subject persisted event set for one concern."""

    concern: str

    def load(self, subject_id: int) -> List[Event]:
        ...

    def save(self, subject_id: int, events: Sequence[Event]) -> None:
        ...

    def clear(self, subject_id: int) -> None:
        ...

    def subjects(self) -> List[int]:
        ...


class TaskQueuePort(Protocol):
    """External deferred-task scheduler."""

    def arm(self, identity: TaskIdentity, fires_at: int) -> None:
        ...

    def disarm(self, identity: TaskIdentity) -> None:
        ...

    def is_armed(self, identity: TaskIdentity) -> bool:
        ...

    def next_fire(self, identity: TaskIdentity) -> Optional[int]:
        ...

    def pop_due(self, now: int) -> List[TaskIdentity]:
        ...


class ContentRepositoryPort(Protocol):
    """Raw serialized content per subject."""

    def get_content(self, subject_id: int) -> Optional[str]:
        ...

    def set_content(self, subject_id: int, raw: str) -> None:
        ...

    def delete_content(self, subject_id: int) -> None:
        ...


class CachePurgerPort(Protocol):
    """Global, fire-and-forget cache purge capability."""

    def is_available(self) -> bool:
        ...

    def purge_all(self) -> None:
        ...
