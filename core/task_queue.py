"""Deferred-task queues and the dispatcher that fires matured tasks.

A task is identified by its hook name and arguments. Arming the same
identity twice keeps the first fire time. ``pop_due`` claims each due
identity exactly once, so a task is delivered at most once even when
several workers poll the same queue.

Updates:
    v0.1 - 2026-03-05 - Added in-memory and Redis sorted-set queues.
    v0.2 - 2026-03-06 - Added TaskDispatcher with a declared hook table.
    v0.3 - 2026-03-12 - Handlers receive an OperationContext carrying the claim time.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from config.settings import StoreConfig
from core.redis_support import RedisBacked
from core.telemetry import emit_metric
from models.events import OperationContext, TaskIdentity

LOGGER = logging.getLogger("scb.tasks")

TaskHandler = Callable[..., None]


class InMemoryTaskQueue:
    """Task queue kept in process memory."""

    def __init__(self) -> None:
        self._armed: Dict[str, int] = {}

    def arm(self, identity: TaskIdentity, fires_at: int) -> None:
        self._armed.setdefault(identity.encode(), int(fires_at))

    def disarm(self, identity: TaskIdentity) -> None:
        self._armed.pop(identity.encode(), None)

    def is_armed(self, identity: TaskIdentity) -> bool:
        return identity.encode() in self._armed

    def next_fire(self, identity: TaskIdentity) -> Optional[int]:
        return self._armed.get(identity.encode())

    def pop_due(self, now: int) -> List[TaskIdentity]:
        due = sorted(
            (fires_at, member)
            for member, fires_at in self._armed.items()
            if fires_at <= now
        )
        for _, member in due:
            del self._armed[member]
        return [TaskIdentity.decode(member) for _, member in due]

    def pending(self) -> List[TaskIdentity]:
        ordered = sorted((fires_at, member) for member, fires_at in self._armed.items())
        return [TaskIdentity.decode(member) for _, member in ordered]


class RedisTaskQueue(RedisBacked):
    """Task queue stored as a Redis sorted set scored by fire time."""

    def __init__(self, store_cfg: StoreConfig, client: Optional[Any] = None) -> None:
        self._fallback = InMemoryTaskQueue()
        super().__init__(store_cfg, client=client, logger_name="scb.tasks.redis")
        self._queue_key = self._key("tasks")

    def arm(self, identity: TaskIdentity, fires_at: int) -> None:
        if self._ensure_client():
            try:
                self._client.zadd(self._queue_key, {identity.encode(): int(fires_at)}, nx=True)
                return
            except Exception as exc:  # pragma: no cover - client failure path
                self._drop_client("arm", exc)

        self._fallback.arm(identity, fires_at)

    def disarm(self, identity: TaskIdentity) -> None:
        if self._ensure_client():
            try:
                self._client.zrem(self._queue_key, identity.encode())
                return
            except Exception as exc:  # pragma: no cover
                self._drop_client("disarm", exc)

        self._fallback.disarm(identity)

    def is_armed(self, identity: TaskIdentity) -> bool:
        return self.next_fire(identity) is not None

    def next_fire(self, identity: TaskIdentity) -> Optional[int]:
        if self._ensure_client():
            try:
                score = self._client.zscore(self._queue_key, identity.encode())
                return None if score is None else int(score)
            except Exception as exc:  # pragma: no cover
                self._drop_client("lookup", exc)

        return self._fallback.next_fire(identity)

    def pop_due(self, now: int) -> List[TaskIdentity]:
        if self._ensure_client():
            try:
                members = self._client.zrangebyscore(self._queue_key, "-inf", int(now))
                claimed: List[TaskIdentity] = []
                for member in members:
                    text = member.decode("utf-8") if isinstance(member, bytes) else str(member)
                    # Only the caller whose ZREM removes the member may fire it.
                    if self._client.zrem(self._queue_key, text):
                        claimed.append(TaskIdentity.decode(text))
                return claimed
            except Exception as exc:  # pragma: no cover
                self._drop_client("poll", exc)

        return self._fallback.pop_due(now)


class TaskDispatcher:
    """Routes matured task identities to their registered handlers."""

    def __init__(self, handlers: Mapping[str, TaskHandler]) -> None:
        self._handlers: Dict[str, TaskHandler] = dict(handlers)

    @property
    def hooks(self) -> List[str]:
        return sorted(self._handlers)

    def dispatch(self, identity: TaskIdentity, context: Optional[OperationContext] = None) -> bool:
        """Invoke the handler for ``identity``; return True when one ran."""
        handler = self._handlers.get(identity.hook)
        if handler is None:
            LOGGER.warning("No handler registered for task hook %s", identity.hook)
            return False
        try:
            handler(*identity.args, context=context)
        except Exception:
            LOGGER.exception("Task %s failed", identity.encode())
            return False
        return True

    def run_due(self, queue: Any, now: int) -> int:
        """Fire every task due at ``now``; return how many handlers ran."""
        fired = 0
        for identity in queue.pop_due(now):
            if self.dispatch(identity, OperationContext(origin="task", now=now)):
                fired += 1
        if fired:
            emit_metric("tasks.fired", value=fired)
        return fired
