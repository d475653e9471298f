"""Reconciling desired boundary events with what is armed.

Every reconciliation disarms everything previously recorded for the subject,
then arms the desired events and records every desired event that ends up
armed, including ones the queue already held. An empty desired list tears
the subject down.

Updates:
    v0.1 - 2026-03-05 - Implemented disarm-all/re-arm reconciliation.
    v0.2 - 2026-03-09 - Shared the algorithm between purge and delete concerns.
    v0.3 - 2026-03-12 - Adopted desired events already armed in the queue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from core.exceptions import SchedulerError
from core.ports import EventStorePort, TaskQueuePort
from core.telemetry import emit_metric, log_span
from models.events import BoundaryEvent, DeletionEvent, Event, TaskIdentity

LOGGER = logging.getLogger("scb.reconcile")

HOOK_CACHE_PURGE = "scb_cache_purge"
HOOK_DELETE_EXPIRED = "scb_delete_expired"


@dataclass(slots=True)
class ReconcileResult:
    """What one reconciliation did."""

    subject_id: int
    disarmed: List[Event] = field(default_factory=list)
    armed: List[Event] = field(default_factory=list)
    failed: List[Event] = field(default_factory=list)


def reconcile(
    store: EventStorePort,
    subject_id: int,
    desired: Sequence[Event],
    *,
    arm: Callable[[Event], None],
    disarm: Callable[[Event], None],
    is_armed: Callable[[Event], bool],
) -> ReconcileResult:
    """Make the armed set for ``subject_id`` equal to ``desired``."""
    result = ReconcileResult(subject_id=subject_id)

    for event in store.load(subject_id):
        disarm(event)
        result.disarmed.append(event)
    store.clear(subject_id)

    for event in desired:
        if event in result.armed:
            continue
        if is_armed(event):
            # Armed outside the recorded set, e.g. after a corrupt record; adopt it.
            result.armed.append(event)
            continue
        try:
            arm(event)
        except SchedulerError as exc:
            LOGGER.warning("Could not arm %s for subject %s: %s", event, subject_id, exc)
            result.failed.append(event)
            continue
        result.armed.append(event)

    if result.armed:
        store.save(subject_id, result.armed)
    else:
        store.clear(subject_id)
    return result


def task_identity(hook: str, event: Event) -> TaskIdentity:
    """Map an event to the task identity armed for it."""
    if isinstance(event, (BoundaryEvent, DeletionEvent)):
        return TaskIdentity(hook=hook, args=event.identity)
    raise TypeError(f"Unsupported event type: {type(event).__name__}")


class BoundaryScheduler:
    """Binds reconciliation to one concern's store, queue and hook."""

    def __init__(self, store: EventStorePort, queue: TaskQueuePort, hook: str) -> None:
        self._store = store
        self._queue = queue
        self._hook = hook

    @property
    def store(self) -> EventStorePort:
        return self._store

    @property
    def hook(self) -> str:
        return self._hook

    def identity_for(self, event: Event) -> TaskIdentity:
        return task_identity(self._hook, event)

    def reconcile(self, subject_id: int, desired: Sequence[Event]) -> ReconcileResult:
        with log_span("reconcile", concern=self._store.concern, subject_id=subject_id):
            result = reconcile(
                self._store,
                subject_id,
                desired,
                arm=lambda event: self._queue.arm(self.identity_for(event), event.fires_at),
                disarm=lambda event: self._queue.disarm(self.identity_for(event)),
                is_armed=lambda event: self._queue.is_armed(self.identity_for(event)),
            )
        if result.disarmed or result.armed:
            LOGGER.info(
                "Reconciled %s events for subject %s: disarmed=%s armed=%s",
                self._store.concern,
                subject_id,
                len(result.disarmed),
                len(result.armed),
            )
        emit_metric(
            "reconcile",
            value=len(result.armed),
            concern=self._store.concern,
            subject_id=subject_id,
            disarmed=len(result.disarmed),
        )
        return result

    def teardown(self, subject_id: int) -> ReconcileResult:
        return self.reconcile(subject_id, [])

    def teardown_all(self) -> List[ReconcileResult]:
        return [self.teardown(subject_id) for subject_id in self._store.subjects()]
