"""Handlers invoked when an armed boundary task matures.

Each firing runs Verify, Act and Cleanup. Verify re-checks the trigger,
since the feature or the content may have changed after arming. Act failures
are logged and dropped: delivery is at most once. Cleanup always removes the
fired identity from the subject's event set and nothing else.

Updates:
    v0.1 - 2026-03-06 - Added cache purge handler.
    v0.2 - 2026-03-09 - Added delete-after-end handler with suppressed reconcile.
    v0.3 - 2026-03-12 - Expiry is judged at the time the task was claimed.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from config.settings import AppConfig
from core.content_tree import remove_expired
from core.exceptions import ContentError, SchedulerUnavailable
from core.ports import CachePurgerPort, ClockPort, ContentRepositoryPort, EventStorePort
from core.telemetry import emit_metric, record_schedule_event
from models.content import parse_blocks, serialize_blocks
from models.events import (
    BoundaryEvent,
    BoundaryKind,
    DeletionEvent,
    Event,
    OperationContext,
)

LOGGER = logging.getLogger("scb.handlers")

SaveContent = Callable[[int, str, OperationContext], None]


class FireOutcome(str, Enum):
    """How a single firing ended."""

    ACTED = "acted"
    SKIPPED = "skipped"
    FAILED = "failed"
    STALE = "stale"


def _cleanup(store: EventStorePort, event: Event) -> None:
    remaining = [pending for pending in store.load(event.subject_id) if pending != event]
    if remaining:
        store.save(event.subject_id, remaining)
    else:
        store.clear(event.subject_id)


class BoundaryHandler:
    """Fires cache purges and content prunes for matured boundaries."""

    def __init__(
        self,
        config: AppConfig,
        clock: ClockPort,
        purge_store: EventStorePort,
        delete_store: EventStorePort,
        purger: CachePurgerPort,
        repository: ContentRepositoryPort,
        save_content: Optional[SaveContent] = None,
    ) -> None:
        self._config = config
        self._clock = clock
        self._purge_store = purge_store
        self._delete_store = delete_store
        self._purger = purger
        self._repository = repository
        self._save_content = save_content or self._write_directly

    def _write_directly(self, subject_id: int, raw: str, context: OperationContext) -> None:
        self._repository.set_content(subject_id, raw)

    def handle_cache_purge(
        self,
        subject_id: int,
        kind: str,
        fires_at: int,
        context: Optional[OperationContext] = None,
    ) -> FireOutcome:
        try:
            event = BoundaryEvent(
                subject_id=int(subject_id), kind=BoundaryKind(kind), fires_at=int(fires_at)
            )
        except ValueError:
            LOGGER.warning("Ignoring purge task with bad arguments %s/%s/%s", subject_id, kind, fires_at)
            return FireOutcome.STALE

        if event not in self._purge_store.load(event.subject_id):
            LOGGER.debug("Purge event %s already cleaned up; nothing to do.", event.identity)
            return FireOutcome.STALE

        outcome = FireOutcome.SKIPPED
        if self._config.cache_purge.enabled and self._purger.is_available():
            try:
                self._purger.purge_all()
                outcome = FireOutcome.ACTED
            except SchedulerUnavailable as exc:
                LOGGER.warning("Cache purge skipped for %s: %s", event.identity, exc)
                outcome = FireOutcome.FAILED
            except Exception as exc:
                LOGGER.warning("Cache purge failed for %s: %s", event.identity, exc)
                outcome = FireOutcome.FAILED
        else:
            LOGGER.info("Cache purge disabled or unavailable; skipping %s", event.identity)

        _cleanup(self._purge_store, event)
        emit_metric("purge.fired", outcome=outcome.value, subject_id=event.subject_id)
        return outcome

    def handle_delete_expired(
        self,
        subject_id: int,
        fires_at: int,
        context: Optional[OperationContext] = None,
    ) -> FireOutcome:
        try:
            event = DeletionEvent(subject_id=int(subject_id), fires_at=int(fires_at))
        except ValueError:
            LOGGER.warning("Ignoring delete task with bad arguments %s/%s", subject_id, fires_at)
            return FireOutcome.STALE

        if event not in self._delete_store.load(event.subject_id):
            LOGGER.debug("Delete event %s already cleaned up; nothing to do.", event.identity)
            return FireOutcome.STALE

        outcome = FireOutcome.SKIPPED
        if self._config.deletion.enabled:
            parent = context or OperationContext(origin="task")
            try:
                outcome = self._prune(event, parent)
            except ContentError as exc:
                LOGGER.warning("Content of subject %s is unreadable: %s", event.subject_id, exc)
                outcome = FireOutcome.FAILED
            except Exception as exc:
                LOGGER.warning("Prune failed for %s: %s", event.identity, exc)
                outcome = FireOutcome.FAILED
        else:
            LOGGER.info("Deletion disabled; skipping %s", event.identity)

        _cleanup(self._delete_store, event)
        emit_metric("delete.fired", outcome=outcome.value, subject_id=event.subject_id)
        return outcome

    def _prune(self, event: DeletionEvent, parent: OperationContext) -> FireOutcome:
        raw = self._repository.get_content(event.subject_id)
        if not raw:
            return FireOutcome.SKIPPED
        tree = parse_blocks(raw)
        now = parent.now if parent.now is not None else self._clock.now()
        pruned, changed = remove_expired(tree, self._config.block.kind, now, self._clock)
        if not changed:
            return FireOutcome.SKIPPED
        context = parent.child(suppress_reconcile=True, origin="delete_expired")
        self._save_content(event.subject_id, serialize_blocks(pruned), context)
        record_schedule_event("content.pruned", subject_id=event.subject_id, fires_at=event.fires_at)
        LOGGER.info("Removed expired blocks from subject %s", event.subject_id)
        return FireOutcome.ACTED
