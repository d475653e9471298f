"""Scheduled content service: wires content saves to boundary scheduling.

The service owns the declared signal table. Hosts deliver content-save,
subject-deletion and deactivation signals through it, and the task
dispatcher routes matured purge and delete tasks to the boundary handler.

Updates:
    v0.1 - 2026-03-06 - Added save-driven purge scheduling and teardown paths.
    v0.2 - 2026-03-09 - Added delete-after-end scheduling and immediate prune on save.
    v0.3 - 2026-03-10 - Replaced ad hoc hook registration with a declared signal table.
    v0.4 - 2026-03-12 - Content saves delivered as signals are now persisted before scheduling.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from config.settings import AppConfig
from core.cache_purge import CallbackCachePurger, RedisPageCachePurger
from core.clock import SiteClock
from core.content_store import InMemoryContentRepository, RedisContentRepository
from core.content_tree import find_boundaries, remove_expired
from core.event_store import (
    DELETE_CONCERN,
    PURGE_CONCERN,
    InMemoryEventStore,
    RedisEventStore,
)
from core.exceptions import ContentError
from core.handlers import BoundaryHandler
from core.ports import (
    CachePurgerPort,
    ContentRepositoryPort,
    EventStorePort,
    TaskQueuePort,
)
from core.reconciler import (
    HOOK_CACHE_PURGE,
    HOOK_DELETE_EXPIRED,
    BoundaryScheduler,
    ReconcileResult,
)
from core.render import Viewer, VisibilityPolicy, render_tree
from core.task_queue import InMemoryTaskQueue, RedisTaskQueue, TaskDispatcher
from core.telemetry import record_schedule_event
from models.content import ContentTree, parse_blocks, serialize_blocks
from models.events import BoundaryEvent, BoundaryKind, DeletionEvent, OperationContext

LOGGER = logging.getLogger("scb.service")

SIGNAL_CONTENT_SAVED = "content_saved"
SIGNAL_SUBJECT_DELETED = "subject_deleted"
SIGNAL_DEACTIVATED = "deactivated"

SKIPPED_STATUSES = {"trash", "auto-draft"}


@dataclass(slots=True)
class ContentSaved:
    """A save of a subject's content as reported by the host."""

    subject_id: int
    content: str
    status: str = "publish"
    is_revision: bool = False
    is_autosave: bool = False


@dataclass(slots=True)
class SaveReport:
    """Outcome of handling one content save."""

    subject_id: int
    skipped: bool = False
    pruned: bool = False
    purge: Optional[ReconcileResult] = None
    delete: Optional[ReconcileResult] = None


class ScheduledContentService:
    """Entry point the host calls into for every scheduling concern."""

    def __init__(
        self,
        config: AppConfig,
        clock: SiteClock,
        repository: ContentRepositoryPort,
        purge_store: EventStorePort,
        delete_store: EventStorePort,
        queue: TaskQueuePort,
        purger: CachePurgerPort,
    ) -> None:
        self._config = config
        self._clock = clock
        self._repository = repository
        self._queue = queue
        self._purger = purger
        self._kind = config.block.kind
        self.purge_scheduler = BoundaryScheduler(purge_store, queue, HOOK_CACHE_PURGE)
        self.delete_scheduler = BoundaryScheduler(delete_store, queue, HOOK_DELETE_EXPIRED)
        self.handler = BoundaryHandler(
            config,
            clock,
            purge_store=purge_store,
            delete_store=delete_store,
            purger=purger,
            repository=repository,
            save_content=self.save_content,
        )
        self.signal_table: Dict[str, Callable[..., Any]] = {
            SIGNAL_CONTENT_SAVED: self.on_content_saved,
            SIGNAL_SUBJECT_DELETED: self.on_subject_deleted,
            SIGNAL_DEACTIVATED: self.deactivate,
            HOOK_CACHE_PURGE: self.handler.handle_cache_purge,
            HOOK_DELETE_EXPIRED: self.handler.handle_delete_expired,
        }
        self.dispatcher = TaskDispatcher(
            {hook: self.signal_table[hook] for hook in (HOOK_CACHE_PURGE, HOOK_DELETE_EXPIRED)}
        )
        self.policy = VisibilityPolicy.from_roles(
            config.visibility.roles, config.visibility.known_roles
        )

    @property
    def clock(self) -> SiteClock:
        return self._clock

    @property
    def purger(self) -> CachePurgerPort:
        return self._purger

    def signal(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Deliver a host signal through the declared table."""
        try:
            handler = self.signal_table[name]
        except KeyError as exc:
            raise KeyError(f"Unknown signal '{name}'") from exc
        return handler(*args, **kwargs)

    def save_content(
        self,
        subject_id: int,
        raw: str,
        context: Optional[OperationContext] = None,
    ) -> Optional[SaveReport]:
        """Persist content and, unless suppressed, reschedule its boundaries."""
        context = context or OperationContext()
        if context.suppress_reconcile:
            self._repository.set_content(subject_id, raw)
            LOGGER.debug(
                "Reconcile suppressed for subject %s (origin=%s)", subject_id, context.origin
            )
            return None
        return self.on_content_saved(ContentSaved(subject_id=subject_id, content=raw), context)

    def on_content_saved(
        self,
        saved: ContentSaved,
        context: Optional[OperationContext] = None,
    ) -> SaveReport:
        """Store the saved content, then reschedule both concerns from it.

        Autosaves, revisions and trashed or auto-draft saves are ignored.
        """
        report = SaveReport(subject_id=saved.subject_id)
        if saved.is_autosave or saved.is_revision or saved.status in SKIPPED_STATUSES:
            report.skipped = True
            return report

        context = context or OperationContext()
        self._repository.set_content(saved.subject_id, saved.content)
        tree = self._parse(saved.subject_id, saved.content)
        now = self._clock.now()

        if self._config.deletion.enabled:
            tree = self._prune_on_save(saved.subject_id, tree, now, context, report)
            desired_deletions = [
                DeletionEvent(subject_id=saved.subject_id, fires_at=ts)
                for ts, _ in find_boundaries(
                    tree, self._kind, now, self._clock, deletable_only=True
                )
            ]
            report.delete = self.delete_scheduler.reconcile(saved.subject_id, desired_deletions)
        else:
            report.delete = self.delete_scheduler.teardown(saved.subject_id)

        if self._purge_active() and tree:
            desired_purges = [
                BoundaryEvent(subject_id=saved.subject_id, kind=BoundaryKind(tag), fires_at=ts)
                for ts, tag in find_boundaries(tree, self._kind, now, self._clock)
            ]
            report.purge = self.purge_scheduler.reconcile(saved.subject_id, desired_purges)
        else:
            report.purge = self.purge_scheduler.teardown(saved.subject_id)

        record_schedule_event(
            "content.saved",
            subject_id=saved.subject_id,
            pruned=report.pruned,
            purges=len(report.purge.armed),
            deletions=len(report.delete.armed),
        )
        return report

    def on_subject_deleted(self, subject_id: int) -> List[ReconcileResult]:
        """Tear down every schedule a removed subject owned and drop its content."""
        LOGGER.info("Tearing down schedules for deleted subject %s", subject_id)
        results = [
            self.purge_scheduler.teardown(subject_id),
            self.delete_scheduler.teardown(subject_id),
        ]
        self._repository.delete_content(subject_id)
        return results

    def deactivate(self) -> int:
        """Disarm everything for every subject; return the subjects touched."""
        results = self.purge_scheduler.teardown_all() + self.delete_scheduler.teardown_all()
        subjects = {result.subject_id for result in results}
        LOGGER.info("Deactivated scheduling for %s subjects", len(subjects))
        return len(subjects)

    def run_due(self, now: Optional[int] = None) -> int:
        """Fire every matured task."""
        current = self._clock.now() if now is None else now
        return self.dispatcher.run_due(self._queue, current)

    def render(self, subject_id: int, viewer: Viewer, now: Optional[int] = None) -> str:
        raw = self._repository.get_content(subject_id) or ""
        tree = self._parse(subject_id, raw)
        return render_tree(
            tree, self._kind, viewer=viewer, policy=self.policy, clock=self._clock, now=now
        )

    def _purge_active(self) -> bool:
        return self._config.cache_purge.enabled and self._purger.is_available()

    def _parse(self, subject_id: int, raw: str) -> ContentTree:
        try:
            return parse_blocks(raw)
        except ContentError as exc:
            LOGGER.warning("Ignoring unreadable content of subject %s: %s", subject_id, exc)
            return ()

    def _prune_on_save(
        self,
        subject_id: int,
        tree: ContentTree,
        now: int,
        context: OperationContext,
        report: SaveReport,
    ) -> ContentTree:
        pruned, changed = remove_expired(tree, self._kind, now, self._clock)
        if not changed:
            return tree
        self.save_content(
            subject_id,
            serialize_blocks(pruned),
            context.child(suppress_reconcile=True, origin="save_prune"),
        )
        report.pruned = True
        return pruned


def build_service(
    config: AppConfig,
    clock: Optional[SiteClock] = None,
    *,
    client: Optional[Any] = None,
    purger: Optional[CachePurgerPort] = None,
) -> ScheduledContentService:
    """Assemble a service from configuration.

    ``store.backend == "memory"`` keeps everything in process; otherwise the
    Redis adapters are used, sharing ``client`` when one is supplied.
    """
    clock = clock or SiteClock(config.site.timezone)
    store_cfg = config.store
    if store_cfg.backend == "memory":
        return ScheduledContentService(
            config,
            clock,
            repository=InMemoryContentRepository(),
            purge_store=InMemoryEventStore(PURGE_CONCERN),
            delete_store=InMemoryEventStore(DELETE_CONCERN),
            queue=InMemoryTaskQueue(),
            purger=purger or CallbackCachePurger(),
        )

    return ScheduledContentService(
        config,
        clock,
        repository=RedisContentRepository(store_cfg, client=client),
        purge_store=RedisEventStore(PURGE_CONCERN, store_cfg, client=client),
        delete_store=RedisEventStore(DELETE_CONCERN, store_cfg, client=client),
        queue=RedisTaskQueue(store_cfg, client=client),
        purger=purger
        or RedisPageCachePurger(store_cfg, config.cache_purge.page_cache_pattern, client=client),
    )
