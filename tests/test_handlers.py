from __future__ import annotations

from typing import List, Tuple

import pytest

from core.cache_purge import CallbackCachePurger
from core.clock import FixedClock
from core.content_store import InMemoryContentRepository
from core.event_store import DELETE_CONCERN, PURGE_CONCERN, InMemoryEventStore
from core.handlers import BoundaryHandler, FireOutcome
from core.telemetry import latest_records
from models.content import ContentNode, parse_blocks, serialize_blocks
from models.events import BoundaryEvent, BoundaryKind, DeletionEvent, OperationContext

KIND = "h-b/scheduled-container"
END_TS = 1735689600  # 2025-01-01T00:00:00Z


class Harness:
    def __init__(self, config) -> None:
        self.config = config
        self.clock = FixedClock(END_TS + 60)
        self.purge_store = InMemoryEventStore(PURGE_CONCERN)
        self.delete_store = InMemoryEventStore(DELETE_CONCERN)
        self.purger = CallbackCachePurger()
        self.repository = InMemoryContentRepository()
        self.purges = 0
        self.saves: List[Tuple[int, str, OperationContext]] = []
        self.handler = BoundaryHandler(
            config,
            self.clock,
            purge_store=self.purge_store,
            delete_store=self.delete_store,
            purger=self.purger,
            repository=self.repository,
            save_content=self._record_save,
        )

    def _record_save(self, subject_id: int, raw: str, context: OperationContext) -> None:
        self.saves.append((subject_id, raw, context))
        self.repository.set_content(subject_id, raw)

    def count_purge(self) -> None:
        self.purges += 1


@pytest.fixture
def harness(app_config) -> Harness:
    return Harness(app_config)


START = BoundaryEvent(subject_id=7, kind=BoundaryKind.START, fires_at=END_TS - 3600)
END = BoundaryEvent(subject_id=7, kind=BoundaryKind.END, fires_at=END_TS)


def test_purge_for_unknown_event_is_a_no_op(harness: Harness) -> None:
    harness.purger.register("page", harness.count_purge)

    outcome = harness.handler.handle_cache_purge(7, "end", END_TS)

    assert outcome is FireOutcome.STALE
    assert harness.purges == 0


def test_purge_with_bad_arguments_is_stale(harness: Harness) -> None:
    assert harness.handler.handle_cache_purge(7, "middle", END_TS) is FireOutcome.STALE
    assert harness.handler.handle_delete_expired("seven", END_TS) is FireOutcome.STALE


def test_purge_fires_and_removes_only_that_event(harness: Harness) -> None:
    harness.purger.register("page", harness.count_purge)
    harness.purge_store.save(7, [START, END])

    outcome = harness.handler.handle_cache_purge(7, "end", END_TS)

    assert outcome is FireOutcome.ACTED
    assert harness.purges == 1
    assert harness.purge_store.load(7) == [START]
    assert latest_records("purge.fired")[-1].fields["outcome"] == "acted"


def test_second_delivery_of_same_event_is_stale(harness: Harness) -> None:
    harness.purger.register("page", harness.count_purge)
    harness.purge_store.save(7, [END])

    harness.handler.handle_cache_purge(7, "end", END_TS)
    outcome = harness.handler.handle_cache_purge(7, "end", END_TS)

    assert outcome is FireOutcome.STALE
    assert harness.purges == 1
    assert harness.purge_store.subjects() == []


def test_disabled_purge_skips_but_still_cleans_up(harness: Harness) -> None:
    harness.config.cache_purge.enabled = False
    harness.purger.register("page", harness.count_purge)
    harness.purge_store.save(7, [END])

    outcome = harness.handler.handle_cache_purge(7, "end", END_TS)

    assert outcome is FireOutcome.SKIPPED
    assert harness.purges == 0
    assert harness.purge_store.load(7) == []


def test_unavailable_purger_skips(harness: Harness) -> None:
    harness.purge_store.save(7, [END])
    assert harness.handler.handle_cache_purge(7, "end", END_TS) is FireOutcome.SKIPPED
    assert harness.purge_store.load(7) == []


def test_purge_failure_is_logged_and_dropped(harness: Harness, caplog) -> None:
    def broken() -> None:
        raise RuntimeError("cache offline")

    harness.purger.register("page", broken)
    harness.purge_store.save(7, [END])

    outcome = harness.handler.handle_cache_purge(7, "end", END_TS)

    assert outcome is FireOutcome.FAILED
    assert harness.purge_store.load(7) == []
    assert "cache offline" in caplog.text


def _content() -> str:
    tree = (
        ContentNode(kind="core/paragraph", html="<p>intro</p>"),
        ContentNode(
            kind=KIND,
            attributes={"end": "2025-01-01T00:00:00Z", "deleteAfterEnd": True},
            children=(ContentNode(kind="core/paragraph", html="<p>sale</p>"),),
        ),
        ContentNode(
            kind=KIND,
            attributes={"end": "2025-02-01T00:00:00Z", "deleteAfterEnd": True},
        ),
    )
    return serialize_blocks(tree)


def test_delete_prunes_expired_blocks_with_reconcile_suppressed(harness: Harness) -> None:
    later = DeletionEvent(subject_id=7, fires_at=END_TS + 86400 * 31)
    harness.repository.set_content(7, _content())
    harness.delete_store.save(7, [DeletionEvent(7, END_TS), later])

    outcome = harness.handler.handle_delete_expired(7, END_TS)

    assert outcome is FireOutcome.ACTED
    [(subject_id, raw, context)] = harness.saves
    assert subject_id == 7
    assert context.suppress_reconcile is True
    assert context.origin == "delete_expired"
    assert context.parent is not None and context.parent.origin == "task"
    remaining = parse_blocks(raw)
    assert [node.attributes.get("end") for node in remaining if node.kind == KIND] == [
        "2025-02-01T00:00:00Z"
    ]
    assert harness.delete_store.load(7) == [later]
    assert latest_records("content.pruned")[-1].subject_id == 7


def test_delete_with_nothing_expired_skips(harness: Harness) -> None:
    harness.clock.set(END_TS - 10)
    harness.repository.set_content(7, _content())
    harness.delete_store.save(7, [DeletionEvent(7, END_TS)])

    assert harness.handler.handle_delete_expired(7, END_TS) is FireOutcome.SKIPPED
    assert harness.saves == []
    assert harness.delete_store.load(7) == []


def test_delete_judges_expiry_at_claim_time(harness: Harness) -> None:
    harness.clock.set(END_TS - 10)
    harness.repository.set_content(7, _content())
    harness.delete_store.save(7, [DeletionEvent(7, END_TS)])

    outcome = harness.handler.handle_delete_expired(
        7, END_TS, context=OperationContext(origin="task", now=END_TS)
    )

    assert outcome is FireOutcome.ACTED
    [(_, raw, context)] = harness.saves
    assert context.now == END_TS
    assert len(parse_blocks(raw)) == 2


def test_delete_with_unreadable_content_fails_cleanly(harness: Harness) -> None:
    harness.repository.set_content(7, "{broken")
    harness.delete_store.save(7, [DeletionEvent(7, END_TS)])

    assert harness.handler.handle_delete_expired(7, END_TS) is FireOutcome.FAILED
    assert harness.delete_store.load(7) == []


def test_delete_disabled_leaves_content_alone(harness: Harness) -> None:
    harness.config.deletion.enabled = False
    harness.repository.set_content(7, _content())
    harness.delete_store.save(7, [DeletionEvent(7, END_TS)])

    assert harness.handler.handle_delete_expired(7, END_TS) is FireOutcome.SKIPPED
    assert harness.repository.get_content(7) == _content()
