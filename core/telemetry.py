"""Scheduling journal, metrics and span logging.

Every arm, disarm, fire and prune is logged and also recorded in a bounded
per-process journal keyed by subject, so operators and tests can ask what
happened to one subject without scraping logs.

Updates:
    v0.1 - 2026-03-03 - Provided logging wrappers for metrics and spans.
    v0.2 - 2026-03-08 - Added the per-subject scheduling journal.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from threading import Lock
from typing import Deque, Dict, Iterator, List, Optional

_METRICS_LOGGER = logging.getLogger("scb.metrics")
_SPAN_LOGGER = logging.getLogger("scb.span")


@dataclass(frozen=True, slots=True)
class ScheduleRecord:
    """One journal entry. ``subject_id`` is None for site-wide entries."""

    name: str
    subject_id: Optional[int]
    recorded_at: float
    fields: Dict[str, object] = field(default_factory=dict)


class ScheduleJournal:
    """Bounded history of scheduling activity."""

    def __init__(self, max_records: int = 512) -> None:
        self._records: Deque[ScheduleRecord] = deque(maxlen=max_records)
        self._lock = Lock()

    def record(self, entry: ScheduleRecord) -> None:
        with self._lock:
            self._records.append(entry)

    def latest(
        self,
        name: Optional[str] = None,
        *,
        subject_id: Optional[int] = None,
        limit: int = 10,
    ) -> List[ScheduleRecord]:
        if limit <= 0:
            return []
        with self._lock:
            matches = [
                entry
                for entry in self._records
                if (name is None or entry.name == name)
                and (subject_id is None or entry.subject_id == subject_id)
            ]
        return matches[-limit:]

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


SCHEDULE_JOURNAL = ScheduleJournal()


def record_schedule_event(name: str, subject_id: Optional[int] = None, **fields: object) -> None:
    SCHEDULE_JOURNAL.record(
        ScheduleRecord(
            name=name,
            subject_id=subject_id,
            recorded_at=time.time(),
            fields=dict(fields),
        )
    )


def subject_history(subject_id: int, limit: int = 20) -> List[ScheduleRecord]:
    """Newest journal entries for one subject, oldest first."""
    return SCHEDULE_JOURNAL.latest(subject_id=subject_id, limit=limit)


def latest_records(name: str, limit: int = 5) -> List[ScheduleRecord]:
    return SCHEDULE_JOURNAL.latest(name, limit=limit)


def emit_metric(
    name: str,
    value: float = 1.0,
    subject_id: Optional[int] = None,
    **tags: object,
) -> None:
    """Log a metric and journal it under its own name."""
    _METRICS_LOGGER.info(
        "metric",
        extra={
            "metric_name": name,
            "metric_value": value,
            "metric_subject": subject_id,
            "metric_tags": tags,
        },
    )
    record_schedule_event(name, subject_id, value=value, **tags)


@contextmanager
def log_span(name: str, **fields: object) -> Iterator[None]:
    """Log a start/end span around a block of work."""
    start = time.perf_counter()
    _SPAN_LOGGER.debug("span.start", extra={"span_name": name, "span_fields": fields})
    try:
        yield
    finally:
        span_fields = dict(fields)
        span_fields["duration_seconds"] = round(time.perf_counter() - start, 4)
        _SPAN_LOGGER.debug("span.end", extra={"span_name": name, "span_fields": span_fields})
