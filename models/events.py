"""Scheduling records shared by the store, reconciler and handlers.

Updates:
    v0.1 - 2026-03-02 - Added Verdict, BoundaryEvent and DeletionEvent records.
    v0.2 - 2026-03-06 - Added TaskIdentity for the deferred-task queue.
    v0.3 - 2026-03-09 - Added OperationContext to replace request-global flags.
    v0.4 - 2026-03-12 - OperationContext carries the dispatch time of task firings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple, Union


class Verdict(str, Enum):
    """Three-valued outcome of evaluating a time window."""

    VISIBLE = "visible"
    HIDDEN = "hidden"
    INVALID = "invalid"


class BoundaryKind(str, Enum):
    """Which edge of a window a boundary event marks."""

    START = "start"
    END = "end"


@dataclass(frozen=True, slots=True)
class BoundaryEvent:
    """Cache purge armed at a start or end boundary."""

    subject_id: int
    kind: BoundaryKind
    fires_at: int

    @property
    def identity(self) -> Tuple[int, str, int]:
        return (self.subject_id, self.kind.value, self.fires_at)

    def to_record(self) -> Dict[str, object]:
        return {"ts": self.fires_at, "type": self.kind.value}


@dataclass(frozen=True, slots=True)
class DeletionEvent:
    """Content prune armed at the end boundary of a deletable block."""

    subject_id: int
    fires_at: int

    @property
    def identity(self) -> Tuple[int, int]:
        return (self.subject_id, self.fires_at)

    def to_record(self) -> Dict[str, object]:
        return {"ts": self.fires_at}


Event = Union[BoundaryEvent, DeletionEvent]


@dataclass(frozen=True, slots=True)
class TaskIdentity:
    """Identity of an armed task: the hook name plus its arguments."""

    hook: str
    args: Tuple[object, ...]

    def encode(self) -> str:
        """Stable string form used as a queue member."""
        parts = [self.hook, *(str(arg) for arg in self.args)]
        return "|".join(parts)

    @classmethod
    def decode(cls, raw: str) -> "TaskIdentity":
        hook, *args = raw.split("|")
        return cls(hook=hook, args=tuple(_coerce_arg(arg) for arg in args))


def _coerce_arg(value: str) -> object:
    try:
        return int(value)
    except ValueError:
        return value


@dataclass(slots=True)
class OperationContext:
    """State scoped to one request or one task firing.

    Passed explicitly through the call chain instead of module-level flags.
    ``now`` pins the evaluation time for a task firing to the time it was
    claimed at; children inherit it.
    """

    suppress_reconcile: bool = False
    origin: str = "request"
    now: Optional[int] = None
    notes: Dict[str, object] = field(default_factory=dict)
    parent: Optional["OperationContext"] = None

    def child(self, *, suppress_reconcile: bool, origin: str) -> "OperationContext":
        return OperationContext(
            suppress_reconcile=suppress_reconcile,
            origin=origin,
            now=self.now,
            parent=self,
        )
