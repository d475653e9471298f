"""Time window evaluation for scheduled blocks.

A window with a bound that is configured but unparseable, or whose start is
after its end, is invalid. Invalid windows hide content just like windows
that are not yet open or already closed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.exceptions import ParseError
from core.ports import ClockPort
from models.content import TimeWindow
from models.events import Verdict


@dataclass(frozen=True, slots=True)
class ResolvedWindow:
    """A window with its bounds converted to epoch seconds."""

    start: Optional[int]
    end: Optional[int]
    invalid: bool


def _resolve_bound(value: Optional[str], clock: ClockPort) -> tuple[Optional[int], bool]:
    if value is None or value == "":
        return None, False
    try:
        return clock.parse(value), False
    except ParseError:
        return None, True


def resolve_window(window: TimeWindow, clock: ClockPort) -> ResolvedWindow:
    """Parse both bounds of ``window`` and flag invalid configurations."""
    start, start_failed = _resolve_bound(window.start, clock)
    end, end_failed = _resolve_bound(window.end, clock)
    reversed_range = start is not None and end is not None and start > end
    return ResolvedWindow(
        start=start,
        end=end,
        invalid=start_failed or end_failed or reversed_range,
    )


def evaluate(window: TimeWindow, now: int, clock: ClockPort) -> Verdict:
    """Return the visibility verdict of ``window`` at ``now``."""
    resolved = resolve_window(window, clock)
    if resolved.invalid:
        return Verdict.INVALID

    visible = True
    if resolved.start is not None and resolved.end is not None:
        visible = resolved.start <= now <= resolved.end
    elif resolved.start is not None:
        visible = now >= resolved.start
    elif resolved.end is not None:
        visible = now <= resolved.end

    return Verdict.VISIBLE if visible else Verdict.HIDDEN
