"""Site clock: current time and site-timezone-aware parsing.

Updates:
    v0.1 - 2026-03-02 - Added SiteClock and deterministic FixedClock.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, tzinfo
from threading import Lock
from typing import Optional
from zoneinfo import ZoneInfo

from core.exceptions import ParseError

_EXPLICIT_ZONE = re.compile(r"(Z|[+\-]\d{2}:?\d{2})$", re.IGNORECASE)


def has_explicit_zone(value: str) -> bool:
    """Return True when the string ends with Z or a numeric UTC offset."""
    return bool(_EXPLICIT_ZONE.search(value.strip()))


def parse_timestamp(value: str, site_tz: tzinfo) -> int:
    """Parse an ISO 8601 string into epoch seconds.

    Strings carrying a zone marker are absolute instants; bare strings are
    wall-clock times in ``site_tz``.
    """
    if not isinstance(value, str):
        raise ParseError(f"Expected a date/time string, got {type(value).__name__}")
    text = value.strip()
    if not text:
        raise ParseError("Empty date/time string")

    explicit = has_explicit_zone(text)
    candidate = text
    if explicit and candidate[-1] in "zZ":
        candidate = candidate[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ParseError(f"Unparseable date/time '{value}': {exc}") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=site_tz)
    return int(parsed.timestamp())


class SiteClock:
    """Wall clock bound to the site's configured timezone."""

    def __init__(self, timezone_name: str = "UTC") -> None:
        self._timezone_name = timezone_name
        self._tz = ZoneInfo(timezone_name)

    @property
    def timezone_name(self) -> str:
        return self._timezone_name

    @property
    def tz(self) -> tzinfo:
        return self._tz

    def now(self) -> int:
        """Epoch seconds; timezone-agnostic."""
        return int(time.time())

    def parse(self, value: str) -> int:
        return parse_timestamp(value, self._tz)

    def try_parse(self, value: Optional[str]) -> Optional[int]:
        """Parse ``value`` or return None for unset and unparseable input."""
        if not value:
            return None
        try:
            return self.parse(value)
        except ParseError:
            return None


class FixedClock(SiteClock):
    """Deterministic clock used for tests and replays.

    Time only moves when :meth:`advance` or :meth:`set` is called.
    """

    def __init__(self, now: int, timezone_name: str = "UTC") -> None:
        super().__init__(timezone_name)
        self._current = int(now)
        self._lock = Lock()

    def now(self) -> int:
        with self._lock:
            return self._current

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        with self._lock:
            self._current += int(seconds)
            return self._current

    def set(self, now: int) -> None:
        with self._lock:
            self._current = int(now)
