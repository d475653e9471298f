"""Per-subject persisted event sets.

Each concern (cache purge, deletion) keeps one record per subject listing
the events currently armed in the task queue. The record is a JSON list of
``{"ts": int, "type": "start"|"end"}`` (purge) or ``{"ts": int}`` (delete).

Updates:
    v0.1 - 2026-03-04 - Added Redis and in-memory event stores.
    v0.2 - 2026-03-07 - Corrupt records now degrade to an empty set.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from config.settings import StoreConfig
from core.exceptions import StoreCorrupt
from core.redis_support import RedisBacked
from models.events import BoundaryEvent, BoundaryKind, DeletionEvent, Event

PURGE_CONCERN = "purge"
DELETE_CONCERN = "delete"
CONCERNS = (PURGE_CONCERN, DELETE_CONCERN)

LOGGER = logging.getLogger("scb.store")


def encode_events(events: Sequence[Event]) -> str:
    return json.dumps([event.to_record() for event in events])


def _decode_entry(concern: str, subject_id: int, entry: object) -> Event:
    if not isinstance(entry, dict):
        raise StoreCorrupt(f"event entry is not an object: {entry!r}")
    ts = entry.get("ts")
    if isinstance(ts, bool) or not isinstance(ts, int) or ts <= 0:
        raise StoreCorrupt(f"event entry has no valid timestamp: {entry!r}")
    if concern == DELETE_CONCERN:
        return DeletionEvent(subject_id=subject_id, fires_at=ts)
    try:
        kind = BoundaryKind(entry.get("type"))
    except ValueError as exc:
        raise StoreCorrupt(f"event entry has no valid type: {entry!r}") from exc
    return BoundaryEvent(subject_id=subject_id, kind=kind, fires_at=ts)


def decode_events(concern: str, subject_id: int, raw: Optional[str]) -> List[Event]:
    """Decode a stored record; malformed entries are skipped.

    Raises StoreCorrupt when the record as a whole is unreadable.
    """
    if raw is None or raw == "":
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise StoreCorrupt(f"event set is not valid JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise StoreCorrupt("event set is not a list")

    events: List[Event] = []
    for entry in payload:
        try:
            event = _decode_entry(concern, subject_id, entry)
        except StoreCorrupt as exc:
            LOGGER.warning("Skipping %s event for subject %s: %s", concern, subject_id, exc)
            continue
        if event not in events:
            events.append(event)
    return events


class InMemoryEventStore:
    """Event store kept in process memory."""

    def __init__(self, concern: str) -> None:
        self.concern = concern
        self._records: Dict[int, str] = {}

    def load(self, subject_id: int) -> List[Event]:
        try:
            return decode_events(self.concern, subject_id, self._records.get(subject_id))
        except StoreCorrupt as exc:
            LOGGER.warning(
                "Corrupt %s event set for subject %s (%s); treating as empty.",
                self.concern,
                subject_id,
                exc,
            )
            return []

    def save(self, subject_id: int, events: Sequence[Event]) -> None:
        if not events:
            self.clear(subject_id)
            return
        self._records[subject_id] = encode_events(events)

    def clear(self, subject_id: int) -> None:
        self._records.pop(subject_id, None)

    def subjects(self) -> List[int]:
        return sorted(self._records)

    def write_raw(self, subject_id: int, raw: str) -> None:
        """Store an arbitrary payload; used to simulate legacy or damaged records."""
        self._records[subject_id] = raw


class RedisEventStore(RedisBacked):
    """Event store persisted in Redis, one string key per subject."""

    def __init__(
        self,
        concern: str,
        store_cfg: StoreConfig,
        client: Optional[Any] = None,
    ) -> None:
        self.concern = concern
        self._fallback = InMemoryEventStore(concern)
        super().__init__(store_cfg, client=client, logger_name="scb.store.redis")

    def _subject_key(self, subject_id: int) -> str:
        return self._key("events", self.concern, subject_id)

    def load(self, subject_id: int) -> List[Event]:
        if self._ensure_client():
            try:
                raw = self._client.get(self._subject_key(subject_id))
            except Exception as exc:  # pragma: no cover - client failure path
                self._drop_client("read", exc)
            else:
                if isinstance(raw, bytes):
                    raw = raw.decode("utf-8", errors="replace")
                try:
                    return decode_events(self.concern, subject_id, raw)
                except StoreCorrupt as exc:
                    self._logger.warning(
                        "Corrupt %s event set for subject %s (%s); treating as empty.",
                        self.concern,
                        subject_id,
                        exc,
                    )
                    return []

        return self._fallback.load(subject_id)

    def save(self, subject_id: int, events: Sequence[Event]) -> None:
        if not events:
            self.clear(subject_id)
            return
        if self._ensure_client():
            try:
                self._client.set(self._subject_key(subject_id), encode_events(events))
                return
            except Exception as exc:  # pragma: no cover
                self._drop_client("write", exc)

        self._fallback.save(subject_id, events)

    def clear(self, subject_id: int) -> None:
        if self._ensure_client():
            try:
                self._client.delete(self._subject_key(subject_id))
                return
            except Exception as exc:  # pragma: no cover
                self._drop_client("deletion", exc)

        self._fallback.clear(subject_id)

    def subjects(self) -> List[int]:
        if self._ensure_client():
            try:
                prefix = self._key("events", self.concern, "")
                found: List[int] = []
                for key in self._client.scan_iter(match=prefix + "*"):
                    text = key.decode("utf-8") if isinstance(key, bytes) else str(key)
                    suffix = text[len(prefix):]
                    if suffix.isdigit():
                        found.append(int(suffix))
                return sorted(found)
            except Exception as exc:  # pragma: no cover
                self._drop_client("enumeration", exc)

        return self._fallback.subjects()
