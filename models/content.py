"""Typed structures for scheduled content blocks and their serialized form.

Updates:
    v0.1 - 2026-03-02 - Added ContentNode tree and TimeWindow records.
    v0.2 - 2026-03-09 - Added JSON block codec mirroring the editor's block grammar.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from core.exceptions import ContentError


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Configured start/end strings of a scheduled block."""

    start: Optional[str] = None
    end: Optional[str] = None

    @classmethod
    def from_attributes(cls, attributes: Mapping[str, Any]) -> "TimeWindow":
        """Build a window from block attributes, ignoring non-string values."""
        start = attributes.get("start")
        end = attributes.get("end")
        return cls(
            start=start if isinstance(start, str) else None,
            end=end if isinstance(end, str) else None,
        )


@dataclass(frozen=True, slots=True)
class ContentNode:
    """A single block in a content tree."""

    kind: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    children: Tuple["ContentNode", ...] = ()
    html: str = ""


ContentTree = Tuple[ContentNode, ...]


def _node_from_payload(payload: object) -> ContentNode:
    if not isinstance(payload, dict):
        raise ContentError(f"Block payload must be an object, got {type(payload).__name__}")

    kind = payload.get("blockName") or ""
    if not isinstance(kind, str):
        raise ContentError("blockName must be a string or null")

    attrs = payload.get("attrs") or {}
    if not isinstance(attrs, dict):
        raise ContentError(f"attrs of block '{kind}' must be an object")

    inner = payload.get("innerBlocks") or []
    if not isinstance(inner, list):
        raise ContentError(f"innerBlocks of block '{kind}' must be a list")

    html = payload.get("innerHTML") or ""
    return ContentNode(
        kind=kind,
        attributes=dict(attrs),
        children=tuple(_node_from_payload(child) for child in inner),
        html=str(html),
    )


def parse_blocks(raw: str) -> ContentTree:
    """Decode serialized content into an immutable block tree."""
    if not raw or not raw.strip():
        return ()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ContentError(f"Invalid block JSON: {exc}") from exc
    if not isinstance(payload, list):
        raise ContentError("Serialized content must be a list of blocks")
    return tuple(_node_from_payload(item) for item in payload)


def _node_to_payload(node: ContentNode) -> Dict[str, object]:
    return {
        "blockName": node.kind or None,
        "attrs": dict(node.attributes),
        "innerBlocks": [_node_to_payload(child) for child in node.children],
        "innerHTML": node.html,
    }


def serialize_blocks(tree: Sequence[ContentNode]) -> str:
    """Encode a block tree back into its JSON representation."""
    payload: List[Dict[str, object]] = [_node_to_payload(node) for node in tree]
    return json.dumps(payload, sort_keys=True)
