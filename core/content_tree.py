"""Walking and pruning block trees.

Updates:
    v0.1 - 2026-03-03 - Added boundary extraction for cache purge scheduling.
    v0.2 - 2026-03-09 - Added deletable-only extraction and remove_expired pruning.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, List, Mapping, Sequence, Tuple

from core.clock import SiteClock
from models.content import ContentNode, ContentTree
from models.events import BoundaryKind

DELETE_FLAG = "deleteAfterEnd"

Boundary = Tuple[int, str]


def is_deletable(attributes: Mapping[str, Any]) -> bool:
    """Return True when a block is flagged for removal after its end."""
    flag = attributes.get(DELETE_FLAG)
    if isinstance(flag, str):
        return flag.strip().lower() in {"1", "true", "yes"}
    return bool(flag)


def find_nodes(tree: Sequence[ContentNode], kind: str) -> List[ContentNode]:
    """Pre-order list of every node of ``kind``."""
    found: List[ContentNode] = []
    for node in tree:
        if not node.kind:
            continue
        if node.kind == kind:
            found.append(node)
        found.extend(find_nodes(node.children, kind))
    return found


def _node_boundaries(
    node: ContentNode,
    now: int,
    clock: SiteClock,
    deletable_only: bool,
) -> List[Boundary]:
    attributes = node.attributes
    if deletable_only:
        if not is_deletable(attributes):
            return []
        fields = (("end", BoundaryKind.END),)
    else:
        fields = (("start", BoundaryKind.START), ("end", BoundaryKind.END))

    boundaries: List[Boundary] = []
    for name, kind in fields:
        value = attributes.get(name)
        if not isinstance(value, str):
            continue
        ts = clock.try_parse(value)
        if ts is not None and ts > now:
            boundaries.append((ts, kind.value))
    return boundaries


def find_boundaries(
    tree: Sequence[ContentNode],
    kind: str,
    now: int,
    clock: SiteClock,
    *,
    deletable_only: bool = False,
) -> List[Boundary]:
    """Collect future boundaries of ``kind`` nodes, depth-first pre-order.

    Only timestamps strictly after ``now`` are returned. Freeform nodes
    (empty kind) are skipped together with their children.
    """
    boundaries: List[Boundary] = []
    for node in tree:
        if not node.kind:
            continue
        if node.kind == kind:
            boundaries.extend(_node_boundaries(node, now, clock, deletable_only))
        if node.children:
            boundaries.extend(
                find_boundaries(
                    node.children, kind, now, clock, deletable_only=deletable_only
                )
            )
    return boundaries


def _is_expired(node: ContentNode, kind: str, now: int, clock: SiteClock) -> bool:
    if node.kind != kind or not is_deletable(node.attributes):
        return False
    end_value = node.attributes.get("end")
    if not isinstance(end_value, str):
        return False
    end = clock.try_parse(end_value)
    return end is not None and end <= now


def remove_expired(
    tree: Sequence[ContentNode],
    kind: str,
    now: int,
    clock: SiteClock,
) -> Tuple[ContentTree, bool]:
    """Return a new tree without expired deletable nodes, and a changed flag.

    An expired node is dropped with its whole subtree. Surviving nodes are
    searched recursively. Nodes whose end does not parse are kept.
    """
    kept: List[ContentNode] = []
    changed = False
    for node in tree:
        if _is_expired(node, kind, now, clock):
            changed = True
            continue
        if node.children:
            children, child_changed = remove_expired(node.children, kind, now, clock)
            if child_changed:
                node = replace(node, children=children)
                changed = True
        kept.append(node)
    return tuple(kept), changed
