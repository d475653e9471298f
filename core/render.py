"""Render boundary for scheduled blocks.

Rendering never leaks hidden content: a hidden or invalid window yields the
configured placeholder or nothing at all.

Updates:
    v0.1 - 2026-03-03 - Added block rendering with placeholder support.
    v0.2 - 2026-03-04 - Added role-based schedule bypass and the editor badge.
"""

from __future__ import annotations

import html
from dataclasses import dataclass
from datetime import datetime
from typing import Any, FrozenSet, Iterable, Mapping, Optional, Sequence

from config.settings import VISITOR_ROLE
from core.clock import SiteClock
from core.time_window import evaluate, resolve_window
from models.content import ContentNode, TimeWindow
from models.events import Verdict

EMPTY_BOUND = "—"


@dataclass(frozen=True, slots=True)
class Viewer:
    """The person a page is rendered for."""

    roles: FrozenSet[str] = frozenset()
    logged_in: bool = False

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls()

    @classmethod
    def member(cls, roles: Iterable[str]) -> "Viewer":
        return cls(roles=frozenset(roles), logged_in=True)


@dataclass(frozen=True, slots=True)
class VisibilityPolicy:
    """Roles that see scheduled blocks regardless of their window."""

    allowed_roles: FrozenSet[str]

    @classmethod
    def from_roles(cls, roles: object, known_roles: Sequence[str]) -> "VisibilityPolicy":
        """Sanitise a configured allow-list against the known roles.

        Anything other than a list falls back to every known role.
        """
        if not isinstance(roles, (list, tuple)):
            return cls(allowed_roles=frozenset(known_roles))
        valid = set(known_roles) | {VISITOR_ROLE}
        cleaned = {str(role).strip().lower() for role in roles}
        return cls(allowed_roles=frozenset(cleaned & valid))

    def can_bypass(self, viewer: Viewer) -> bool:
        if viewer.logged_in:
            return any(role in self.allowed_roles for role in viewer.roles)
        return VISITOR_ROLE in self.allowed_roles


def placeholder_html(attributes: Mapping[str, Any]) -> str:
    if not attributes.get("showPlaceholder"):
        return ""
    text = html.escape(str(attributes.get("placeholderText") or ""))
    return f'<div class="scblk-placeholder" aria-hidden="true">{text}</div>'


def _format_bound(ts: Optional[int], clock: SiteClock, is_editor: bool) -> str:
    if ts is None:
        return EMPTY_BOUND
    moment = datetime.fromtimestamp(ts, tz=clock.tz)
    if is_editor:
        hour = moment.hour % 12 or 12
        suffix = "am" if moment.hour < 12 else "pm"
        return f"{moment:%B} {moment.day} {moment:%Y} at {hour}:{moment:%M}{suffix}"
    return f"{moment:%Y-%m-%d %H:%M}"


def schedule_badge(attributes: Mapping[str, Any], clock: SiteClock, is_editor: bool) -> str:
    """Small summary of a block's schedule, shown in editor previews."""
    resolved = resolve_window(TimeWindow.from_attributes(attributes), clock)
    start = _format_bound(resolved.start, clock, is_editor)
    end = _format_bound(resolved.end, clock, is_editor)
    context = "Editor preview" if is_editor else "Frontend view"
    return (
        '<div class="scblk-badge"><strong>Scheduled Content:</strong> {context} | '
        "<strong>Start:</strong> {start} | <strong>End:</strong> {end} | "
        "<strong>TZ:</strong> {tz}</div>"
    ).format(
        context=html.escape(context),
        start=html.escape(start),
        end=html.escape(end),
        tz=html.escape(clock.timezone_name or "UTC"),
    )


def render_block(
    attributes: Mapping[str, Any],
    content: str,
    *,
    viewer: Viewer,
    policy: VisibilityPolicy,
    clock: SiteClock,
    now: Optional[int] = None,
    is_editor: bool = False,
) -> str:
    """Return the markup a viewer should see for one scheduled block."""
    if is_editor:
        badge = schedule_badge(attributes, clock, True)
        return f'<div class="scblk-editor-wrap">{badge}{content}</div>'

    if policy.can_bypass(viewer):
        return content

    current = clock.now() if now is None else now
    verdict = evaluate(TimeWindow.from_attributes(attributes), current, clock)
    if verdict is Verdict.VISIBLE:
        return content
    return placeholder_html(attributes)


def render_tree(
    tree: Sequence[ContentNode],
    kind: str,
    *,
    viewer: Viewer,
    policy: VisibilityPolicy,
    clock: SiteClock,
    now: Optional[int] = None,
) -> str:
    """Render a whole block tree, applying schedules to ``kind`` blocks."""
    current = clock.now() if now is None else now
    parts = []
    for node in tree:
        inner = node.html + render_tree(
            node.children, kind, viewer=viewer, policy=policy, clock=clock, now=current
        )
        if node.kind == kind:
            inner = render_block(
                node.attributes, inner, viewer=viewer, policy=policy, clock=clock, now=current
            )
        parts.append(inner)
    return "".join(parts)
