"""
Template directives.

Conditional rendering for a presentation layer: enclosed content comes out
only if the current actor qualifies. Engine-agnostic; ``template_globals``
returns plain callables that can be dropped into Jinja's ``env.globals`` or
any other template context.

    {{ authgroup("sales|marketing", "<a href='/leads'>Leads</a>") }}
"""

from __future__ import annotations

from typing import Any, Callable

from gatehouse.core.models import Actor
from gatehouse.gate import Gate

Content = str | Callable[[], str]


def _render(allowed: bool, content: Content, otherwise: Content) -> str:
    chosen = content if allowed else otherwise
    return chosen() if callable(chosen) else chosen


class Directives:
    """Render-if checks bound to a gate."""

    def __init__(self, gate: Gate):
        self.gate = gate

    def authgroup(self, actor: Actor | None, groups: Any, content: Content, otherwise: Content = "") -> str:
        """Render if the actor owns or belongs to any of the groups."""
        allowed = actor is not None and self.gate.is_one_of(actor, groups)
        return _render(allowed, content, otherwise)

    def authgroups(self, actor: Actor | None, groups: Any, content: Content, otherwise: Content = "") -> str:
        """Render if the actor belongs to every one of the groups."""
        allowed = actor is not None and self.gate.is_one_of_all(actor, groups)
        return _render(allowed, content, otherwise)

    def role(self, actor: Actor | None, roles: Any, content: Content, otherwise: Content = "") -> str:
        allowed = actor is not None and self.gate.has_role(actor, roles)
        return _render(allowed, content, otherwise)

    def permission(self, actor: Actor | None, permission: Any, content: Content, otherwise: Content = "") -> str:
        allowed = actor is not None and self.gate.can(actor, permission)
        return _render(allowed, content, otherwise)

    def template_globals(self, actor: Actor | None) -> dict[str, Callable[..., str]]:
        """The directives with the current actor already bound."""
        return {
            "authgroup": lambda groups, content, otherwise="": self.authgroup(actor, groups, content, otherwise),
            "authgroups": lambda groups, content, otherwise="": self.authgroups(actor, groups, content, otherwise),
            "role": lambda roles, content, otherwise="": self.role(actor, roles, content, otherwise),
            "permission": lambda permission, content, otherwise="": self.permission(actor, permission, content, otherwise),
        }
