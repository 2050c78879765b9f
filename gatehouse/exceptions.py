"""
Domain errors.

Everything here is a caller-visible failure: a lookup that missed, an identity
collision, a cross-guard association, or a capability the actor lacks. None of
them are retried or converted to ``False`` inside the engine. The boundary
layer (see policies.py) decides how they surface.
"""

from __future__ import annotations

from typing import Iterable


class GatehouseError(Exception):
    """Base class for all authorization errors."""
    pass


# =============================================================================
# Not found
# =============================================================================


class NotFound(GatehouseError):
    """A lookup by unique key (name + guard, or id) found nothing."""

    entity = "entity"

    def __init__(self, name: str | None = None, guard: str | None = None, id: str | None = None):
        self.name = name
        self.guard = guard
        self.id = id
        super().__init__(self._message())

    def _message(self) -> str:
        if self.id is not None:
            return f"A {self.entity} with id `{self.id}` does not exist."
        if self.guard is not None:
            return f"A `{self.name}` {self.entity} does not exist for guard `{self.guard}`."
        return f"A `{self.name}` {self.entity} does not exist."


class PermissionDoesNotExist(NotFound):
    entity = "permission"


class RoleDoesNotExist(NotFound):
    entity = "role"


class AuthGroupDoesNotExist(NotFound):
    entity = "auth group"


class MembershipNotFound(GatehouseError):
    """The actor has no membership record in the given group."""

    def __init__(self, group: str, actor_id: str):
        self.group = group
        self.actor_id = actor_id
        super().__init__(f"Actor `{actor_id}` is not a member of auth group `{group}`.")


# =============================================================================
# Conflicts
# =============================================================================


class Conflict(GatehouseError):
    """Create collided with an existing identity."""

    entity = "entity"

    def __init__(self, name: str, guard: str | None = None):
        self.name = name
        self.guard = guard
        if guard is None:
            message = f"A {self.entity} `{name}` already exists."
        else:
            message = f"A {self.entity} `{name}` already exists for guard `{guard}`."
        super().__init__(message)


class PermissionAlreadyExists(Conflict):
    entity = "permission"


class RoleAlreadyExists(Conflict):
    entity = "role"


class AuthGroupAlreadyExists(Conflict):
    entity = "auth group"


# =============================================================================
# Guards
# =============================================================================


class GuardMismatch(GatehouseError):
    """Two entities from incompatible guards were being associated."""

    def __init__(self, guard: str, expected: Iterable[str]):
        self.guard = guard
        self.expected = list(expected)
        super().__init__(
            f"The given role or permission should use guard `{', '.join(self.expected)}` "
            f"instead of `{guard}`."
        )


class GuardConfigurationMissing(GatehouseError):
    """No guard mapping exists for a type anywhere in its hierarchy."""

    def __init__(self, target: str):
        self.target = target
        super().__init__(f"No guard is configured for `{target}`.")


# =============================================================================
# Capabilities
# =============================================================================


class CapabilityDenied(GatehouseError):
    """The actor lacks a capability required by the operation."""
    pass


class ActorCannotOwnAuthGroups(CapabilityDenied):
    def __init__(self, actor_id: str | None = None):
        self.actor_id = actor_id
        super().__init__(f"Actor `{actor_id}` is not allowed to own auth groups.")
