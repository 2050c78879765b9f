"""
Auth context - "what can this actor do" bound to one actor.

This is the lightweight object handed to route handlers and templates. It
delegates every question to the Gate, so it never holds stale answers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from gatehouse.core.models import Actor, AuthGroup, AuthGroupUser, Permission

if TYPE_CHECKING:
    from gatehouse.gate import Gate, GroupLike, PermissionLike, RoleLike


@dataclass
class AuthContext:
    """
    Authorization context for one actor.

    Usage in routes:
        async def my_route(ctx: AuthContext = Depends(require("edit post"))):
            if ctx.can("publish post"):
                # do something
    """

    actor: Actor
    gate: Gate

    # Extra context
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def actor_id(self) -> str:
        return self.actor.id

    # =========================================================================
    # Permissions
    # =========================================================================

    def has_permission_to(self, *permissions: PermissionLike) -> bool:
        """True if the actor has ALL of the permissions."""
        return self.gate.has_permission_to(self.actor, *permissions)

    def can(self, permission: PermissionLike) -> bool:
        """
        Check a single permission.

        Usage:
            if ctx.can("edit post"):
                # do something
        """
        return self.gate.can(self.actor, permission)

    def can_any(self, *permissions: PermissionLike) -> bool:
        """True if the actor has ANY of the permissions."""
        return self.gate.has_any_permission(self.actor, *permissions)

    def can_all(self, *permissions: PermissionLike) -> bool:
        return self.gate.has_permission_to(self.actor, *permissions)

    def is_allowed_to(self, permission: PermissionLike) -> bool:
        return self.gate.has_permission_to(self.actor, permission)

    def require(self, permission: PermissionLike) -> None:
        """
        Raise if the actor doesn't have the permission.

        Usage:
            ctx.require("edit post")  # raises 403 if not allowed
        """
        if not self.can(permission):
            from fastapi import HTTPException
            raise HTTPException(
                status_code=403,
                detail=f"Permission denied: {permission}"
            )

    @property
    def permissions(self) -> list[Permission]:
        """Every permission the actor resolves to."""
        return self.gate.get_all_permissions(self.actor)

    # =========================================================================
    # Roles
    # =========================================================================

    def has_role(self, roles: RoleLike | Any, guard: str | None = None) -> bool:
        return self.gate.has_role(self.actor, roles, guard)

    def has_all_roles(self, roles: Any, guard: str | None = None) -> bool:
        return self.gate.has_all_roles(self.actor, roles, guard)

    # =========================================================================
    # Auth groups
    # =========================================================================

    def is_one_of(self, groups: GroupLike | Any) -> bool:
        return self.gate.is_one_of(self.actor, groups)

    def is_one_of_all(self, groups: Any) -> bool:
        return self.gate.is_one_of_all(self.actor, groups)

    def owns(self, group: GroupLike) -> bool:
        return self.gate.owns_auth_group(self.actor, group)

    @property
    def current_auth_group(self) -> AuthGroup | None:
        return self.gate.current_auth_group(self.actor)

    def on_auth_group(self, group: GroupLike) -> AuthGroupUser:
        return self.gate.on_auth_group(self.actor, group)

    def can_on_auth_group(self, group: GroupLike, *permissions: PermissionLike) -> bool:
        return self.gate.has_permission_on_auth_group(self.actor, group, *permissions)
