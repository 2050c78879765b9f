"""
Core data models.

Permissions and roles are guard-scoped; auth groups are not. Relations are
persisted as edge records by the stores and loaded onto the models as plain
lists (``permissions``), which are never written back as part of the record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, ClassVar, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from gatehouse.core.utils import edge_id, generate_id, utc_now
from gatehouse.storage.base import Collections


# =============================================================================
# Permission
# =============================================================================


class Permission(BaseModel):
    """An atomic, named capability scoped to a guard."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("perm"))
    name: str
    guard: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.guard)

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# Permission holders
# =============================================================================


@runtime_checkable
class PermissionHolder(Protocol):
    """
    Anything permissions can be given to.

    ``permission_table`` is the edge collection and ``permission_key`` the
    column on it that points back at the holder.
    """

    permission_table: ClassVar[str]
    permission_key: ClassVar[str]
    id: str


class HasPermissions(BaseModel):
    """Shared behavior for records that hold a loaded set of permissions."""

    permissions: list[Permission] = Field(default_factory=list, exclude=True)

    def has_permission_to(self, permission: Permission | str) -> bool:
        """
        Verify the holder has a permission.

        Entities match by identity, strings by name.
        """
        if isinstance(permission, Permission):
            return any(p.id == permission.id for p in self.permissions)
        return any(p.name == permission for p in self.permissions)

    def permission_names(self) -> list[str]:
        return [p.name for p in self.permissions]

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


# =============================================================================
# Role
# =============================================================================


class Role(HasPermissions):
    """A named, guard-scoped bundle of permissions."""

    permission_table: ClassVar[str] = Collections.ROLE_PERMISSIONS
    permission_key: ClassVar[str] = "role_id"

    id: str = Field(default_factory=lambda: generate_id("role"))
    name: str
    guard: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def key(self) -> tuple[str, str]:
        return (self.name, self.guard)


# =============================================================================
# Auth groups
# =============================================================================


class AuthGroup(HasPermissions):
    """
    A named collection of actors with an owner.

    Groups hold permissions directly and can have roles attached, whose
    permissions then flow to every member.
    """

    permission_table: ClassVar[str] = Collections.AUTH_GROUP_PERMISSIONS
    permission_key: ClassVar[str] = "auth_group_id"

    id: str = Field(default_factory=lambda: generate_id("grp"))
    name: str
    description: str | None = None
    owner_id: str
    active: bool = True
    created_at: datetime = Field(default_factory=utc_now)

    def is_owned_by(self, actor: Actor) -> bool:
        return self.owner_id == actor.id

    def is_active(self) -> bool:
        return self.active


class AuthGroupUser(HasPermissions):
    """
    Membership of an actor in an auth group.

    Carries the member's role label ("Owner", "User", ...) and any
    permissions granted at the membership level.
    """

    permission_table: ClassVar[str] = Collections.AUTH_GROUP_USER_PERMISSIONS
    permission_key: ClassVar[str] = "auth_group_user_id"

    auth_group_id: str
    user_id: str
    role: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def id(self) -> str:
        return edge_id(self.auth_group_id, self.user_id)


# =============================================================================
# Actor
# =============================================================================


class Actor(BaseModel):
    """
    Base for host actor types (users, service accounts, ...).

    Subclasses declare their guard(s) either here:

        class User(Actor):
            guard_name: ClassVar[str] = "web"

    or through Settings.guards keyed by class name.
    """

    permission_table: ClassVar[str] = Collections.USER_PERMISSIONS
    permission_key: ClassVar[str] = "user_id"

    # Table the actor record lives in; None falls back to Settings.actor_collection
    collection: ClassVar[str | None] = None
    guard_name: ClassVar[str | list[str] | None] = None

    id: str = Field(default_factory=lambda: generate_id("user"))
    current_auth_group_id: str | None = None

    def can_own_auth_groups(self) -> bool:
        """Capability hook, override to restrict group creation."""
        return True
