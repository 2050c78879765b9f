"""
The resolution engine.

``Gate`` answers "may this actor do X?" and carries the mutation surface
that changes the answer. Operations take the actor explicitly; ``for_actor``
returns an AuthContext bound to one actor for ergonomic use.

Resolution of one permission P for actor A:

    0. P's guard is not one of A's guards           -> False
    1. A holds P directly                           -> True
    2. A is a member or owner of a group holding P  -> True
    3. A holds a role granting P, directly or
       through a role attached to one of its groups -> True
    4. otherwise                                    -> False

Lookups that fail raise (PermissionDoesNotExist, RoleDoesNotExist, ...);
nothing here defaults to True.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Iterable

from gatehouse.cache import GrantGraph, ResolutionCache
from gatehouse.config import Settings, get_settings
from gatehouse.core.models import (
    Actor,
    AuthGroup,
    AuthGroupUser,
    HasPermissions,
    Permission,
    PermissionHolder,
    Role,
)
from gatehouse.core.utils import is_delimited_list, split_names
from gatehouse.exceptions import GuardMismatch, MembershipNotFound
from gatehouse.guards import GuardRegistry
from gatehouse.storage.base import Collections, MetadataStorage
from gatehouse.storage.local import create_local_storage
from gatehouse.stores import AuthGroupStore, PermissionStore, RoleStore

if TYPE_CHECKING:
    from gatehouse.context import AuthContext

logger = logging.getLogger(__name__)


PermissionLike = Permission | str
RoleLike = Role | str
GroupLike = AuthGroup | str


@dataclass(frozen=True)
class ActorGrants:
    """Everything about one actor that resolution needs, loaded once per check."""

    guards: tuple[str, ...]
    permission_ids: frozenset[str]
    group_ids: frozenset[str]
    role_ids: frozenset[str]


class Gate:
    """
    Authorization engine over the permission, role and auth group stores.

    Usage:
        gate = Gate()
        editor = gate.roles.create("editor")
        gate.give_permission_to(editor, gate.permissions.create("edit post"))
        gate.assign_role(user, "editor")

        gate.has_permission_to(user, "edit post")   # True
        gate.for_actor(user).can("edit post")       # True
    """

    def __init__(
        self,
        storage: MetadataStorage | None = None,
        settings: Settings | None = None,
        cache: ResolutionCache | None = None,
        guards: GuardRegistry | None = None,
    ):
        self.settings = settings or get_settings()
        self.storage = storage or create_local_storage()
        self.guards = guards or GuardRegistry(self.settings)
        self.cache = cache or ResolutionCache(self.storage, enabled=self.settings.cache_enabled)

        stores = (self.storage, self.cache, self.guards, self.settings)
        self.permissions = PermissionStore(*stores)
        self.roles = RoleStore(*stores)
        self.auth_groups = AuthGroupStore(*stores)

    def for_actor(self, actor: Actor) -> AuthContext:
        """Bind this gate to one actor."""
        from gatehouse.context import AuthContext
        return AuthContext(actor=actor, gate=self)

    # =========================================================================
    # Argument normalization
    # =========================================================================

    def resolve_permission(self, permission: PermissionLike, guard: str | None = None) -> Permission:
        if isinstance(permission, Permission):
            return permission
        return self.permissions.find_by_name(permission, guard)

    def resolve_permissions(self, permissions: Iterable[Any], guard: str | None = None) -> list[Permission]:
        """Resolve names/entities, flattening nested lists, before any logic runs."""
        return [self.resolve_permission(p, guard) for p in _flatten(permissions)]

    def resolve_role(self, role: RoleLike, guard: str | None = None) -> Role:
        if isinstance(role, Role):
            return role
        return self.roles.find_by_name(role, guard)

    def resolve_roles(self, roles: Iterable[Any], guard: str | None = None) -> list[Role]:
        return [self.resolve_role(r, guard) for r in _flatten(roles)]

    # =========================================================================
    # Permission checks
    # =========================================================================

    def has_permission_to(self, actor: Actor, *permissions: PermissionLike) -> bool:
        """
        True if the actor has every one of the permissions.

        Strings resolve by name within the actor's default guard; an unknown
        name raises PermissionDoesNotExist.
        """
        if not permissions:
            raise TypeError("has_permission_to() needs at least one permission")

        resolved = self.resolve_permissions(permissions, self.guards.get_default_guard(actor))
        grants = self.actor_grants(actor)
        graph = self.cache.get()
        return all(self._holds(grants, permission, graph) for permission in resolved)

    def has_any_permission(self, actor: Actor, *permissions: PermissionLike) -> bool:
        """True if the actor has at least one of the permissions."""
        if not permissions:
            raise TypeError("has_any_permission() needs at least one permission")

        resolved = self.resolve_permissions(permissions, self.guards.get_default_guard(actor))
        grants = self.actor_grants(actor)
        graph = self.cache.get()
        return any(self._holds(grants, permission, graph) for permission in resolved)

    def can(self, actor: Actor, permission: PermissionLike) -> bool:
        """
        Legacy single-permission check.

        Takes exactly one permission; use has_permission_to for several.
        """
        return self.has_permission_to(actor, permission)

    def has_direct_permission(self, actor: Actor, permission: PermissionLike) -> bool:
        permission = self.resolve_permission(permission, self.guards.get_default_guard(actor))
        return permission.id in self.permissions.permission_ids_for(actor)

    def is_granted_for(self, permission: Permission, actor: Actor) -> bool:
        """Whether a permission reaches the actor through any role (step 3 only)."""
        grants = self.actor_grants(actor)
        return self._granted_by_role(grants, permission, self.cache.get())

    def actor_grants(self, actor: Actor) -> ActorGrants:
        member_ids = self.auth_groups.group_ids_for(actor)
        owned_ids = [group.id for group in self.auth_groups.owned_by(actor)]
        group_ids = frozenset(member_ids) | frozenset(owned_ids)

        return ActorGrants(
            guards=tuple(self.guards.get_guard_names(actor)),
            permission_ids=frozenset(self.permissions.permission_ids_for(actor)),
            group_ids=group_ids,
            role_ids=frozenset(self.roles.role_ids_for(actor) | self.auth_groups.role_ids_for(group_ids)),
        )

    def _holds(self, grants: ActorGrants, permission: Permission, graph: GrantGraph) -> bool:
        if permission.guard not in grants.guards:
            return False

        if permission.id in grants.permission_ids:
            return True

        if graph.grants_for(permission).group_ids & grants.group_ids:
            return True

        return self._granted_by_role(grants, permission, graph)

    def _granted_by_role(self, grants: ActorGrants, permission: Permission, graph: GrantGraph) -> bool:
        if permission.guard not in grants.guards:
            return False
        return any(
            graph.role_guard(role_id) in grants.guards
            for role_id in graph.grants_for(permission).role_ids & grants.role_ids
        )

    def get_direct_permissions(self, actor: Actor) -> list[Permission]:
        return self.permissions.load_permissions(actor)

    def get_all_permissions(self, actor: Actor) -> list[Permission]:
        """Every permission the actor resolves to, by any path."""
        grants = self.actor_grants(actor)
        graph = self.cache.get()
        return sorted(
            (p for p in graph.permissions.values() if self._holds(grants, p, graph)),
            key=lambda p: (p.guard, p.name),
        )

    def has_permission_on_auth_group(self, actor: Actor, group: GroupLike, *permissions: PermissionLike) -> bool:
        """
        True if the actor has every permission within one group.

        Counts grants on the actor's membership, grants on the group itself
        and roles attached to the group. Non-members get False.
        """
        if not permissions:
            raise TypeError("has_permission_on_auth_group() needs at least one permission")

        group = self.auth_groups.get(group)
        try:
            membership = self.auth_groups.membership(actor, group)
        except MembershipNotFound:
            return False

        guards = self.guards.get_guard_names(actor)
        resolved = self.resolve_permissions(permissions, guards[0])
        graph = self.cache.get()
        group_role_ids = self.auth_groups.role_ids_for([group.id])

        def holds(permission: Permission) -> bool:
            if permission.guard not in guards:
                return False
            if membership.has_permission_to(permission):
                return True
            grants = graph.grants_for(permission)
            return group.id in grants.group_ids or bool(grants.role_ids & group_role_ids)

        return all(holds(permission) for permission in resolved)

    # =========================================================================
    # Role checks
    # =========================================================================

    def has_role(self, actor: Actor, roles: Any, guard: str | None = None) -> bool:
        """
        True if the actor has any of the roles.

        Accepts a name, a "a|b" list, a Role, or an iterable of those.
        """
        return self._match_roles(actor, roles, guard, any)

    def has_any_role(self, actor: Actor, *roles: Any) -> bool:
        return self.has_role(actor, list(roles))

    def has_all_roles(self, actor: Actor, roles: Any, guard: str | None = None) -> bool:
        return self._match_roles(actor, roles, guard, all)

    def get_role_names(self, actor: Actor) -> list[str]:
        return [role.name for role in self.roles.roles_for(actor)]

    def _match_roles(self, actor: Actor, roles: Any, guard: str | None, combine) -> bool:
        if is_delimited_list(roles):
            roles = split_names(roles)

        held = self.roles.roles_for(actor)
        if guard:
            held = [role for role in held if role.guard == guard]

        def matches(role: RoleLike) -> bool:
            if isinstance(role, Role):
                return any(r.id == role.id for r in held)
            return any(r.name == role for r in held)

        if isinstance(roles, (str, Role)):
            return matches(roles)
        return combine(matches(role) for role in _flatten(roles))

    # =========================================================================
    # Group checks
    # =========================================================================

    def is_one_of(self, actor: Actor, groups: Any) -> bool:
        """True if the actor owns or belongs to any of the groups."""
        return self.is_one_of_any(actor, groups)

    def is_one_of_any(self, actor: Actor, groups: Any) -> bool:
        if is_delimited_list(groups):
            groups = split_names(groups)

        if isinstance(groups, str):
            return self._belongs_to_or_owns(actor, "name", groups)

        if isinstance(groups, AuthGroup):
            return self._belongs_to_or_owns(actor, "id", groups.id)

        return any(self.is_one_of_any(actor, group) for group in groups)

    def is_one_of_all(self, actor: Actor, groups: Any) -> bool:
        """True if the actor is a member of every one of the groups."""
        if is_delimited_list(groups):
            groups = split_names(groups)

        member_of = self.auth_groups.groups_for(actor)

        if isinstance(groups, str):
            return any(group.name == groups for group in member_of)

        if isinstance(groups, AuthGroup):
            return any(group.id == groups.id for group in member_of)

        names = [group.name if isinstance(group, AuthGroup) else group for group in groups]
        member_names = {group.name for group in member_of}
        return all(name in member_names for name in names)

    def owns_auth_group(self, actor: Actor, group: GroupLike) -> bool:
        return self.auth_groups.get(group).is_owned_by(actor)

    def belongs_to_any_auth_group(self, actor: Actor) -> bool:
        return bool(self.auth_groups.group_ids_for(actor))

    def get_auth_group_names(self, actor: Actor) -> list[str]:
        return [group.name for group in self.auth_groups.groups_for(actor)]

    def _belongs_to_or_owns(self, actor: Actor, key: str, value: str) -> bool:
        if any(getattr(group, key) == value for group in self.auth_groups.owned_by(actor)):
            return True
        return any(getattr(group, key) == value for group in self.auth_groups.groups_for(actor))

    # =========================================================================
    # Current group
    # =========================================================================

    def current_auth_group(self, actor: Actor) -> AuthGroup | None:
        return self.auth_groups.current_group(actor)

    def current_auth_group_name(self, actor: Actor) -> str | None:
        group = self.current_auth_group(actor)
        return group.name if group is not None else None

    def refresh_current_auth_group(self, actor: Actor) -> AuthGroup | None:
        return self.auth_groups.refresh_current_group(actor)

    def on_active_auth_group(self, actor: Actor) -> bool:
        """Whether the actor's current group exists and is active."""
        group = self.current_auth_group(actor)
        return group is not None and group.is_active()

    def switch_to_auth_group(self, actor: Actor, group: GroupLike) -> AuthGroup:
        return self.auth_groups.switch_to(actor, group)

    def on_auth_group(self, actor: Actor, group: GroupLike) -> AuthGroupUser:
        """The actor's membership record; raises MembershipNotFound."""
        return self.auth_groups.membership(actor, group)

    # =========================================================================
    # Mutations: permissions
    # =========================================================================

    def give_permission_to(self, holder: PermissionHolder, *permissions: PermissionLike) -> PermissionHolder:
        """
        Grant permissions to an actor, role, group or membership.

        Guard-carrying holders (actors, roles) only accept permissions of a
        guard they use; anything else raises GuardMismatch.
        """
        resolved = self.resolve_permissions(permissions, self._default_guard_for(holder))

        if isinstance(holder, Role):
            return self.roles.give_permission_to(holder, resolved)

        self._verify_guards(holder, resolved)
        with self.permissions.mutation():
            self.permissions.attach_permissions(holder, resolved)

        logger.info(f"Gave {[p.name for p in resolved]} to {type(holder).__name__} '{holder.id}'")
        return self._reload(holder)

    def withdraw_permission_to(self, holder: PermissionHolder, *permissions: PermissionLike) -> PermissionHolder:
        resolved = self.resolve_permissions(permissions, self._default_guard_for(holder))

        if isinstance(holder, Role):
            return self.roles.revoke_permission_to(holder, resolved)

        with self.permissions.mutation():
            self.permissions.detach_permissions(holder, resolved)

        logger.info(f"Withdrew {[p.name for p in resolved]} from {type(holder).__name__} '{holder.id}'")
        return self._reload(holder)

    def sync_permissions(self, holder: PermissionHolder, *permissions: PermissionLike) -> PermissionHolder:
        """Replace every direct permission of a holder with the given ones."""
        resolved = self.resolve_permissions(permissions, self._default_guard_for(holder))

        if isinstance(holder, Role):
            for permission in resolved:
                self.roles.verify_shared_guard(holder, permission)
        else:
            self._verify_guards(holder, resolved)

        with self.permissions.mutation():
            self.permissions.detach_permissions(holder)
            self.permissions.attach_permissions(holder, resolved)

        return self._reload(holder)

    def _default_guard_for(self, holder: PermissionHolder) -> str:
        if isinstance(holder, Role):
            return holder.guard
        if isinstance(holder, (AuthGroup, AuthGroupUser)):
            return self.guards.get_default_guard()
        return self.guards.get_default_guard(holder)

    def _verify_guards(self, holder: PermissionHolder, permissions: list[Permission]) -> None:
        # Groups and memberships carry no guard of their own
        if isinstance(holder, (AuthGroup, AuthGroupUser)):
            return

        expected = self.guards.get_guard_names(holder)
        for permission in permissions:
            if permission.guard not in expected:
                raise GuardMismatch(permission.guard, expected)

    def _reload(self, holder: PermissionHolder) -> PermissionHolder:
        if isinstance(holder, HasPermissions):
            holder.permissions = self.permissions.load_permissions(holder)
        return holder

    # =========================================================================
    # Mutations: roles
    # =========================================================================

    def assign_role(self, actor: Actor, *roles: RoleLike) -> Actor:
        resolved = self.resolve_roles(roles, self.guards.get_default_guard(actor))
        self.roles.assign(actor, resolved)
        return actor

    def remove_role(self, actor: Actor, *roles: RoleLike) -> Actor:
        resolved = self.resolve_roles(roles, self.guards.get_default_guard(actor))
        self.roles.remove(actor, resolved)
        return actor

    def sync_roles(self, actor: Actor, *roles: RoleLike) -> Actor:
        """Replace every role of the actor with the given ones."""
        resolved = self.resolve_roles(roles, self.guards.get_default_guard(actor))
        self.roles.sync(actor, resolved)
        return actor

    # =========================================================================
    # Mutations: auth groups
    # =========================================================================

    def create_new_group(self, actor: Actor, name: str, description: str | None = None) -> AuthGroup:
        return self.auth_groups.create_new_group(actor, name, description)

    def join_auth_group(self, actor: Actor, group: GroupLike, role_label: str | None = None) -> Actor:
        self.auth_groups.join(actor, group, role_label)
        return actor

    def leave_auth_group(self, actor: Actor, group: GroupLike) -> Actor:
        self.auth_groups.leave(actor, group)
        return actor

    def sync_auth_groups(self, actor: Actor, *groups: GroupLike) -> Actor:
        self.auth_groups.sync(actor, _flatten(groups))
        return actor

    def grant_permissions_on_auth_group(
        self, actor: Actor, group: GroupLike, *permissions: PermissionLike
    ) -> AuthGroupUser:
        """Grant permissions on the actor's membership in a group."""
        membership = self.on_auth_group(actor, group)

        resolved = self.resolve_permissions(permissions, self.guards.get_default_guard(actor))
        self._verify_guards(actor, resolved)

        with self.permissions.mutation():
            self.permissions.attach_permissions(membership, resolved)

        return self._reload(membership)

    def revoke_permission_on_auth_group(
        self, actor: Actor, group: GroupLike, permission: PermissionLike
    ) -> AuthGroupUser:
        membership = self.on_auth_group(actor, group)
        resolved = self.resolve_permission(permission, self.guards.get_default_guard(actor))

        with self.permissions.mutation():
            self.permissions.detach_permissions(membership, [resolved])

        return self._reload(membership)

    def attach_role_to_auth_group(self, group: GroupLike, role: RoleLike) -> AuthGroup:
        """Attach a role whose permissions every group member then gets."""
        group = self.auth_groups.get(group)
        self.auth_groups.attach_role(group, self.resolve_role(role))
        return group

    def detach_role_from_auth_group(self, group: GroupLike, role: RoleLike) -> AuthGroup:
        group = self.auth_groups.get(group)
        self.auth_groups.detach_role(group, self.resolve_role(role))
        return group

    # =========================================================================
    # Scopes
    # =========================================================================

    def actors_with_permissions(self, *permissions: PermissionLike, guard: str | None = None) -> list[str]:
        """
        Ids of actors reached by any of the permissions.

        Collected from direct grants, role holders, group members and owners,
        and members of groups with a granting role attached.
        """
        resolved = self.resolve_permissions(permissions, guard)
        graph = self.cache.get()

        actor_ids: set[str] = set()
        for permission in resolved:
            grants = graph.grants_for(permission)

            actor_ids.update(
                edge["user_id"]
                for edge in self.storage.query(Collections.USER_PERMISSIONS, {"permission_id": permission.id})
            )

            group_ids = set(grants.group_ids)
            for role_id in grants.role_ids:
                actor_ids.update(
                    edge["user_id"]
                    for edge in self.storage.query(Collections.USER_ROLES, {"role_id": role_id})
                )
                group_ids.update(
                    edge["auth_group_id"]
                    for edge in self.storage.query(Collections.AUTH_GROUP_ROLES, {"role_id": role_id})
                )

            for group_id in group_ids:
                record = self.storage.get(Collections.AUTH_GROUPS, group_id)
                if record is not None:
                    actor_ids.add(record["owner_id"])
                actor_ids.update(
                    edge["user_id"]
                    for edge in self.storage.query(Collections.AUTH_GROUP_USERS, {"auth_group_id": group_id})
                )

        return sorted(actor_ids)

    def actors_in_auth_groups(self, *groups: GroupLike) -> list[str]:
        """Ids of the members of any of the groups."""
        actor_ids: set[str] = set()
        for group in _flatten(groups):
            actor_ids.update(self.auth_groups.member_ids(self.auth_groups.get(group)))
        return sorted(actor_ids)


def _flatten(items: Iterable[Any]) -> list[Any]:
    flat: list[Any] = []
    for item in items:
        if isinstance(item, (list, tuple, set, frozenset)):
            flat.extend(_flatten(item))
        else:
            flat.append(item)
    return flat
