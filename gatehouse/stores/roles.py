"""
Role store.

Roles are keyed by (name, guard) like permissions, and every association
they take part in (role -> permission, actor -> role) must share a guard.
"""

from __future__ import annotations

import logging
from typing import Iterable

from gatehouse.core.models import Actor, Permission, Role
from gatehouse.core.utils import edge_id
from gatehouse.exceptions import GuardMismatch, RoleAlreadyExists, RoleDoesNotExist
from gatehouse.storage.base import Collections
from gatehouse.stores.base import Store

logger = logging.getLogger(__name__)


class RoleStore(Store):

    # =========================================================================
    # Lookup / create
    # =========================================================================

    def find_by_name(self, name: str, guard: str | None = None) -> Role:
        guard = guard or self.guards.get_default_guard()

        role = self._find(name, guard)
        if role is None:
            raise RoleDoesNotExist(name, guard)
        return self.hydrate(role)

    def find_by_id(self, id: str) -> Role:
        record = self.storage.get(Collections.ROLES, id)
        if record is None:
            raise RoleDoesNotExist(id=id)
        return self.hydrate(Role.model_validate(record))

    def create(self, name: str, guard: str | None = None) -> Role:
        guard = guard or self.guards.get_default_guard()

        with self.mutation():
            if self._find(name, guard) is not None:
                raise RoleAlreadyExists(name, guard)

            role = Role(name=name, guard=guard)
            self.storage.save(Collections.ROLES, role.id, role.to_record())

        logger.info(f"Created role '{name}' for guard '{guard}'")
        return role

    def find_or_create(self, name: str, guard: str | None = None) -> Role:
        guard = guard or self.guards.get_default_guard()

        role = self._find(name, guard)
        if role is not None:
            return self.hydrate(role)

        try:
            return self.create(name, guard)
        except RoleAlreadyExists:
            return self.hydrate(self._find(name, guard))

    def delete(self, role: Role) -> None:
        """Delete a role, detaching its permissions, actors and groups."""
        with self.mutation():
            self.detach_permissions(role)
            self.storage.delete_where(Collections.USER_ROLES, {"role_id": role.id})
            self.storage.delete_where(Collections.AUTH_GROUP_ROLES, {"role_id": role.id})
            self.storage.delete(Collections.ROLES, role.id)

        logger.info(f"Deleted role '{role.name}' for guard '{role.guard}'")

    def all(self, guard: str | None = None) -> list[Role]:
        filters = {"guard": guard} if guard else None
        return [
            self.hydrate(Role.model_validate(record))
            for record in self.storage.query(Collections.ROLES, filters)
        ]

    def hydrate(self, role: Role) -> Role:
        """Load the role's permissions onto it."""
        role.permissions = self.load_permissions(role)
        return role

    # =========================================================================
    # Role -> permission
    # =========================================================================

    def give_permission_to(self, role: Role, permissions: Iterable[Permission]) -> Role:
        permissions = list(permissions)
        for permission in permissions:
            self.verify_shared_guard(role, permission)

        with self.mutation():
            self.attach_permissions(role, permissions)

        return self.hydrate(role)

    def revoke_permission_to(self, role: Role, permissions: Iterable[Permission]) -> Role:
        with self.mutation():
            self.detach_permissions(role, permissions)

        return self.hydrate(role)

    def verify_shared_guard(self, role: Role, permission: Permission) -> None:
        if permission.guard != role.guard:
            raise GuardMismatch(permission.guard, [role.guard])

    # =========================================================================
    # Actor -> role
    # =========================================================================

    def assign(self, actor: Actor, roles: Iterable[Role]) -> None:
        roles = list(roles)
        self.verify_assignable(actor, roles)

        with self.mutation():
            self._save_assignments(actor, roles)

        logger.info(f"Assigned roles {[r.name for r in roles]} to '{actor.id}'")

    def sync(self, actor: Actor, roles: Iterable[Role]) -> None:
        """Make the given roles the actor's only ones."""
        roles = list(roles)
        self.verify_assignable(actor, roles)

        with self.mutation():
            self.storage.delete_where(Collections.USER_ROLES, {"user_id": actor.id})
            self._save_assignments(actor, roles)

    def verify_assignable(self, actor: Actor, roles: list[Role]) -> None:
        expected = self.guards.get_guard_names(actor)
        for role in roles:
            if role.guard not in expected:
                raise GuardMismatch(role.guard, expected)

    def _save_assignments(self, actor: Actor, roles: list[Role]) -> None:
        for role in roles:
            self.storage.save(
                Collections.USER_ROLES,
                edge_id(actor.id, role.id),
                {"user_id": actor.id, "role_id": role.id},
            )

    def remove(self, actor: Actor, roles: Iterable[Role] | None = None) -> None:
        """Remove the given roles from an actor, or all of them."""
        with self.mutation():
            if roles is None:
                self.storage.delete_where(Collections.USER_ROLES, {"user_id": actor.id})
            else:
                for role in roles:
                    self.storage.delete(Collections.USER_ROLES, edge_id(actor.id, role.id))

    def role_ids_for(self, actor: Actor) -> set[str]:
        return {edge["role_id"] for edge in self._query(Collections.USER_ROLES, user_id=actor.id)}

    def roles_for(self, actor: Actor) -> list[Role]:
        roles = []
        for role_id in self.role_ids_for(actor):
            record = self.storage.get(Collections.ROLES, role_id)
            if record is not None:
                roles.append(self.hydrate(Role.model_validate(record)))
        return sorted(roles, key=lambda r: r.name)

    def _find(self, name: str, guard: str) -> Role | None:
        records = self._query(Collections.ROLES, name=name, guard=guard)
        return Role.model_validate(records[0]) if records else None
