"""
Auth group store.

Groups are the multi-tenant side of the system: an actor can own groups,
join them under a role label, and keep one of them as its current group.
Groups are not guard-scoped; guard compatibility for anything granted
through a group is enforced when a check is resolved (see gate.py).
"""

from __future__ import annotations

import logging
from typing import Iterable

from gatehouse.core.models import Actor, AuthGroup, AuthGroupUser, Role
from gatehouse.core.utils import edge_id
from gatehouse.exceptions import (
    ActorCannotOwnAuthGroups,
    AuthGroupAlreadyExists,
    AuthGroupDoesNotExist,
    MembershipNotFound,
)
from gatehouse.storage.base import Collections
from gatehouse.stores.base import Store

logger = logging.getLogger(__name__)


class AuthGroupStore(Store):

    # =========================================================================
    # Lookup / create
    # =========================================================================

    def create(
        self,
        name: str,
        owner_id: str,
        description: str | None = None,
        active: bool = True,
    ) -> AuthGroup:
        with self.mutation():
            if self._find(name) is not None:
                raise AuthGroupAlreadyExists(name)

            group = AuthGroup(name=name, owner_id=owner_id, description=description, active=active)
            self.storage.save(Collections.AUTH_GROUPS, group.id, group.to_record())

        logger.info(f"Created auth group '{name}' owned by '{owner_id}'")
        return group

    def find_by_name(self, name: str) -> AuthGroup:
        group = self._find(name)
        if group is None:
            raise AuthGroupDoesNotExist(name)
        return self.hydrate(group)

    def find_by_id(self, id: str) -> AuthGroup:
        record = self.storage.get(Collections.AUTH_GROUPS, id)
        if record is None:
            raise AuthGroupDoesNotExist(id=id)
        return self.hydrate(AuthGroup.model_validate(record))

    def find_or_create(self, name: str, owner_id: str, description: str | None = None) -> AuthGroup:
        group = self._find(name)
        if group is not None:
            return self.hydrate(group)

        try:
            return self.create(name, owner_id, description)
        except AuthGroupAlreadyExists:
            return self.hydrate(self._find(name))

    def get(self, group: AuthGroup | str) -> AuthGroup:
        """Normalize an entity, id or name to an AuthGroup."""
        if isinstance(group, AuthGroup):
            return group

        record = self.storage.get(Collections.AUTH_GROUPS, group)
        if record is not None:
            return self.hydrate(AuthGroup.model_validate(record))
        return self.find_by_name(group)

    def delete(self, group: AuthGroup) -> None:
        """Delete a group with its memberships, grants and attached roles."""
        with self.mutation():
            for membership in self._memberships(auth_group_id=group.id):
                self.detach_permissions(membership)
            self.storage.delete_where(Collections.AUTH_GROUP_USERS, {"auth_group_id": group.id})
            self.storage.delete_where(Collections.AUTH_GROUP_ROLES, {"auth_group_id": group.id})
            self.detach_permissions(group)
            self.storage.delete(Collections.AUTH_GROUPS, group.id)

        logger.info(f"Deleted auth group '{group.name}'")

    def all(self) -> list[AuthGroup]:
        return [
            self.hydrate(AuthGroup.model_validate(record))
            for record in self.storage.query(Collections.AUTH_GROUPS)
        ]

    def hydrate(self, group: AuthGroup) -> AuthGroup:
        group.permissions = self.load_permissions(group)
        return group

    # =========================================================================
    # Membership
    # =========================================================================

    def join(self, actor: Actor, group: AuthGroup | str, role_label: str | None = None) -> AuthGroupUser:
        """Add the actor to a group, or update its role label if already in."""
        group = self.get(group)
        membership = AuthGroupUser(
            auth_group_id=group.id,
            user_id=actor.id,
            role=role_label or self.settings.auth_group_user_role,
        )

        with self.mutation():
            existing = self.storage.get(Collections.AUTH_GROUP_USERS, membership.id)
            if existing is not None:
                self.storage.update(Collections.AUTH_GROUP_USERS, membership.id, {"role": membership.role})
            else:
                self.storage.save(Collections.AUTH_GROUP_USERS, membership.id, membership.to_record())

        logger.info(f"'{actor.id}' joined auth group '{group.name}' as '{membership.role}'")
        return self.membership(actor, group)

    def leave(self, actor: Actor, group: AuthGroup | str) -> None:
        group = self.get(group)
        membership = self.membership(actor, group)

        with self.mutation():
            self.detach_permissions(membership)
            self.storage.delete(Collections.AUTH_GROUP_USERS, membership.id)

        logger.info(f"'{actor.id}' left auth group '{group.name}'")

    def sync(self, actor: Actor, groups: Iterable[AuthGroup | str]) -> None:
        """Make the given groups the actor's only memberships."""
        groups = [self.get(group) for group in groups]
        keep = {group.id for group in groups}

        joined = set(self.group_ids_for(actor))

        with self.mutation():
            for membership in self._memberships(user_id=actor.id):
                if membership.auth_group_id not in keep:
                    self.detach_permissions(membership)
                    self.storage.delete(Collections.AUTH_GROUP_USERS, membership.id)

        for group in groups:
            if group.id not in joined:
                self.join(actor, group)

    def membership(self, actor: Actor, group: AuthGroup | str) -> AuthGroupUser:
        """The actor's membership record in a group."""
        group = self.get(group)
        record = self.storage.get(Collections.AUTH_GROUP_USERS, edge_id(group.id, actor.id))
        if record is None:
            raise MembershipNotFound(group.name, actor.id)

        membership = AuthGroupUser.model_validate(record)
        membership.permissions = self.load_permissions(membership)
        return membership

    def memberships_for(self, actor: Actor) -> list[AuthGroupUser]:
        return self._memberships(user_id=actor.id)

    def group_ids_for(self, actor: Actor) -> list[str]:
        """Ids of the groups the actor is a member of, in join order."""
        return [m.auth_group_id for m in self._memberships(user_id=actor.id)]

    def groups_for(self, actor: Actor) -> list[AuthGroup]:
        groups = []
        for group_id in self.group_ids_for(actor):
            record = self.storage.get(Collections.AUTH_GROUPS, group_id)
            if record is not None:
                groups.append(self.hydrate(AuthGroup.model_validate(record)))
        return groups

    def owned_by(self, actor: Actor) -> list[AuthGroup]:
        return [
            AuthGroup.model_validate(record)
            for record in self._query(Collections.AUTH_GROUPS, owner_id=actor.id)
        ]

    def member_ids(self, group: AuthGroup) -> list[str]:
        return [m.user_id for m in self._memberships(auth_group_id=group.id)]

    # =========================================================================
    # Ownership & current group
    # =========================================================================

    def create_new_group(self, actor: Actor, name: str, description: str | None = None) -> AuthGroup:
        """
        Create a group owned by the actor and make it the actor's current one.

        The owner joins with the configured owner role label.
        """
        if not actor.can_own_auth_groups():
            raise ActorCannotOwnAuthGroups(actor.id)

        group = self.create(name, owner_id=actor.id, description=description)
        self.join(actor, group, self.settings.auth_group_owner_role)

        return self.switch_to(actor, group)

    def switch_to(self, actor: Actor, group: AuthGroup | str) -> AuthGroup:
        """
        Make a group the actor's current one.

        The actor must be a member or the owner of the group.
        """
        group = self.get(group)
        if not group.is_owned_by(actor) and group.id not in self.group_ids_for(actor):
            raise MembershipNotFound(group.name, actor.id)

        self._set_current(actor, group.id)
        logger.info(f"'{actor.id}' switched to auth group '{group.name}'")
        return group

    def current_group(self, actor: Actor) -> AuthGroup | None:
        """
        The group the actor is currently working in.

        Self-healing: with no current group but some membership, the first
        membership becomes current. A current group that no longer exists,
        or that the actor has neither joined nor owns, is reset and re-derived.
        Memberships whose group record is gone are skipped.
        """
        group_ids = [group.id for group in self.groups_for(actor)]

        if actor.current_auth_group_id is None and group_ids:
            self._set_current(actor, group_ids[0])
            return self.current_group(actor)

        if actor.current_auth_group_id is not None:
            record = None
            owned_ids = [group.id for group in self.owned_by(actor)]
            if actor.current_auth_group_id in group_ids + owned_ids:
                record = self.storage.get(Collections.AUTH_GROUPS, actor.current_auth_group_id)
            if record is None:
                return self.refresh_current_group(actor)
            return self.hydrate(AuthGroup.model_validate(record))

        return None

    def refresh_current_group(self, actor: Actor) -> AuthGroup | None:
        """Reset the current group and derive it again."""
        self._set_current(actor, None)
        return self.current_group(actor)

    def _set_current(self, actor: Actor, group_id: str | None) -> None:
        actor.current_auth_group_id = group_id
        collection = actor.collection or self.settings.actor_collection

        with self.storage.transaction():
            if not self.storage.update(collection, actor.id, {"current_auth_group_id": group_id}):
                self.storage.save(collection, actor.id, actor.model_dump(mode="json"))

    # =========================================================================
    # Roles attached to a group
    # =========================================================================

    def attach_role(self, group: AuthGroup, role: Role) -> None:
        with self.mutation():
            self.storage.save(
                Collections.AUTH_GROUP_ROLES,
                edge_id(group.id, role.id),
                {"auth_group_id": group.id, "role_id": role.id},
            )

    def detach_role(self, group: AuthGroup, role: Role) -> None:
        with self.mutation():
            self.storage.delete(Collections.AUTH_GROUP_ROLES, edge_id(group.id, role.id))

    def roles_for(self, group: AuthGroup | str) -> list[Role]:
        """Roles attached to a group, sorted by name."""
        roles = []
        for role_id in self.role_ids_for([self.get(group).id]):
            record = self.storage.get(Collections.ROLES, role_id)
            if record is not None:
                roles.append(Role.model_validate(record))
        return sorted(roles, key=lambda r: r.name)

    def role_ids_for(self, group_ids: Iterable[str]) -> set[str]:
        """Ids of the roles attached to any of the given groups."""
        role_ids: set[str] = set()
        for group_id in group_ids:
            role_ids.update(
                edge["role_id"]
                for edge in self._query(Collections.AUTH_GROUP_ROLES, auth_group_id=group_id)
            )
        return role_ids

    def _memberships(self, **filters: str) -> list[AuthGroupUser]:
        return [
            AuthGroupUser.model_validate(record)
            for record in self._query(Collections.AUTH_GROUP_USERS, **filters)
        ]

    def _find(self, name: str) -> AuthGroup | None:
        records = self._query(Collections.AUTH_GROUPS, name=name)
        return AuthGroup.model_validate(records[0]) if records else None
