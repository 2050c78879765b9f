"""
Permission store.

Canonical registry of permissions, keyed by (name, guard).
"""

from __future__ import annotations

import logging

from gatehouse.core.models import Permission
from gatehouse.exceptions import PermissionAlreadyExists, PermissionDoesNotExist
from gatehouse.storage.base import Collections
from gatehouse.stores.base import Store

logger = logging.getLogger(__name__)


# Every edge collection with a permission_id column, detached on delete
PERMISSION_EDGES = (
    Collections.ROLE_PERMISSIONS,
    Collections.AUTH_GROUP_PERMISSIONS,
    Collections.USER_PERMISSIONS,
    Collections.AUTH_GROUP_USER_PERMISSIONS,
)


class PermissionStore(Store):

    def find_by_name(self, name: str, guard: str | None = None) -> Permission:
        """
        Find a permission by name within a guard.

        The cached grant graph is consulted first; on a miss the store is
        queried directly before giving up.
        """
        guard = guard or self.guards.get_default_guard()

        permission = self.cache.get().find(name, guard)
        if permission is not None:
            return permission

        permission = self._find(name, guard)
        if permission is None:
            raise PermissionDoesNotExist(name, guard)
        return permission

    def find_by_id(self, id: str) -> Permission:
        permission = self.cache.get().permissions.get(id)
        if permission is not None:
            return permission

        record = self.storage.get(Collections.PERMISSIONS, id)
        if record is None:
            raise PermissionDoesNotExist(id=id)
        return Permission.model_validate(record)

    def create(self, name: str, guard: str | None = None) -> Permission:
        guard = guard or self.guards.get_default_guard()

        with self.mutation():
            if self._find(name, guard) is not None:
                raise PermissionAlreadyExists(name, guard)

            permission = Permission(name=name, guard=guard)
            self.storage.save(Collections.PERMISSIONS, permission.id, permission.to_record())

        logger.info(f"Created permission '{name}' for guard '{guard}'")
        return permission

    def find_or_create(self, name: str, guard: str | None = None) -> Permission:
        guard = guard or self.guards.get_default_guard()

        permission = self._find(name, guard)
        if permission is not None:
            return permission

        try:
            return self.create(name, guard)
        except PermissionAlreadyExists:
            # Created by a concurrent caller since the lookup above
            return self._find(name, guard)

    def delete(self, permission: Permission) -> None:
        """Delete a permission and detach it from every holder."""
        with self.mutation():
            for collection in PERMISSION_EDGES:
                self.storage.delete_where(collection, {"permission_id": permission.id})
            self.storage.delete(Collections.PERMISSIONS, permission.id)

        logger.info(f"Deleted permission '{permission.name}' for guard '{permission.guard}'")

    def all(self, guard: str | None = None) -> list[Permission]:
        filters = {"guard": guard} if guard else None
        return [
            Permission.model_validate(record)
            for record in self.storage.query(Collections.PERMISSIONS, filters)
        ]

    def _find(self, name: str, guard: str) -> Permission | None:
        records = self._query(Collections.PERMISSIONS, name=name, guard=guard)
        return Permission.model_validate(records[0]) if records else None
