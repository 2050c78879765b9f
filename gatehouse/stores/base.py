"""
Base class for the entity stores.

A store is a thin repository over MetadataStorage for one entity type. It
owns the uniqueness checks, cascade detachment on delete, and the rule that
every write invalidates the resolution cache once it has committed.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterable, Iterator

from gatehouse.cache import ResolutionCache
from gatehouse.config import Settings
from gatehouse.core.models import Permission, PermissionHolder
from gatehouse.core.utils import edge_id
from gatehouse.guards import GuardRegistry
from gatehouse.storage.base import Collections, MetadataStorage


class Store:
    """Shared plumbing for the permission, role and auth group stores."""

    def __init__(
        self,
        storage: MetadataStorage,
        cache: ResolutionCache,
        guards: GuardRegistry,
        settings: Settings,
    ):
        self.storage = storage
        self.cache = cache
        self.guards = guards
        self.settings = settings

    @contextmanager
    def mutation(self) -> Iterator[None]:
        """
        Wrap a logical write.

        The cache is invalidated only after the storage transaction exits
        cleanly; on error the transaction rolls back and the cache is left
        alone.
        """
        with self.storage.transaction():
            yield
        self.cache.invalidate()

    def _query(self, collection: str, **filters: Any) -> list[dict[str, Any]]:
        return self.storage.query(collection, filters or None)

    # =========================================================================
    # Permission edges (shared by every PermissionHolder)
    # =========================================================================

    def permission_ids_for(self, holder: PermissionHolder) -> list[str]:
        """Ids of the permissions granted directly to a holder."""
        return [
            edge["permission_id"]
            for edge in self._query(holder.permission_table, **{holder.permission_key: holder.id})
        ]

    def load_permissions(self, holder: PermissionHolder) -> list[Permission]:
        graph = self.cache.get()
        permissions = []
        for permission_id in self.permission_ids_for(holder):
            permission = graph.permissions.get(permission_id)
            if permission is None:
                record = self.storage.get(Collections.PERMISSIONS, permission_id)
                if record is None:
                    continue
                permission = Permission.model_validate(record)
            permissions.append(permission)
        return permissions

    def attach_permissions(self, holder: PermissionHolder, permissions: Iterable[Permission]) -> None:
        for permission in permissions:
            self.storage.save(
                holder.permission_table,
                edge_id(holder.id, permission.id),
                {holder.permission_key: holder.id, "permission_id": permission.id},
            )

    def detach_permissions(self, holder: PermissionHolder, permissions: Iterable[Permission] | None = None) -> None:
        if permissions is None:
            self.storage.delete_where(holder.permission_table, {holder.permission_key: holder.id})
            return
        for permission in permissions:
            self.storage.delete(holder.permission_table, edge_id(holder.id, permission.id))
