"""
Storage abstraction layer.

All persistence goes through this interface. This allows swapping
implementations (in-memory -> SQL database) without changing the
stores or the resolution engine.

The engine only needs exact-match lookups, filtered queries, writes with a
caller-chosen id, and bulk deletion of association rows. Transactions wrap a
logical mutation so the resolution cache is only invalidated after commit.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any


# =============================================================================
# Storage Interface
# =============================================================================


class MetadataStorage(ABC):
    """
    Storage for structured records (permissions, roles, groups, edges).

    SQL Implementation: one table per collection, edge tables with
    ON DELETE CASCADE.
    Local Implementation: in-memory
    """

    @abstractmethod
    def save(self, collection: str, id: str, data: dict[str, Any]) -> None:
        """Insert or replace a record."""
        pass

    @abstractmethod
    def get(self, collection: str, id: str) -> dict[str, Any] | None:
        """Get a record by ID."""
        pass

    @abstractmethod
    def delete(self, collection: str, id: str) -> bool:
        """Delete a record."""
        pass

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """Query records by field equality, in insertion order."""
        pass

    @abstractmethod
    def update(self, collection: str, id: str, updates: dict[str, Any]) -> bool:
        """Partial update of a record."""
        pass

    @abstractmethod
    def delete_where(self, collection: str, filters: dict[str, Any]) -> int:
        """Delete every record matching the filters, return how many went."""
        pass

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """
        Group writes into one unit.

        Changes made inside the block are rolled back if it raises.
        """
        pass


# =============================================================================
# Collection Names
# =============================================================================


class Collections:
    """Standard collection/table names."""

    PERMISSIONS = "permissions"
    ROLES = "roles"
    AUTH_GROUPS = "auth_groups"

    # Edges
    ROLE_PERMISSIONS = "role_permissions"
    AUTH_GROUP_PERMISSIONS = "auth_group_permissions"
    USER_PERMISSIONS = "user_permissions"
    USER_ROLES = "user_roles"
    AUTH_GROUP_USERS = "auth_group_users"
    AUTH_GROUP_ROLES = "auth_group_roles"
    AUTH_GROUP_USER_PERMISSIONS = "auth_group_user_permissions"

    # Default actor table, see Settings.actor_collection
    USERS = "users"
