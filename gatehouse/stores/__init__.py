"""
Entity stores.

Repositories over MetadataStorage for permissions, roles and auth groups.
Every write goes through ``Store.mutation()`` and invalidates the
resolution cache after it commits.
"""

from gatehouse.stores.base import Store
from gatehouse.stores.permissions import PermissionStore
from gatehouse.stores.roles import RoleStore
from gatehouse.stores.auth_groups import AuthGroupStore

__all__ = [
    "Store",
    "PermissionStore",
    "RoleStore",
    "AuthGroupStore",
]
