"""
Core module - entities and shared helpers.

This module contains:
- models: Permission, Role, AuthGroup, AuthGroupUser, Actor
- utils: id generation and name-list parsing
"""

from gatehouse.core.models import (
    Actor,
    AuthGroup,
    AuthGroupUser,
    HasPermissions,
    Permission,
    PermissionHolder,
    Role,
)

from gatehouse.core.utils import (
    generate_id,
    is_delimited_list,
    split_names,
    utc_now,
)

__all__ = [
    # Models
    "Actor",
    "AuthGroup",
    "AuthGroupUser",
    "HasPermissions",
    "Permission",
    "PermissionHolder",
    "Role",
    # Utils
    "generate_id",
    "is_delimited_list",
    "split_names",
    "utc_now",
]
