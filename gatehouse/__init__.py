"""
Authorization engine - roles, permissions and auth groups.

Design principles:
1. Guard-scoped roles and permissions, one namespace per actor type
2. Actors get permissions directly, through roles, or through auth groups
3. One cached grant graph per process, invalidated on every write
4. Failed lookups raise; a check never defaults to True
"""

from gatehouse.gate import Gate
from gatehouse.context import AuthContext
from gatehouse.cache import GrantGraph, ResolutionCache
from gatehouse.guards import GuardRegistry
from gatehouse.config import Settings, get_settings
from gatehouse.core.models import (
    Actor,
    AuthGroup,
    AuthGroupUser,
    Permission,
    PermissionHolder,
    Role,
)
from gatehouse.exceptions import (
    GatehouseError,
    NotFound,
    PermissionDoesNotExist,
    RoleDoesNotExist,
    AuthGroupDoesNotExist,
    MembershipNotFound,
    Conflict,
    PermissionAlreadyExists,
    RoleAlreadyExists,
    AuthGroupAlreadyExists,
    GuardMismatch,
    GuardConfigurationMissing,
    CapabilityDenied,
    ActorCannotOwnAuthGroups,
)

__all__ = [
    # Main interface
    "Gate",
    "AuthContext",
    "GuardRegistry",
    "ResolutionCache",
    "GrantGraph",
    "Settings",
    "get_settings",
    # Models
    "Actor",
    "AuthGroup",
    "AuthGroupUser",
    "Permission",
    "PermissionHolder",
    "Role",
    # Errors
    "GatehouseError",
    "NotFound",
    "PermissionDoesNotExist",
    "RoleDoesNotExist",
    "AuthGroupDoesNotExist",
    "MembershipNotFound",
    "Conflict",
    "PermissionAlreadyExists",
    "RoleAlreadyExists",
    "AuthGroupAlreadyExists",
    "GuardMismatch",
    "GuardConfigurationMissing",
    "CapabilityDenied",
    "ActorCannotOwnAuthGroups",
]
