"""
Resolution cache.

Holds an in-memory snapshot of the grant graph: every permission, and for
each one the roles and auth groups that hold it directly. Authorization
checks read the snapshot instead of querying the store each time.

Rules:
- rebuilt lazily on the first ``get()`` after ``invalidate()``
- any mutation invalidates the whole graph, there is no partial update
- no TTL; valid until invalidated or the process exits
- per process, never shared
- a rebuild builds a new immutable graph and publishes it in one step, so a
  reader never sees a half-built graph
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from gatehouse.core.models import Permission, Role
from gatehouse.storage.base import Collections, MetadataStorage

logger = logging.getLogger(__name__)


# =============================================================================
# Grant graph
# =============================================================================


@dataclass(frozen=True)
class PermissionGrants:
    """Who holds a permission directly."""

    role_ids: frozenset[str] = frozenset()
    group_ids: frozenset[str] = frozenset()


NO_GRANTS = PermissionGrants()


@dataclass(frozen=True)
class GrantGraph:
    """Immutable permission -> {roles, groups} snapshot."""

    permissions: Mapping[str, Permission] = field(default_factory=dict)
    roles: Mapping[str, Role] = field(default_factory=dict)
    grants: Mapping[str, PermissionGrants] = field(default_factory=dict)
    keys: Mapping[tuple[str, str], str] = field(default_factory=dict)

    def find(self, name: str, guard: str) -> Permission | None:
        """Look a permission up by (name, guard)."""
        permission_id = self.keys.get((name, guard))
        if permission_id is None:
            return None
        return self.permissions[permission_id]

    def grants_for(self, permission: Permission | str) -> PermissionGrants:
        permission_id = permission.id if isinstance(permission, Permission) else permission
        return self.grants.get(permission_id, NO_GRANTS)

    def role_guard(self, role_id: str) -> str | None:
        role = self.roles.get(role_id)
        return role.guard if role is not None else None

    @classmethod
    def build(cls, storage: MetadataStorage) -> GrantGraph:
        """Load every permission with its role and group edges."""
        permissions = {
            record["id"]: Permission.model_validate(record)
            for record in storage.query(Collections.PERMISSIONS)
        }
        roles = {
            record["id"]: Role.model_validate(record)
            for record in storage.query(Collections.ROLES)
        }

        role_ids: dict[str, set[str]] = {}
        for edge in storage.query(Collections.ROLE_PERMISSIONS):
            role_ids.setdefault(edge["permission_id"], set()).add(edge["role_id"])

        group_ids: dict[str, set[str]] = {}
        for edge in storage.query(Collections.AUTH_GROUP_PERMISSIONS):
            group_ids.setdefault(edge["permission_id"], set()).add(edge["auth_group_id"])

        grants = {
            permission_id: PermissionGrants(
                role_ids=frozenset(role_ids.get(permission_id, ())),
                group_ids=frozenset(group_ids.get(permission_id, ())),
            )
            for permission_id in permissions
        }

        return cls(
            permissions=MappingProxyType(permissions),
            roles=MappingProxyType(roles),
            grants=MappingProxyType(grants),
            keys=MappingProxyType({p.key: p.id for p in permissions.values()}),
        )


# =============================================================================
# Cache
# =============================================================================


class ResolutionCache:
    """
    Process-local holder of the current grant graph.

    Injected into the stores and the gate; every mutating operation calls
    ``invalidate()`` once its storage write has committed.
    """

    def __init__(self, storage: MetadataStorage, enabled: bool = True):
        self.storage = storage
        self.enabled = enabled
        self._graph: GrantGraph | None = None
        self._lock = threading.Lock()

        # Diagnostics
        self.builds = 0
        self.invalidations = 0

    @property
    def is_warm(self) -> bool:
        return self._graph is not None

    def get(self) -> GrantGraph:
        """Return the cached graph, rebuilding it if it was invalidated."""
        if not self.enabled:
            return self._build()

        graph = self._graph
        if graph is not None:
            return graph

        with self._lock:
            # Another thread may have rebuilt while we waited
            if self._graph is None:
                self._graph = self._build()
            return self._graph

    def invalidate(self) -> None:
        """Drop the cached graph."""
        with self._lock:
            self._graph = None
            self.invalidations += 1
        logger.debug("Grant graph invalidated")

    def _build(self) -> GrantGraph:
        graph = GrantGraph.build(self.storage)
        self.builds += 1
        logger.debug(
            f"Grant graph rebuilt: {len(graph.permissions)} permissions, "
            f"{len(graph.roles)} roles"
        )
        return graph
