"""
Permission seed loader.

Loads a YAML file declaring permissions, roles and auth groups and creates
them through the gate. Loading is idempotent: existing entities are found,
not duplicated, so the same file can be applied on every startup.

    permissions:
      - edit post
      - name: manage billing
        guard: api
    roles:
      - name: editor
        permissions: [edit post]
    auth_groups:
      - name: marketing
        owner_id: user_1
        permissions: [edit post]
        roles: [editor]
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from gatehouse.gate import Gate

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Applies a permission seed file to a gate.

    This is the standard way to bootstrap the permissions and roles an
    application relies on.
    """

    def __init__(self, gate: Gate):
        self.gate = gate

    def load_file(self, path: Path | str) -> dict[str, int]:
        """Load a seed file from YAML."""
        path = Path(path)
        with open(path) as f:
            data = yaml.safe_load(f) or {}

        return self.load(data)

    def load(self, data: dict[str, Any]) -> dict[str, int]:
        """
        Apply seed data.

        Returns:
            Dict with counts of each type processed
        """
        counts = {
            "permissions": 0,
            "roles": 0,
            "auth_groups": 0,
        }

        for entry in data.get("permissions", []):
            name, guard = self._name_and_guard(entry)
            self.gate.permissions.find_or_create(name, guard)
            counts["permissions"] += 1

        for entry in data.get("roles", []):
            name, guard = self._name_and_guard(entry)
            role = self.gate.roles.find_or_create(name, guard)
            permissions = [
                self.gate.permissions.find_or_create(permission, role.guard)
                for permission in self._list(entry, "permissions")
            ]
            if permissions:
                self.gate.give_permission_to(role, *permissions)
            counts["roles"] += 1

        for entry in data.get("auth_groups", []):
            group = self.gate.auth_groups.find_or_create(
                entry["name"],
                owner_id=entry["owner_id"],
                description=entry.get("description"),
            )
            permissions = self._list(entry, "permissions")
            if permissions:
                self.gate.give_permission_to(group, *permissions)
            for role in self._list(entry, "roles"):
                self.gate.attach_role_to_auth_group(group, role)
            counts["auth_groups"] += 1

        logger.info(f"Loaded permission seed: {counts}")
        return counts

    def _name_and_guard(self, entry: str | dict[str, Any]) -> tuple[str, str | None]:
        if isinstance(entry, str):
            return entry, None
        return entry["name"], entry.get("guard")

    def _list(self, entry: str | dict[str, Any], key: str) -> list[str]:
        if isinstance(entry, str):
            return []
        return list(entry.get(key) or [])


def load_config(gate: Gate, path: Path | str | None = None) -> dict[str, int]:
    """
    Convenience function to apply a seed file.

    Falls back to Settings.permissions_file; with neither, nothing is loaded.
    """
    path = path or gate.settings.permissions_file
    if not path:
        return {"permissions": 0, "roles": 0, "auth_groups": 0}

    return ConfigLoader(gate).load_file(path)
