"""
Guard registry.

A guard is the authorization namespace of an actor type. Roles and
permissions belong to exactly one guard; an actor type may use several, the
first one being its default. Mappings come from two static sources, merged
along the class hierarchy:

1. a class-level ``guard_name`` (str or list of str)
2. ``Settings.guards``, keyed by class name
"""

from __future__ import annotations

import threading
from typing import Any

from gatehouse.config import Settings, get_settings
from gatehouse.core.models import Permission, Role
from gatehouse.exceptions import GuardConfigurationMissing


class GuardRegistry:
    """
    Maps actor types to their guard names.

    Lookups are pure over static configuration and memoized per class.
    """

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._names: dict[type, list[str]] = {}
        self._lock = threading.Lock()

    def get_guard_names(self, target: Any) -> list[str]:
        """
        All guard names for a type (or instance), default first.

        Roles and permissions answer with their own guard.
        """
        if isinstance(target, (Role, Permission)):
            return [target.guard]

        cls = target if isinstance(target, type) else type(target)

        names = self._names.get(cls)
        if names is None:
            names = self._collect(cls)
            with self._lock:
                self._names[cls] = names
        return list(names)

    def get_default_guard(self, target: Any = None) -> str:
        """
        The first configured guard of a type.

        Without a target, the library-wide Settings.default_guard, used for
        roles, permissions and groups handled without a guard.
        """
        if target is None:
            return self.settings.default_guard
        return self.get_guard_names(target)[0]

    def accepts(self, target: Any, guard: str) -> bool:
        """Whether ``guard`` is one of the target's guards."""
        return guard in self.get_guard_names(target)

    def clear(self) -> None:
        """Forget memoized lookups (after reconfiguring settings)."""
        with self._lock:
            self._names.clear()

    def _collect(self, cls: type) -> list[str]:
        names: list[str] = []

        for klass in cls.__mro__:
            declared = klass.__dict__.get("guard_name")
            if isinstance(declared, str):
                declared = [declared]
            for name in declared or []:
                if name not in names:
                    names.append(name)

            for name in self.settings.guards.get(klass.__name__, []):
                if name not in names:
                    names.append(name)

        if not names:
            raise GuardConfigurationMissing(cls.__name__)

        return names
