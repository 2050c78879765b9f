"""
Shared fixtures.
"""

from typing import ClassVar

import pytest

from gatehouse import Actor, Gate, Settings
from gatehouse.storage import InMemoryMetadataStorage


# =============================================================================
# Actor types
# =============================================================================


class User(Actor):
    guard_name: ClassVar[str] = "web"


class ApiClient(Actor):
    guard_name: ClassVar[list[str]] = ["api"]


class Guest(User):
    def can_own_auth_groups(self) -> bool:
        return False


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings():
    """Settings isolated from any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def storage():
    return InMemoryMetadataStorage()


@pytest.fixture
def gate(storage, settings):
    """Fresh gate over empty storage."""
    return Gate(storage=storage, settings=settings)


@pytest.fixture
def user():
    return User(id="user_1")


@pytest.fixture
def other_user():
    return User(id="user_2")


@pytest.fixture
def api_client():
    return ApiClient(id="client_1")


@pytest.fixture
def edit_post(gate):
    return gate.permissions.create("edit post", "web")


@pytest.fixture
def editor(gate, edit_post):
    """An 'editor' role holding 'edit post'."""
    role = gate.roles.create("editor", "web")
    return gate.give_permission_to(role, edit_post)


@pytest.fixture
def owner():
    return User(id="owner_1")
