"""
Tests for the resolution cache.

Any write must be visible to the very next check, and a warm cache must
not go back to storage.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from gatehouse import Gate, GrantGraph, PermissionAlreadyExists, PermissionDoesNotExist, ResolutionCache


class RecordingCache(ResolutionCache):
    """Counts invalidations triggered by the stores and the gate."""

    def __init__(self, storage):
        super().__init__(storage)
        self.calls = []

    def invalidate(self):
        self.calls.append("invalidate")
        super().invalidate()


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def cache(storage):
    return RecordingCache(storage)


@pytest.fixture
def gate(storage, settings, cache):
    return Gate(storage=storage, settings=settings, cache=cache)


# =============================================================================
# GrantGraph Tests
# =============================================================================


class TestGrantGraph:
    def test_build(self, gate, storage, editor, edit_post):
        group = gate.auth_groups.create("marketing", owner_id="owner")
        gate.give_permission_to(group, edit_post)

        graph = GrantGraph.build(storage)

        assert graph.find("edit post", "web").id == edit_post.id
        assert graph.find("edit post", "api") is None
        assert graph.grants_for(edit_post).role_ids == {editor.id}
        assert graph.grants_for(edit_post.id).group_ids == {group.id}
        assert graph.role_guard(editor.id) == "web"
        assert graph.role_guard("role_missing") is None

    def test_unknown_permission_has_no_grants(self, storage):
        graph = GrantGraph.build(storage)
        assert graph.grants_for("perm_missing").role_ids == frozenset()

    def test_graph_is_read_only(self, storage):
        graph = GrantGraph.build(storage)
        with pytest.raises(TypeError):
            graph.permissions["perm_x"] = None


# =============================================================================
# ResolutionCache Tests
# =============================================================================


class TestResolutionCache:
    def test_built_lazily(self, cache):
        assert not cache.is_warm
        cache.get()
        assert cache.is_warm
        assert cache.builds == 1

    def test_warm_cache_is_reused(self, gate, user, editor):
        gate.assign_role(user, editor)
        gate.has_permission_to(user, "edit post")
        builds = gate.cache.builds

        for _ in range(5):
            assert gate.has_permission_to(user, "edit post")
        assert gate.cache.builds == builds

    def test_every_write_invalidates(self, gate, cache, user):
        permission = gate.permissions.create("edit post")
        role = gate.roles.create("editor")
        gate.give_permission_to(role, permission)
        gate.assign_role(user, role)
        gate.give_permission_to(user, permission)

        assert cache.calls == ["invalidate"] * 5

    def test_failed_write_does_not_invalidate(self, gate, cache, edit_post):
        calls = len(cache.calls)
        with pytest.raises(PermissionAlreadyExists):
            gate.permissions.create("edit post")
        assert len(cache.calls) == calls

    def test_gate_writes_invalidate_once(self, gate, cache, user, edit_post):
        group = gate.auth_groups.create("marketing", owner_id="owner")
        gate.join_auth_group(user, group)
        calls = len(cache.calls)

        gate.sync_permissions(user, edit_post)
        gate.grant_permissions_on_auth_group(user, group, edit_post)
        gate.revoke_permission_on_auth_group(user, group, edit_post)
        gate.withdraw_permission_to(user, edit_post)

        assert len(cache.calls) == calls + 4

    def test_failed_gate_write_rolls_back(self, gate, cache, user, edit_post, monkeypatch):
        gate.give_permission_to(user, edit_post)
        calls = len(cache.calls)

        def broken(holder, permissions):
            raise RuntimeError("disk full")

        monkeypatch.setattr(gate.permissions, "attach_permissions", broken)

        with pytest.raises(RuntimeError):
            gate.sync_permissions(user, edit_post)

        assert len(cache.calls) == calls
        assert gate.has_permission_to(user, "edit post")

    def test_writes_are_visible_to_the_next_check(self, gate, user, editor, edit_post):
        gate.assign_role(user, editor)
        assert gate.has_permission_to(user, "edit post")

        gate.withdraw_permission_to(editor, edit_post)
        assert not gate.has_permission_to(user, "edit post")

        gate.give_permission_to(editor, edit_post)
        assert gate.has_permission_to(user, "edit post")

        gate.permissions.delete(edit_post)
        with pytest.raises(PermissionDoesNotExist):
            gate.has_permission_to(user, "edit post")

    def test_disabled_cache_rebuilds_every_time(self, storage):
        cache = ResolutionCache(storage, enabled=False)
        cache.get()
        cache.get()
        assert cache.builds == 2
        assert not cache.is_warm

    def test_concurrent_reads_and_invalidations(self, gate, user, editor):
        gate.assign_role(user, editor)

        def check(i):
            if i % 5 == 0:
                gate.cache.invalidate()
            return gate.has_permission_to(user, "edit post")

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(check, range(100)))

        assert all(results)
