"""
Tests for permission and role resolution.
"""

import pytest

from gatehouse import GuardMismatch, PermissionDoesNotExist, RoleDoesNotExist


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def delete_post(gate):
    return gate.permissions.create("delete post", "web")


@pytest.fixture
def marketing(gate, owner):
    return gate.auth_groups.create("marketing", owner_id=owner.id)


# =============================================================================
# Resolution paths
# =============================================================================


class TestResolution:
    def test_direct_grant(self, gate, user, edit_post):
        gate.give_permission_to(user, "edit post")
        assert gate.has_permission_to(user, "edit post")
        assert gate.has_direct_permission(user, edit_post)

    def test_role_grant(self, gate, user, editor):
        gate.assign_role(user, "editor")
        assert gate.has_permission_to(user, "edit post")
        assert not gate.has_direct_permission(user, "edit post")
        assert gate.is_granted_for(gate.permissions.find_by_name("edit post"), user)

    def test_group_grant(self, gate, user, marketing, edit_post):
        gate.give_permission_to(marketing, "edit post")
        assert not gate.has_permission_to(user, "edit post")

        gate.join_auth_group(user, marketing)
        assert gate.has_permission_to(user, "edit post")

    def test_group_grant_reaches_the_owner(self, gate, owner, marketing, edit_post):
        gate.give_permission_to(marketing, edit_post)
        assert gate.has_permission_to(owner, "edit post")

    def test_role_attached_to_group(self, gate, user, marketing, editor):
        gate.join_auth_group(user, marketing)
        gate.attach_role_to_auth_group(marketing, "editor")
        assert gate.has_permission_to(user, "edit post")

        gate.detach_role_from_auth_group(marketing, "editor")
        assert not gate.has_permission_to(user, "edit post")

    def test_no_grant(self, gate, user, edit_post):
        assert not gate.has_permission_to(user, "edit post")
        assert not gate.has_permission_to(user, edit_post)

    def test_unknown_permission_raises(self, gate, user):
        with pytest.raises(PermissionDoesNotExist):
            gate.has_permission_to(user, "launch rockets")


class TestAllAndAny:
    def test_all_of_several(self, gate, user, edit_post, delete_post):
        gate.give_permission_to(user, edit_post)
        assert not gate.has_permission_to(user, "edit post", "delete post")

        gate.give_permission_to(user, delete_post)
        assert gate.has_permission_to(user, "edit post", "delete post")

    def test_nested_lists_are_flattened(self, gate, user, edit_post, delete_post):
        gate.give_permission_to(user, [edit_post, [delete_post]])
        assert gate.has_permission_to(user, ["edit post", "delete post"])

    def test_any(self, gate, user, edit_post, delete_post):
        gate.give_permission_to(user, edit_post)
        assert gate.has_any_permission(user, "delete post", "edit post")

    def test_no_permission_given(self, gate, user):
        with pytest.raises(TypeError):
            gate.has_permission_to(user)
        with pytest.raises(TypeError):
            gate.has_any_permission(user)

    def test_can_takes_a_single_permission(self, gate, user, edit_post):
        gate.give_permission_to(user, edit_post)
        assert gate.can(user, "edit post")
        with pytest.raises(TypeError):
            gate.for_actor(user).can("edit post", "delete post")


# =============================================================================
# Guards
# =============================================================================


class TestGuardIsolation:
    def test_foreign_guard_permission_never_resolves(self, gate, user, marketing):
        api_permission = gate.permissions.create("edit post", "api")
        gate.give_permission_to(marketing, api_permission)
        gate.join_auth_group(user, marketing)

        assert not gate.has_permission_to(user, api_permission)

    def test_cannot_give_foreign_guard_permission_to_actor(self, gate, user):
        api_permission = gate.permissions.create("edit post", "api")
        with pytest.raises(GuardMismatch):
            gate.give_permission_to(user, api_permission)

    def test_cannot_assign_foreign_guard_role(self, gate, user):
        api_role = gate.roles.create("editor", "api")
        with pytest.raises(GuardMismatch):
            gate.assign_role(user, api_role)

    def test_api_actor_uses_its_own_namespace(self, gate, api_client, user):
        gate.permissions.create("edit post", "web")
        api_permission = gate.permissions.create("edit post", "api")
        gate.give_permission_to(api_client, "edit post")

        assert gate.has_permission_to(api_client, "edit post")
        assert gate.get_direct_permissions(api_client)[0].id == api_permission.id
        assert not gate.has_permission_to(user, "edit post")

    def test_foreign_role_attached_to_group_does_not_grant(self, gate, user, marketing):
        api_role = gate.roles.create("editor", "api")
        gate.give_permission_to(api_role, gate.permissions.create("edit post", "api"))
        gate.attach_role_to_auth_group(marketing, api_role)
        gate.join_auth_group(user, marketing)

        assert gate.get_all_permissions(user) == []


# =============================================================================
# Listing and sync
# =============================================================================


class TestPermissionListing:
    def test_all_permissions_from_every_path(self, gate, user, marketing, editor, delete_post):
        publish = gate.permissions.create("publish post")
        gate.assign_role(user, editor)
        gate.give_permission_to(user, delete_post)
        gate.give_permission_to(marketing, publish)
        gate.join_auth_group(user, marketing)

        names = [p.name for p in gate.get_all_permissions(user)]
        assert names == ["delete post", "edit post", "publish post"]
        assert [p.name for p in gate.get_direct_permissions(user)] == ["delete post"]

    def test_sync_permissions_replaces(self, gate, user, edit_post, delete_post):
        gate.give_permission_to(user, edit_post)
        gate.sync_permissions(user, delete_post)
        assert [p.name for p in gate.get_direct_permissions(user)] == ["delete post"]

    def test_sync_role_permissions(self, gate, editor, delete_post):
        role = gate.sync_permissions(editor, "delete post")
        assert role.permission_names() == ["delete post"]

    def test_withdraw(self, gate, user, edit_post):
        gate.give_permission_to(user, edit_post)
        gate.withdraw_permission_to(user, edit_post)
        assert not gate.has_permission_to(user, edit_post)


# =============================================================================
# Roles
# =============================================================================


class TestRoles:
    @pytest.fixture
    def admin(self, gate):
        return gate.roles.create("admin")

    def test_has_role(self, gate, user, editor, admin):
        gate.assign_role(user, "editor")
        assert gate.has_role(user, "editor")
        assert gate.has_role(user, editor)
        assert gate.has_role(user, "admin|editor")
        assert not gate.has_role(user, "admin")
        assert not gate.has_role(user, "editor", guard="api")

    def test_has_any_and_all_roles(self, gate, user, editor, admin):
        gate.assign_role(user, editor)
        assert gate.has_any_role(user, "admin", "editor")
        assert not gate.has_all_roles(user, "admin,editor")

        gate.assign_role(user, admin)
        assert gate.has_all_roles(user, ["admin", "editor"])
        assert gate.get_role_names(user) == ["admin", "editor"]

    def test_unknown_role_raises_on_assignment(self, gate, user):
        with pytest.raises(RoleDoesNotExist):
            gate.assign_role(user, "ghost")

    def test_remove_role(self, gate, user, editor):
        gate.assign_role(user, editor)
        gate.remove_role(user, "editor")
        assert not gate.has_permission_to(user, "edit post")

    def test_sync_roles(self, gate, user, editor, admin):
        gate.assign_role(user, editor)
        gate.sync_roles(user, "admin")
        assert gate.get_role_names(user) == ["admin"]


# =============================================================================
# Scopes
# =============================================================================


class TestScopes:
    def test_actors_with_permissions(self, gate, user, other_user, editor, edit_post):
        gate.give_permission_to(user, edit_post)
        gate.assign_role(other_user, editor)
        assert gate.actors_with_permissions("edit post") == ["user_1", "user_2"]

    def test_group_members_and_owner_are_included(self, gate, user, marketing, edit_post):
        gate.give_permission_to(marketing, edit_post)
        gate.join_auth_group(user, marketing)
        assert gate.actors_with_permissions(edit_post) == ["owner_1", "user_1"]

    def test_members_of_groups_with_a_granting_role(self, gate, other_user, editor):
        support = gate.auth_groups.create("support", owner_id="owner_2")
        gate.attach_role_to_auth_group(support, editor)
        gate.join_auth_group(other_user, support)
        assert gate.actors_with_permissions("edit post") == ["owner_2", "user_2"]

    def test_actors_in_auth_groups(self, gate, user, other_user, marketing):
        gate.join_auth_group(user, marketing)
        gate.join_auth_group(other_user, "marketing")
        assert gate.actors_in_auth_groups(marketing) == ["user_1", "user_2"]


# =============================================================================
# End-to-end scenarios
# =============================================================================


class TestScenarios:
    def test_editor_role_grants_edit_post(self, gate, user):
        gate.permissions.create("edit post", "web")
        role = gate.roles.create("editor", "web")
        gate.give_permission_to(role, "edit post")
        gate.assign_role(user, "editor")

        assert gate.has_permission_to(user, "edit post")
        assert gate.for_actor(user).can("edit post")

    def test_is_one_of_pipe_list(self, gate, user, other_user):
        marketing = gate.auth_groups.create("marketing", owner_id="owner_1")
        gate.join_auth_group(user, marketing)

        assert gate.for_actor(user).is_one_of("sales|marketing")
        assert not gate.for_actor(other_user).is_one_of("sales|marketing")
